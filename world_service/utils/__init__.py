"""
Shared utilities for the world service
"""

from .events import EventBus
from .snapshots import SnapshotLoad, load_snapshot, save_snapshot

__all__ = ["EventBus", "SnapshotLoad", "load_snapshot", "save_snapshot"]
