"""
API routers for the world service
"""

from .economy import router as economy_router
from .world import router as world_router

__all__ = ["economy_router", "world_router"]
