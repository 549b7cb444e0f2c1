"""
Cache snapshot helpers

load_snapshot never raises: a cache miss, a parse error or an unavailable
cache all produce the caller's default together with the reason, so the
fallback policy is visible in the return value rather than hidden in an
exception handler.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

from loguru import logger
from pydantic import ValidationError

from ..exceptions import CacheUnavailableError

T = TypeVar("T")


class SnapshotSource(str, Enum):
    CACHE = "cache"
    DEFAULT = "default"


@dataclass
class SnapshotLoad(Generic[T]):
    """Outcome of hydrating one piece of state"""
    value: T
    source: SnapshotSource
    reason: Optional[str] = None

    @property
    def from_cache(self) -> bool:
        return self.source == SnapshotSource.CACHE


async def load_snapshot(
    cache,
    key: str,
    parse: Callable[[Any], T],
    default_factory: Callable[[], T],
) -> SnapshotLoad[T]:
    """
    Hydrate state from the cache, falling back to defaults

    Args:
        cache: Object exposing ``get_temporary(key)``
        key: Cache key
        parse: Converts decoded JSON into the state value; may raise
            ValueError/TypeError/ValidationError on malformed data
        default_factory: Builds the built-in seed data

    Returns:
        SnapshotLoad with the value and where it came from
    """
    try:
        raw = await cache.get_temporary(key)
    except CacheUnavailableError as e:
        logger.warning(f"Failed to load {key} from cache, using defaults: {e}")
        return SnapshotLoad(default_factory(), SnapshotSource.DEFAULT, "cache_unavailable")

    if raw is None:
        return SnapshotLoad(default_factory(), SnapshotSource.DEFAULT, "cache_miss")

    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        value = parse(data)
    except (ValueError, TypeError, KeyError, ValidationError) as e:
        logger.warning(f"Failed to parse cached {key}, using defaults: {e}")
        return SnapshotLoad(default_factory(), SnapshotSource.DEFAULT, "parse_error")

    logger.info(f"Loaded {key} from cache")
    return SnapshotLoad(value, SnapshotSource.CACHE)


async def save_snapshot(cache, key: str, value: Any, ttl_seconds: int) -> bool:
    """Best-effort write; failures are logged and reported as False"""
    success = await cache.set_temporary(key, value, ttl_seconds)
    if not success:
        logger.warning(f"Failed to cache {key}, state remains in memory only")
    return success
