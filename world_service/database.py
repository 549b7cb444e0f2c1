"""
Connection management for the World Service
- Redis: best-effort checkpoint cache for territories, economic state and market items
- SQL (SQLAlchemy): character ledger and economic events, see ledger.py
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Optional

import redis.asyncio as aioredis
from loguru import logger
from prometheus_client import Counter, Gauge
from redis.asyncio import ConnectionPool
from redis.exceptions import RedisError
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from .config import Settings, settings as default_settings
from .exceptions import CacheUnavailableError

cache_failures = Counter(
    "world_cache_failures_total",
    "Cache operations that failed and were handled softly",
    ["operation"]
)
cache_health_gauge = Gauge(
    "world_cache_health_status",
    "Cache health status (1=healthy, 0=unhealthy)"
)


def _json_serial(obj: Any) -> str:
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Type {type(obj)} not serializable")


class CacheManager:
    """Redis connection manager exposing the temporary key/value API"""

    def __init__(self, config: Optional[Settings] = None, client: Optional[aioredis.Redis] = None):
        self.config = config or default_settings
        self.pool: Optional[ConnectionPool] = None
        self.client: Optional[aioredis.Redis] = client

    async def connect(self, max_retries: Optional[int] = None, retry_delay: Optional[float] = None) -> bool:
        """
        Establish connection to Redis with retry logic

        The world service runs without a cache, so exhausting the retries
        logs an error and returns False instead of raising.

        Args:
            max_retries: Maximum number of connection attempts (defaults to settings value)
            retry_delay: Initial delay between retries in seconds (defaults to settings value)
        """
        if max_retries is None:
            max_retries = self.config.cache_connection_max_retries
        if retry_delay is None:
            retry_delay = self.config.cache_connection_retry_delay

        for attempt in range(1, max_retries + 1):
            try:
                logger.info(
                    f"Connecting to Redis at {self.config.redis_host}:{self.config.redis_port} "
                    f"(attempt {attempt}/{max_retries})"
                )

                self.pool = ConnectionPool(
                    host=self.config.redis_host,
                    port=self.config.redis_port,
                    db=self.config.redis_db,
                    password=self.config.redis_password,
                    max_connections=self.config.redis_max_connections,
                    decode_responses=True,
                    socket_timeout=self.config.redis_socket_timeout,
                    socket_connect_timeout=self.config.redis_socket_timeout,
                )
                self.client = aioredis.Redis(connection_pool=self.pool)

                await self.client.ping()
                cache_health_gauge.set(1)
                logger.info("✓ Successfully connected to Redis")
                return True

            except (RedisError, OSError) as e:
                cache_health_gauge.set(0)
                logger.warning(f"Redis connection attempt {attempt}/{max_retries} failed: {e}")
                await self._release()

                if attempt < max_retries:
                    wait_time = retry_delay * (2 ** (attempt - 1))
                    logger.info(f"Retrying in {wait_time:.1f} seconds...")
                    await asyncio.sleep(wait_time)

        logger.error(f"Failed to connect to Redis after {max_retries} attempts, continuing without cache")
        return False

    async def disconnect(self):
        """Close connection to Redis"""
        try:
            await self._release()
            logger.info("Disconnected from Redis")
        except (RedisError, OSError) as e:
            logger.error(f"Error disconnecting from Redis: {e}")

    async def _release(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        if self.pool is not None:
            await self.pool.disconnect()
            self.pool = None

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    async def health_check(self) -> bool:
        """Check if the cache connection is healthy"""
        if self.client is None:
            cache_health_gauge.set(0)
            return False
        try:
            await self.client.ping()
            cache_health_gauge.set(1)
            return True
        except (RedisError, OSError) as e:
            cache_health_gauge.set(0)
            logger.error(f"Cache health check failed: {e}")
            return False

    async def get_temporary(self, key: str) -> Optional[str]:
        """
        Read a temporary value

        Returns:
            The stored string, or None on a cache miss

        Raises:
            CacheUnavailableError: Redis is not connected or the read failed
        """
        if self.client is None:
            cache_failures.labels(operation="get").inc()
            raise CacheUnavailableError(f"Cache not connected, cannot read {key}")
        try:
            value = await self.client.get(key)
        except (RedisError, OSError) as e:
            cache_failures.labels(operation="get").inc()
            raise CacheUnavailableError(f"Error reading {key}: {e}") from e

        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set_temporary(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """
        Write a temporary value with a TTL

        Dicts and lists are stored as JSON. Never raises.

        Returns:
            True if the value was stored
        """
        if self.client is None:
            cache_failures.labels(operation="set").inc()
            logger.debug(f"Cache not connected, skipping write of {key}")
            return False
        try:
            if not isinstance(value, (str, bytes)):
                value = json.dumps(value, default=_json_serial)
            await self.client.setex(key, ttl_seconds, value)
            logger.debug(f"Set key {key} with expire={ttl_seconds}s")
            return True
        except (RedisError, OSError, TypeError) as e:
            cache_failures.labels(operation="set").inc()
            logger.warning(f"Error setting key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key; returns False when the cache is unavailable"""
        if self.client is None:
            return False
        try:
            await self.client.delete(key)
            return True
        except (RedisError, OSError) as e:
            cache_failures.labels(operation="delete").inc()
            logger.warning(f"Error deleting key {key}: {e}")
            return False


def create_sql_engine(config: Optional[Settings] = None) -> Engine:
    """Create the SQLAlchemy engine backing the character ledger"""
    config = config or default_settings
    engine = create_engine(
        config.database_url,
        pool_pre_ping=True,
        echo=config.database_echo_sql,
    )
    logger.info(f"SQL engine created for {engine.url.render_as_string(hide_password=True)}")
    return engine
