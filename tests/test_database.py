"""
Unit tests for the cache manager
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from world_service.database import CacheManager
from world_service.exceptions import CacheUnavailableError


class TestCacheManager:
    """Test CacheManager class"""

    def test_initialization(self, test_settings):
        cache = CacheManager(test_settings)
        assert cache.pool is None
        assert cache.client is None
        assert not cache.is_connected

    @pytest.mark.asyncio
    async def test_connect_success(self, test_settings):
        cache = CacheManager(test_settings)

        with patch('world_service.database.ConnectionPool') as mock_pool_class:
            with patch('world_service.database.aioredis.Redis') as mock_redis_class:
                mock_pool_class.return_value = MagicMock()
                mock_client = AsyncMock()
                mock_client.ping = AsyncMock()
                mock_redis_class.return_value = mock_client

                assert await cache.connect(max_retries=1, retry_delay=0) is True

                assert cache.client is mock_client
                mock_pool_class.assert_called_once()

    @pytest.mark.asyncio
    async def test_connect_retries_then_gives_up(self, test_settings):
        cache = CacheManager(test_settings)

        with patch('world_service.database.ConnectionPool') as mock_pool_class:
            with patch('world_service.database.aioredis.Redis') as mock_redis_class:
                with patch('world_service.database.asyncio.sleep', new=AsyncMock()) as mock_sleep:
                    mock_pool = MagicMock()
                    mock_pool.disconnect = AsyncMock()
                    mock_pool_class.return_value = mock_pool

                    mock_client = AsyncMock()
                    mock_client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
                    mock_redis_class.return_value = mock_client

                    assert await cache.connect(max_retries=3, retry_delay=0.5) is False

                    assert mock_client.ping.await_count == 3
                    assert [c.args[0] for c in mock_sleep.await_args_list] == [0.5, 1.0]
                    assert cache.client is None

    @pytest.mark.asyncio
    async def test_get_temporary_when_disconnected_raises(self, test_settings):
        cache = CacheManager(test_settings)
        with pytest.raises(CacheUnavailableError):
            await cache.get_temporary("world:territories")

    @pytest.mark.asyncio
    async def test_get_temporary_wraps_redis_errors(self, test_settings):
        client = AsyncMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("gone"))
        cache = CacheManager(test_settings, client=client)

        with pytest.raises(CacheUnavailableError):
            await cache.get_temporary("world:territories")

    @pytest.mark.asyncio
    async def test_get_temporary_miss(self, test_settings):
        client = AsyncMock()
        client.get = AsyncMock(return_value=None)
        cache = CacheManager(test_settings, client=client)

        assert await cache.get_temporary("world:territories") is None

    @pytest.mark.asyncio
    async def test_set_temporary_serializes_json(self, test_settings):
        client = AsyncMock()
        cache = CacheManager(test_settings, client=client)
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert await cache.set_temporary("k", {"at": stamp}, 300) is True

        key, ttl, payload = client.setex.await_args.args
        assert (key, ttl) == ("k", 300)
        assert json.loads(payload) == {"at": stamp.isoformat()}

    @pytest.mark.asyncio
    async def test_set_temporary_never_raises(self, test_settings):
        client = AsyncMock()
        client.setex = AsyncMock(side_effect=RedisConnectionError("gone"))
        cache = CacheManager(test_settings, client=client)

        assert await cache.set_temporary("k", "v", 300) is False
        assert await CacheManager(test_settings).set_temporary("k", "v", 300) is False

    @pytest.mark.asyncio
    async def test_delete(self, test_settings):
        client = AsyncMock()
        cache = CacheManager(test_settings, client=client)

        assert await cache.delete("economy:player:player_1") is True
        client.delete.assert_awaited_once_with("economy:player:player_1")

    @pytest.mark.asyncio
    async def test_delete_never_raises(self, test_settings):
        client = AsyncMock()
        client.delete = AsyncMock(side_effect=RedisConnectionError("gone"))

        assert await CacheManager(test_settings, client=client).delete("k") is False
        assert await CacheManager(test_settings).delete("k") is False

    @pytest.mark.asyncio
    async def test_health_check(self, test_settings):
        assert await CacheManager(test_settings).health_check() is False

        client = AsyncMock()
        client.ping = AsyncMock(return_value=True)
        assert await CacheManager(test_settings, client=client).health_check() is True
