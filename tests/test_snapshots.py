"""
Unit tests for cache snapshot hydration
"""

import json
from unittest.mock import AsyncMock

import pytest

from world_service.exceptions import CacheUnavailableError
from world_service.models.world import EconomicState
from world_service.utils.snapshots import SnapshotSource, load_snapshot, save_snapshot


def _default_state():
    return EconomicState(business_activity=11)


class TestLoadSnapshot:
    """Test every hydration outcome"""

    @pytest.mark.asyncio
    async def test_cache_hit(self):
        cache = AsyncMock()
        cache.get_temporary = AsyncMock(return_value=json.dumps({"business_activity": 77}))

        result = await load_snapshot(cache, "world:economic", EconomicState.model_validate, _default_state)

        assert result.from_cache
        assert result.source == SnapshotSource.CACHE
        assert result.value.business_activity == 77

    @pytest.mark.asyncio
    async def test_cache_miss(self):
        cache = AsyncMock()
        cache.get_temporary = AsyncMock(return_value=None)

        result = await load_snapshot(cache, "world:economic", EconomicState.model_validate, _default_state)

        assert result.source == SnapshotSource.DEFAULT
        assert result.reason == "cache_miss"
        assert result.value.business_activity == 11

    @pytest.mark.asyncio
    async def test_cache_unavailable(self):
        cache = AsyncMock()
        cache.get_temporary = AsyncMock(side_effect=CacheUnavailableError("down"))

        result = await load_snapshot(cache, "world:economic", EconomicState.model_validate, _default_state)

        assert result.reason == "cache_unavailable"
        assert result.value.business_activity == 11

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        cache = AsyncMock()
        cache.get_temporary = AsyncMock(return_value="{not json")

        result = await load_snapshot(cache, "world:economic", EconomicState.model_validate, _default_state)

        assert result.reason == "parse_error"

    @pytest.mark.asyncio
    async def test_invalid_shape(self):
        cache = AsyncMock()
        cache.get_temporary = AsyncMock(return_value=json.dumps({"business_activity": "lots"}))

        result = await load_snapshot(cache, "world:economic", EconomicState.model_validate, _default_state)

        assert result.reason == "parse_error"
        assert not result.from_cache


class TestSaveSnapshot:

    @pytest.mark.asyncio
    async def test_failed_write_reports_false(self):
        cache = AsyncMock()
        cache.set_temporary = AsyncMock(return_value=False)

        assert await save_snapshot(cache, "k", {"a": 1}, 60) is False
        cache.set_temporary.assert_awaited_once_with("k", {"a": 1}, 60)
