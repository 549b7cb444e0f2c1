"""
Pytest configuration and fixtures for all tests
"""

import random
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from world_service.config import Settings
from world_service.ledger import create_tables
from world_service.models.economy import ItemCategory, MarketItem
from world_service.models.world import utcnow
from world_service.simulation import WorldSimulation
from world_service.utils.events import EventBus


@pytest.fixture
def test_settings():
    """Settings for testing, independent of the YAML file and environment"""
    return Settings(
        service_name="test-world-service",
        environment="test",
        debug=True,
        redis_db=1,
        database_url="sqlite://",
        scheduler_enabled=False,
        log_file="logs/test-world-service.log",
    )


@pytest.fixture
def mock_cache():
    """Cache double: empty on read, successful on write"""
    cache = AsyncMock()
    cache.get_temporary = AsyncMock(return_value=None)
    cache.set_temporary = AsyncMock(return_value=True)
    cache.delete = AsyncMock(return_value=True)
    cache.health_check = AsyncMock(return_value=True)
    return cache


@pytest.fixture
def mock_ledger():
    """Ledger double with a single player holding 1000"""
    balances = {"player_1": 1000.0}

    async def get_balance(player_id):
        return balances.get(player_id)

    async def set_balance(player_id, new_balance):
        if player_id not in balances:
            raise LookupError(player_id)
        balances[player_id] = new_balance

    ledger = AsyncMock()
    ledger.balances = balances
    ledger.get_balance = AsyncMock(side_effect=get_balance)
    ledger.set_balance = AsyncMock(side_effect=set_balance)
    ledger.count_online_players = AsyncMock(return_value=3)
    return ledger


@pytest.fixture
def mock_event_store():
    store = AsyncMock()
    store.fetch_active = AsyncMock(return_value=[])
    store.add = AsyncMock(side_effect=lambda event: event)
    return store


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite shared across connections"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
async def simulation(mock_cache, mock_ledger, mock_event_store, test_settings):
    """Started simulation on built-in defaults, no scheduled ticks"""
    sim = WorldSimulation(
        cache=mock_cache,
        ledger=mock_ledger,
        event_store=mock_event_store,
        config=test_settings,
        rng=random.Random(42),
    )
    await sim.start()
    yield sim
    await sim.cleanup()


def make_item(**overrides) -> MarketItem:
    """Market item with sensible defaults for tests"""
    fields = dict(
        id="widget",
        name="Widget",
        category=ItemCategory.DRUGS,
        base_price=100.0,
        current_price=100.0,
        supply=50.0,
        demand=50.0,
        volatility=0.2,
        average_volume=4.0,
        last_update=utcnow() - timedelta(minutes=5),
    )
    fields.update(overrides)
    return MarketItem(**fields)
