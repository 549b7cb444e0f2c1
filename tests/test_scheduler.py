"""
Tests for the tick scheduler and the simulation lifecycle
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from world_service.models.world import EventLocation, EventSeverity, WorldEvent, WorldEventType, utcnow
from world_service.scheduler import (
    ECONOMY_RECOMPUTE_JOB,
    EVENT_SWEEP_JOB,
    PRICE_UPDATE_JOB,
    TickScheduler,
)
from world_service.simulation import WorldSimulation
from world_service.utils import events


@pytest.fixture
def ticks():
    return AsyncMock(), AsyncMock(), AsyncMock()


class TestTickScheduler:

    @pytest.mark.asyncio
    async def test_start_registers_three_jobs(self, ticks, test_settings):
        scheduler = TickScheduler(*ticks, config=test_settings)

        scheduler.start()
        try:
            jobs = {job.id: job for job in scheduler.get_jobs()}
            assert set(jobs) == {EVENT_SWEEP_JOB, PRICE_UPDATE_JOB, ECONOMY_RECOMPUTE_JOB}
            assert jobs[EVENT_SWEEP_JOB].trigger.interval == timedelta(seconds=30)
            assert jobs[PRICE_UPDATE_JOB].trigger.interval == timedelta(seconds=300)
            assert jobs[PRICE_UPDATE_JOB].max_instances == 1
            assert jobs[PRICE_UPDATE_JOB].coalesce is True
        finally:
            scheduler.stop()

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, ticks, test_settings):
        scheduler = TickScheduler(*ticks, config=test_settings)

        scheduler.stop()
        scheduler.start()
        scheduler.start()
        assert scheduler.is_running()
        assert len(scheduler.get_jobs()) == 3

        scheduler.stop()
        scheduler.stop()
        assert not scheduler.is_running()
        assert scheduler.get_jobs() == []

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, ticks, test_settings):
        scheduler = TickScheduler(*ticks, config=test_settings)
        scheduler.start()
        scheduler.stop()
        scheduler.start()
        try:
            assert len(scheduler.get_jobs()) == 3
        finally:
            scheduler.stop()

    @pytest.mark.asyncio
    async def test_run_tick_swallows_failures(self, test_settings):
        sweep = AsyncMock(side_effect=RuntimeError("boom"))
        scheduler = TickScheduler(sweep, AsyncMock(), AsyncMock(), config=test_settings)

        await scheduler.run_tick(EVENT_SWEEP_JOB)

        sweep.assert_awaited_once()


class TestWorldSimulation:

    @pytest.mark.asyncio
    async def test_start_hydrates_defaults(self, simulation):
        assert simulation.is_started
        assert {name: result.reason for name, result in simulation.hydration.items()} == {
            "territories": "cache_miss",
            "economic_state": "cache_miss",
            "market_items": "cache_miss",
        }
        assert simulation.world.get_territory("grove_street") is not None
        assert simulation.economic_state.get_economic_state() is not None
        assert simulation.market.get_market_item("weed") is not None

    @pytest.mark.asyncio
    async def test_cleanup_twice_does_not_raise(self, simulation):
        await simulation.cleanup()
        await simulation.cleanup()

        assert not simulation.is_started
        assert simulation.bus.listener_count(events.FACTION_CONFLICT) == 0
        assert simulation.bus.listener_count(events.EVENT_CREATED) == 0

    @pytest.mark.asyncio
    async def test_cleanup_before_start(self, mock_cache, mock_ledger, test_settings):
        sim = WorldSimulation(mock_cache, mock_ledger, config=test_settings)
        await sim.cleanup()

    @pytest.mark.asyncio
    async def test_cleanup_stops_scheduled_ticks(self, mock_cache, mock_ledger, test_settings):
        sim = WorldSimulation(mock_cache, mock_ledger, config=test_settings)
        await sim.start(schedule=True)
        assert sim.scheduler.is_running()

        await sim.cleanup()

        assert not sim.scheduler.is_running()

    @pytest.mark.asyncio
    async def test_sweep_tick(self, simulation):
        listener = MagicMock()
        simulation.bus.on(events.EVENT_EXPIRED, listener)
        simulation.world.add_event(WorldEvent.create(
            WorldEventType.POLICE_RAID,
            EventLocation(x=0, y=0, radius=10),
            EventSeverity.LOW,
            duration=1,
            now=utcnow() - timedelta(minutes=5),
        ))

        await simulation.scheduler.run_tick(EVENT_SWEEP_JOB)

        listener.assert_called_once()
        assert simulation.world.get_active_events() == []

    @pytest.mark.asyncio
    async def test_economy_recompute_tick(self, simulation):
        simulation.market.get_market_item("cocaine").current_price = 240.0

        await simulation.scheduler.run_tick(ECONOMY_RECOMPUTE_JOB)

        state = simulation.economic_state.get_economic_state()
        assert state.drug_prices["cocaine"] == 240.0
        assert state.inflation_rate == 0.02

    @pytest.mark.asyncio
    async def test_world_state_uses_economy(self, simulation):
        await simulation.economic_state.update_economic_state({"business_activity": 80, "law_enforcement_activity": 20})

        state = await simulation.world.get_current_world_state()

        assert state.economic_state == "wealthy"
        assert state.crime_level == "high"

    @pytest.mark.asyncio
    async def test_conflict_trigger_reaches_market(self, simulation):
        simulation.bus.emit(events.FACTION_CONFLICT, "families", "ballas", {"x": 0, "y": 0})

        assert "territory_conflict" in simulation.market.activity["pistol"].world_events

    @pytest.mark.asyncio
    async def test_cleanup_cancels_in_flight_handlers(self, simulation):
        started = asyncio.Event()

        async def slow_listener(*args):
            started.set()
            await asyncio.sleep(3600)

        simulation.bus.on(events.TERRITORY_CONTROL_CHANGED, slow_listener)
        await simulation.world.update_territory_control("vinewood", "ballas")
        await started.wait()
        task = next(iter(simulation.bus._pending))

        await simulation.cleanup()

        assert task.cancelled()
        assert simulation.bus._pending == set()
