"""
World Simulation
Owns every piece of simulation state and its collaborators; one instance
per running service (or per test).
"""

import random
from typing import Dict, Optional

from loguru import logger

from .config import Settings, settings as default_settings
from .scheduler import TickScheduler
from .tasks.economic_state import EconomicStateAggregator
from .tasks.economy import MarketManager
from .tasks.pricing import MarketPricingEngine
from .tasks.world import WorldStateManager
from .utils.events import EventBus
from .utils.snapshots import SnapshotLoad


class WorldSimulation:
    """
    Container for the territory/event store, economic state and market

    Usage:
        simulation = WorldSimulation(cache, ledger, event_store)
        await simulation.start()
        ...
        await simulation.cleanup()
    """

    def __init__(
        self,
        cache,
        ledger,
        event_store=None,
        config: Optional[Settings] = None,
        bus: Optional[EventBus] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or default_settings
        self.cache = cache
        self.ledger = ledger
        self.event_store = event_store
        self.bus = bus or EventBus()

        self.economic_state = EconomicStateAggregator(cache, self.bus, self.config, event_store)
        self.world = WorldStateManager(cache, self.bus, self.config, ledger, self.economic_state)
        self.market = MarketManager(
            cache,
            self.bus,
            ledger,
            self.config,
            pricing=MarketPricingEngine(self.config, rng),
            economic_state=self.economic_state,
        )
        self.scheduler = TickScheduler(
            sweep_events=self.sweep_events,
            update_prices=self.market.update_market_prices,
            recompute_economy=self.recompute_economy,
            config=self.config,
        )
        self.hydration: Dict[str, SnapshotLoad] = {}
        self._started = False

    async def load_state(self) -> Dict[str, SnapshotLoad]:
        """Hydrate all state from the cache or built-in defaults; never raises"""
        self.hydration = {
            "territories": await self.world.load(),
            "economic_state": await self.economic_state.load(),
            "market_items": await self.market.load(),
        }
        for name, result in self.hydration.items():
            logger.info(f"Hydrated {name} from {result.source.value}" + (f" ({result.reason})" if result.reason else ""))
        return self.hydration

    async def start(self, schedule: Optional[bool] = None) -> None:
        if self._started:
            logger.warning("World simulation already started")
            return

        await self.load_state()
        self.world.attach_listeners()
        self.market.attach_listeners()

        if schedule is None:
            schedule = self.config.scheduler_enabled
        if schedule:
            self.scheduler.start()

        self._started = True
        logger.info("✓ World simulation started")

    async def sweep_events(self):
        return self.world.process_active_events()

    async def recompute_economy(self):
        return await self.economic_state.recompute_indices(self.market.get_all_market_items())

    async def cleanup(self) -> None:
        """Stop ticks and release the bus; safe to call repeatedly"""
        self.scheduler.stop()
        self.world.detach_listeners()
        self.market.detach_listeners()
        self.bus.remove_all_listeners()
        await self.bus.cancel_pending()
        if self._started:
            logger.info("World simulation cleaned up")
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started
