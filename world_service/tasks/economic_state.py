"""
Economic State Tasks - City-wide price and activity indices
"""

from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from ..config import Settings, settings as default_settings
from ..models.economy import EconomicEvent, ImpactType, ItemCategory, MarketItem
from ..models.world import EconomicState, utcnow
from ..utils import events
from ..utils.events import EventBus
from ..utils.snapshots import SnapshotLoad, load_snapshot, save_snapshot

ECONOMIC_STATE_CACHE_KEY = "world:economic"


def default_economic_state() -> EconomicState:
    return EconomicState(
        drug_prices={"weed": 50, "cocaine": 200, "meth": 150, "heroin": 300},
        weapon_availability={"pistol": 80, "smg": 60, "rifle": 40, "shotgun": 70},
        law_enforcement_activity=50,
        tourist_activity=60,
        business_activity=70,
    )


class EconomicStateAggregator:
    """Owns the singleton EconomicState"""

    def __init__(
        self,
        cache,
        bus: EventBus,
        config: Optional[Settings] = None,
        event_store=None,
    ):
        self.cache = cache
        self.bus = bus
        self.config = config or default_settings
        self.event_store = event_store
        self.state: Optional[EconomicState] = None

    async def load(self) -> SnapshotLoad:
        result = await load_snapshot(
            self.cache,
            ECONOMIC_STATE_CACHE_KEY,
            EconomicState.model_validate,
            default_economic_state,
        )
        self.state = result.value
        if not result.from_cache:
            await self.cache_state()
            logger.info(f"Initialized default economic state ({result.reason})")
        return result

    async def cache_state(self) -> bool:
        if self.state is None:
            return False
        return await save_snapshot(
            self.cache,
            ECONOMIC_STATE_CACHE_KEY,
            self.state.model_dump(mode="json"),
            self.config.world_state_cache_ttl,
        )

    def get_economic_state(self) -> Optional[EconomicState]:
        return self.state

    async def update_economic_state(self, updates: Dict[str, Any]) -> Optional[EconomicState]:
        """
        Merge a partial update into the economic state

        Activity indices are clamped to [0, 100]. Does nothing when no
        state has been loaded.
        """
        if self.state is None:
            logger.debug("No economic state loaded, ignoring update")
            return None

        patch = {k: v for k, v in updates.items() if k in EconomicState.model_fields and k != "last_update"}

        merged = self.state.model_dump()
        merged.update(patch)
        merged["last_update"] = utcnow()
        self.state = EconomicState.model_validate(merged)

        await self.cache_state()
        self.bus.emit(events.ECONOMIC_STATE_CHANGED, self.state)
        logger.info(f"Economic state updated: {sorted(patch)}")
        return self.state

    def get_economic_level(self) -> str:
        if self.state is None:
            return "average"
        if self.state.business_activity < self.config.economic_poor_threshold:
            return "poor"
        if self.state.business_activity >= self.config.economic_wealthy_threshold:
            return "wealthy"
        return "average"

    def get_crime_level(self) -> str:
        if self.state is None:
            return "medium"
        if self.state.law_enforcement_activity >= self.config.crime_low_threshold:
            return "low"
        if self.state.law_enforcement_activity < self.config.crime_high_threshold:
            return "high"
        return "medium"

    async def calculate_inflation(self) -> float:
        """Sum of signed severities of active economic events"""
        if self.event_store is None:
            return self.config.default_inflation_rate
        try:
            active_events = await self.event_store.fetch_active()
        except Exception as e:
            logger.error(f"Failed to calculate inflation: {e}")
            return self.config.default_inflation_rate

        return self.inflation_from_events(active_events)

    def inflation_from_events(self, active_events: Iterable[EconomicEvent]) -> float:
        active_events = list(active_events)
        if not active_events:
            return self.config.default_inflation_rate
        return round(sum(event.signed_severity for event in active_events), 6)

    async def generate_economic_event(
        self,
        event_type: str,
        impact_type: ImpactType,
        severity: float,
        description: str = "",
        duration: int = 60,
    ) -> Dict[str, Any]:
        """Record an inflationary or deflationary economic event"""
        try:
            event = EconomicEvent(
                event_type=event_type,
                impact_type=ImpactType(impact_type),
                severity=severity,
                description=description,
                duration=duration,
            )
            if self.event_store is None:
                raise RuntimeError("no economic event store configured")
            await self.event_store.add(event)
        except Exception as e:
            logger.error(f"Failed to generate economic event: {e}")
            return {"success": False, "error": f"Failed to generate economic event: {e}"}

        logger.info(f"Generated economic event: {event_type} ({event.impact_type.value}, severity {severity})")
        return {"success": True, "event_id": event.id}

    async def recompute_indices(self, market_items: List[MarketItem]) -> Optional[EconomicState]:
        """Economic index tick: refresh inflation and mirror market prices"""
        if self.state is None:
            return None

        inflation = await self.calculate_inflation()
        drug_prices = dict(self.state.drug_prices)
        weapon_availability = dict(self.state.weapon_availability)

        for item in market_items:
            if item.category == ItemCategory.DRUGS:
                drug_prices[item.id] = item.current_price
            elif item.category == ItemCategory.WEAPONS:
                weapon_availability[item.id] = round(item.supply, 2)

        return await self.update_economic_state({
            "inflation_rate": inflation,
            "drug_prices": drug_prices,
            "weapon_availability": weapon_availability,
        })
