"""
World State Tasks - Territory control and world events
Holds the authoritative in-process copy of territories and active events,
answers point/radius queries and sweeps expired events on a fixed interval.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from prometheus_client import Counter

from ..config import Settings, settings as default_settings
from ..exceptions import TerritoryNotFoundError
from ..models.world import (
    Boundaries,
    CurrentWorldState,
    EventLocation,
    EventSeverity,
    EventStats,
    Territory,
    TerritoryStats,
    WorldEvent,
    WorldEventType,
    WorldStats,
    utcnow,
)
from ..utils import events
from ..utils.events import EventBus
from ..utils.snapshots import SnapshotLoad, load_snapshot, save_snapshot

TERRITORIES_CACHE_KEY = "world:territories"

expired_events_total = Counter(
    "world_events_expired_total",
    "World events removed by the expiry sweep",
    ["event_type"]
)

# Named landmarks used to describe coordinates
LANDMARKS = [
    {"name": "Los Santos International Airport", "x": -1000, "y": -3000, "radius": 500},
    {"name": "Downtown Los Santos", "x": 200, "y": -900, "radius": 800},
    {"name": "Vinewood Hills", "x": 300, "y": 1200, "radius": 600},
    {"name": "Grove Street", "x": -100, "y": -1600, "radius": 300},
    {"name": "Santa Monica Beach", "x": -1500, "y": -1000, "radius": 400},
    {"name": "Industrial District", "x": 1000, "y": -2000, "radius": 700},
]


def default_territories() -> List[Territory]:
    """Built-in territory seed used when the cache has nothing usable"""
    now = utcnow()
    seeds = [
        ("grove_street", "Grove Street", (-2493, -617, -2393, -517), False, 85),
        ("ballas_territory", "Ballas Territory", (-2616, -122, -2516, -22), False, 75),
        ("downtown_ls", "Downtown Los Santos", (-762, -818, -562, -618), True, 95),
        ("vinewood", "Vinewood", (-1289, -1098, -1089, -898), False, 90),
        ("del_perro", "Del Perro", (-1756, -1026, -1556, -826), False, 70),
    ]
    return [
        Territory(
            id=territory_id,
            name=name,
            boundaries=Boundaries(x1=x1, y1=y1, x2=x2, y2=y2),
            contested=contested,
            value=value,
            last_update=now,
        )
        for territory_id, name, (x1, y1, x2, y2), contested, value in seeds
    ]


def _parse_territories(data: Any) -> List[Territory]:
    if not isinstance(data, list):
        raise TypeError(f"expected a list of territories, got {type(data).__name__}")
    return [Territory.model_validate(item) for item in data]


def weather_for(now: datetime) -> str:
    """Seasonal weather pattern for a point in time"""
    month = now.month
    hour = now.hour

    if 6 <= month <= 9:
        # Summer
        return "sunny" if 6 <= hour <= 18 else "clear"
    if month >= 12 or month <= 3:
        # Winter
        if 5 <= hour <= 7:
            return "foggy"
        if hour >= 18 or hour <= 6:
            return "cloudy"
        return "clear"
    # Spring/Fall
    if 14 <= hour <= 17:
        return "cloudy"
    if hour >= 18 or hour <= 6:
        return "clear"
    return "sunny"


class WorldStateManager:
    """
    Territory and event store

    All mutation happens synchronously on the event loop; the only awaits
    are cache checkpoints, which never raise.
    """

    def __init__(
        self,
        cache,
        bus: EventBus,
        config: Optional[Settings] = None,
        ledger=None,
        economic_state=None,
    ):
        self.cache = cache
        self.bus = bus
        self.config = config or default_settings
        self.ledger = ledger
        self.economic_state = economic_state
        self.territories: Dict[str, Territory] = {}
        self.active_events: Dict[str, WorldEvent] = {}
        self._listeners: List[tuple] = []
        logger.info("WorldStateManager initialized")

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def load(self) -> SnapshotLoad:
        """Hydrate territories from the cache or the built-in seed"""
        result = await load_snapshot(
            self.cache,
            TERRITORIES_CACHE_KEY,
            _parse_territories,
            default_territories,
        )
        self.territories = {territory.id: territory for territory in result.value}

        if not result.from_cache:
            await self.cache_territories()
            logger.info(f"Initialized {len(self.territories)} default territories ({result.reason})")
        else:
            logger.info(f"Loaded {len(self.territories)} territories from cache")
        return result

    def attach_listeners(self):
        """Subscribe to game triggers on the event bus"""
        if self._listeners:
            return
        self._listeners = [
            (events.FACTION_CONFLICT, self.create_territory_conflict_event),
            (events.PLAYER_ACTIVITY, self.handle_player_activity),
            (events.ECONOMIC_CHANGE, self.create_economic_event),
        ]
        for event_name, handler in self._listeners:
            self.bus.on(event_name, handler)
        logger.info("World service game event listeners set up")

    def detach_listeners(self):
        for event_name, handler in self._listeners:
            self.bus.off(event_name, handler)
        self._listeners = []

    async def cache_territories(self) -> bool:
        territories = [t.model_dump(mode="json") for t in self.territories.values()]
        return await save_snapshot(
            self.cache,
            TERRITORIES_CACHE_KEY,
            territories,
            self.config.world_state_cache_ttl,
        )

    # ========================================================================
    # Territories
    # ========================================================================

    def get_territory(self, territory_id: str) -> Optional[Territory]:
        return self.territories.get(territory_id)

    def get_all_territories(self) -> List[Territory]:
        return list(self.territories.values())

    def get_territory_at_position(self, x: float, y: float) -> Optional[Territory]:
        """First territory whose rectangle contains the point"""
        for territory in self.territories.values():
            if territory.boundaries.contains(x, y):
                return territory
        return None

    def is_in_contested_territory(self, x: float, y: float) -> bool:
        return any(
            territory.contested and territory.boundaries.contains(x, y)
            for territory in self.territories.values()
        )

    def is_strategic(self, territory: Territory) -> bool:
        return territory.value >= self.config.territory_strategic_value

    async def update_territory_control(self, territory_id: str, faction_id: Optional[str]) -> Territory:
        """
        Hand a territory to a faction (or clear control with None)

        A strategic territory changing hands becomes contested; any other
        update clears the contested flag.

        Raises:
            TerritoryNotFoundError: Unknown territory id
        """
        territory = self.territories.get(territory_id)
        if territory is None:
            raise TerritoryNotFoundError(territory_id)

        previous_faction = territory.controlling_faction
        territory.controlling_faction = faction_id
        territory.contested = faction_id != previous_faction and self.is_strategic(territory)
        territory.last_update = utcnow()

        await self.cache_territories()

        self.bus.emit(events.TERRITORY_CONTROL_CHANGED, {
            "territory_id": territory_id,
            "previous_faction": previous_faction,
            "new_faction": faction_id,
            "territory": territory,
        })

        logger.info(
            f"Territory {territory_id} control changed from {previous_faction or 'none'} "
            f"to {faction_id or 'none'} (contested={territory.contested})"
        )
        return territory

    # ========================================================================
    # World events
    # ========================================================================

    def get_active_events(self) -> List[WorldEvent]:
        return list(self.active_events.values())

    def get_active_world_events(
        self,
        event_type: Optional[str] = None,
        severity: Optional[str] = None,
    ) -> List[WorldEvent]:
        """Active events filtered by type and/or severity"""
        return [
            event for event in self.active_events.values()
            if (event_type is None or event.type.value == event_type)
            and (severity is None or event.severity.value == severity)
        ]

    def get_events_at_location(self, x: float, y: float, z: float = 0.0) -> List[WorldEvent]:
        """
        Active events whose radius covers the point

        Distance is measured on (x, y) only; z is ignored.
        """
        return [
            event for event in self.active_events.values()
            if math.hypot(event.location.x - x, event.location.y - y) <= event.location.radius
        ]

    def add_event(self, event: WorldEvent) -> WorldEvent:
        self.active_events[event.id] = event
        self.bus.emit(events.EVENT_CREATED, event)
        logger.info(f"Created {event.type.value} event: {event.description}")
        return event

    def create_event(
        self,
        event_type: WorldEventType,
        location: EventLocation,
        severity: EventSeverity,
        duration: int,
        affected_factions: Optional[List[str]] = None,
        description: str = "",
    ) -> WorldEvent:
        """Create and register a world event (AI generation, admin tools, triggers)"""
        event = WorldEvent.create(
            event_type=event_type,
            location=location,
            severity=severity,
            duration=duration,
            affected_factions=affected_factions,
            description=description,
        )
        return self.add_event(event)

    def create_territory_conflict_event(self, faction_a: str, faction_b: str, location: Dict[str, float]) -> WorldEvent:
        return self.create_event(
            WorldEventType.TERRITORY_CONFLICT,
            EventLocation(x=location["x"], y=location["y"], z=location.get("z", 0.0), radius=200),
            EventSeverity.HIGH,
            duration=30,
            affected_factions=[faction_a, faction_b],
            description=f"Territory conflict between {faction_a} and {faction_b}",
        )

    def create_police_raid_event(self, location: Dict[str, float]) -> WorldEvent:
        return self.create_event(
            WorldEventType.POLICE_RAID,
            EventLocation(x=location["x"], y=location["y"], z=location.get("z", 0.0), radius=300),
            EventSeverity.HIGH,
            duration=20,
            description="Police raid in progress",
        )

    def create_economic_event(self, change_type: str, magnitude: float) -> WorldEvent:
        """City-wide economic shift"""
        if magnitude > 2:
            severity = EventSeverity.HIGH
        elif magnitude > 1:
            severity = EventSeverity.MEDIUM
        else:
            severity = EventSeverity.LOW

        return self.create_event(
            WorldEventType.ECONOMIC_SHIFT,
            EventLocation(x=0, y=0, z=0, radius=5000),
            severity,
            duration=60,
            description=f"Economic shift in {change_type} market",
        )

    def handle_player_activity(self, player_id: str, activity: str, location: Dict[str, float]) -> Optional[WorldEvent]:
        """Translate a player activity into a world event where one applies"""
        event = None
        if activity == "police_chase":
            event = self.create_police_raid_event(location)
        elif activity == "drug_deal":
            event = self.create_economic_event("drug_market", 1)
        elif activity == "weapon_purchase":
            event = self.create_economic_event("weapon_market", 1)

        logger.debug(f"Handled player activity: {activity} for player {player_id}")
        return event

    def process_active_events(self, now: Optional[datetime] = None) -> List[WorldEvent]:
        """
        Remove every event whose expiry is in the past

        Emits one event_expired notification per removed event.

        Returns:
            The removed events
        """
        now = now or utcnow()
        expired = [event for event in self.active_events.values() if event.is_expired(now)]

        for event in expired:
            del self.active_events[event.id]
            expired_events_total.labels(event_type=event.type.value).inc()
            self.bus.emit(events.EVENT_EXPIRED, event)

        if expired:
            logger.info(f"Processed {len(expired)} expired world events")
        return expired

    # ========================================================================
    # Derived views
    # ========================================================================

    def get_world_stats(self) -> WorldStats:
        territories = list(self.territories.values())
        by_type: Dict[str, int] = {}
        for event in self.active_events.values():
            by_type[event.type.value] = by_type.get(event.type.value, 0) + 1

        return WorldStats(
            territories=TerritoryStats(
                total=len(territories),
                controlled=sum(1 for t in territories if t.controlling_faction),
                contested=sum(1 for t in territories if t.contested),
            ),
            events=EventStats(active=len(self.active_events), by_type=by_type),
            economic=self.economic_state.get_economic_state() if self.economic_state else None,
        )

    @staticmethod
    def get_location_name(x: float, y: float) -> str:
        for landmark in LANDMARKS:
            if math.hypot(x - landmark["x"], y - landmark["y"]) <= landmark["radius"]:
                return landmark["name"]
        return "Unknown Location"

    @staticmethod
    def get_weather(now: Optional[datetime] = None) -> str:
        return weather_for(now or utcnow())

    async def get_active_players_count(self) -> int:
        if self.ledger is None:
            return 0
        try:
            return await self.ledger.count_online_players()
        except Exception as e:
            logger.warning(f"Failed to get active players count: {e}")
            return 0

    async def get_current_world_state(self, now: Optional[datetime] = None) -> CurrentWorldState:
        """World snapshot for mission generation"""
        now = now or utcnow()
        return CurrentWorldState(
            current_time=now,
            weather=self.get_weather(now),
            active_players=await self.get_active_players_count(),
            faction_wars=any(e.type == WorldEventType.FACTION_WAR for e in self.active_events.values()),
            economic_state=self.economic_state.get_economic_level() if self.economic_state else "average",
            crime_level=self.economic_state.get_crime_level() if self.economic_state else "medium",
        )
