"""
World state data models
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Dict, List
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorldEventType(str, Enum):
    """Kinds of time-bounded world events"""
    FACTION_WAR = "faction_war"
    TERRITORY_CONFLICT = "territory_conflict"
    ECONOMIC_SHIFT = "economic_shift"
    WEATHER_CHANGE = "weather_change"
    POLICE_RAID = "police_raid"


class EventSeverity(str, Enum):
    """World event severity"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Boundaries(BaseModel):
    """Axis-aligned territory rectangle"""
    x1: float
    y1: float
    x2: float
    y2: float
    z: Optional[float] = None

    @model_validator(mode='after')
    def validate_ordering(self) -> 'Boundaries':
        if self.x1 >= self.x2 or self.y1 >= self.y2:
            raise ValueError(
                f"boundaries must satisfy x1 < x2 and y1 < y2, got "
                f"({self.x1}, {self.y1}, {self.x2}, {self.y2})"
            )
        return self

    def contains(self, x: float, y: float) -> bool:
        return self.x1 <= x <= self.x2 and self.y1 <= y <= self.y2


class Territory(BaseModel):
    """Rectangular in-world zone controlled by at most one faction"""
    id: str
    name: str
    boundaries: Boundaries
    contested: bool = False
    controlling_faction: Optional[str] = None
    value: float = Field(..., description="Strategic/economic value")
    last_update: datetime = Field(default_factory=utcnow)

    @field_validator('value')
    @classmethod
    def validate_value(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"territory value must be positive, got {v}")
        return v


class EventLocation(BaseModel):
    """Centre and radius of a world event"""
    x: float
    y: float
    z: float = 0.0
    radius: float = Field(..., ge=0)


class WorldEvent(BaseModel):
    """Time-bounded occurrence affecting a location and a set of factions"""
    id: str
    type: WorldEventType
    location: EventLocation
    severity: EventSeverity
    duration: int = Field(..., ge=0, description="Duration in minutes")
    affected_factions: List[str] = Field(default_factory=list)
    description: str = ""
    created_at: datetime
    expires_at: datetime

    @classmethod
    def create(
        cls,
        event_type: WorldEventType,
        location: EventLocation,
        severity: EventSeverity,
        duration: int,
        affected_factions: Optional[List[str]] = None,
        description: str = "",
        now: Optional[datetime] = None,
    ) -> 'WorldEvent':
        """Build an event whose expiry is derived from its creation time"""
        created_at = now or utcnow()
        return cls(
            id=f"{event_type.value}_{int(created_at.timestamp() * 1000)}_{uuid4().hex[:8]}",
            type=event_type,
            location=location,
            severity=severity,
            duration=duration,
            affected_factions=list(dict.fromkeys(affected_factions or [])),
            description=description,
            created_at=created_at,
            expires_at=created_at + timedelta(minutes=duration),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > self.expires_at


class EconomicState(BaseModel):
    """Singleton record of price and activity indices"""
    drug_prices: Dict[str, float] = Field(default_factory=dict)
    weapon_availability: Dict[str, float] = Field(default_factory=dict)
    law_enforcement_activity: float = 50.0
    tourist_activity: float = 50.0
    business_activity: float = 50.0
    inflation_rate: float = 0.0
    last_update: datetime = Field(default_factory=utcnow)

    @field_validator('law_enforcement_activity', 'tourist_activity', 'business_activity')
    @classmethod
    def clamp_activity(cls, v: float) -> float:
        """Activity indices are kept within [0, 100]"""
        return max(0.0, min(100.0, float(v)))


class TerritoryStats(BaseModel):
    total: int
    controlled: int
    contested: int


class EventStats(BaseModel):
    active: int
    by_type: Dict[str, int] = Field(default_factory=dict)


class WorldStats(BaseModel):
    """Aggregate view of territories, events and the economy"""
    territories: TerritoryStats
    events: EventStats
    economic: Optional[EconomicState] = None


class CurrentWorldState(BaseModel):
    """Snapshot consumed by mission generation"""
    current_time: datetime
    weather: str
    active_players: int
    faction_wars: bool
    economic_state: str
    crime_level: str
