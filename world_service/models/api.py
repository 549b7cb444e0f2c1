"""
Request bodies for the HTTP API
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .economy import ImpactType, TransactionCategory, TransactionType
from .world import EventLocation, EventSeverity, WorldEventType


class TerritoryControlRequest(BaseModel):
    faction_id: Optional[str] = Field(None, description="New controller; null clears control")


class WorldEventCreateRequest(BaseModel):
    type: WorldEventType
    location: EventLocation
    severity: EventSeverity
    duration: int = Field(..., ge=0, description="Duration in minutes")
    affected_factions: List[str] = Field(default_factory=list)
    description: str = ""


class EconomicStateUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged"""
    drug_prices: Optional[dict] = None
    weapon_availability: Optional[dict] = None
    law_enforcement_activity: Optional[float] = None
    tourist_activity: Optional[float] = None
    business_activity: Optional[float] = None


class TradeRequest(BaseModel):
    player_id: str
    item_id: str
    quantity: int = 1


class BalanceUpdateRequest(BaseModel):
    amount: float


class PlayerTransactionRequest(BaseModel):
    """Direct income or expense outside the market"""
    amount: float
    type: TransactionType = Field(..., description="income or expense")
    category: TransactionCategory = TransactionCategory.OTHER
    description: str = ""


class EconomicEventRequest(BaseModel):
    event_type: str
    impact_type: ImpactType
    severity: float
    description: str = ""
    duration: int = Field(60, ge=0)
