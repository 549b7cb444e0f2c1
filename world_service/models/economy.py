"""
Economic system data models
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Any, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from .world import utcnow


class ItemCategory(str, Enum):
    """Market item categories"""
    DRUGS = "drugs"
    WEAPONS = "weapons"
    VEHICLES = "vehicles"
    SERVICES = "services"
    PROPERTY = "property"


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    INCOME = "income"
    EXPENSE = "expense"


class TransactionCategory(str, Enum):
    """What a direct income or expense was for"""
    MISSION_REWARD = "MISSION_REWARD"
    BUSINESS = "BUSINESS"
    PROPERTY = "PROPERTY"
    FACTION = "FACTION"
    FINE = "FINE"
    GAMBLING = "GAMBLING"
    OTHER = "OTHER"


class ImpactType(str, Enum):
    """Direction an economic event pushes prices"""
    INFLATION = "INFLATION"
    DEFLATION = "DEFLATION"


class MarketItem(BaseModel):
    """Item traded on the market"""
    id: str
    name: str
    category: ItemCategory
    base_price: float = Field(..., gt=0)
    current_price: float = Field(..., gt=0)
    supply: float = Field(50.0, ge=0, le=100)
    demand: float = Field(50.0, ge=0, le=100)
    volatility: float = Field(0.2, ge=0, le=1, description="How far the price may move per tick")
    last_update: datetime = Field(default_factory=utcnow)
    average_volume: float = Field(1.0, ge=0, description="Average units sold per tick")


class MarketActivity(BaseModel):
    """Activity recorded for one item since the last price tick"""
    sales_volume: int = 0
    purchase_events: int = 0
    restock_events: int = 0
    last_purchase_time: Optional[datetime] = None
    world_events: List[str] = Field(default_factory=list)


class Transaction(BaseModel):
    """Record of a completed purchase, sale, income or expense"""
    id: str = Field(default_factory=lambda: f"txn_{uuid4().hex[:12]}")
    type: TransactionType
    player_id: str
    item_id: Optional[str] = None
    amount: float
    category: Optional[TransactionCategory] = None
    description: str
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: Dict[str, Union[str, int, float, bool, None]] = Field(default_factory=dict)


class TransactionResult(BaseModel):
    """Structured outcome returned to callers instead of raising"""
    success: bool
    transaction: Optional[Transaction] = None
    error: Optional[str] = None


class PlayerEconomicData(BaseModel):
    """Per-player income and expense summary"""
    total_income: float = 0.0
    total_expenses: float = 0.0
    net_worth: float = 0.0
    recent_transactions: List[Transaction] = Field(default_factory=list)


class BalanceUpdateResult(BaseModel):
    success: bool
    new_balance: Optional[float] = None
    error: Optional[str] = None


class EconomicEvent(BaseModel):
    """Inflationary or deflationary event feeding the inflation estimate"""
    id: str = Field(default_factory=lambda: f"econ_{uuid4().hex[:12]}")
    event_type: str
    impact_type: ImpactType
    severity: float
    description: str = ""
    duration: int = Field(60, ge=0, description="Duration in minutes")
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    def model_post_init(self, __context: Any) -> None:
        if self.expires_at is None:
            self.expires_at = self.created_at + timedelta(minutes=self.duration)

    @property
    def signed_severity(self) -> float:
        if self.impact_type == ImpactType.DEFLATION:
            return -abs(self.severity)
        return abs(self.severity)


class MarketStats(BaseModel):
    total_items: int
    average_price: float
    total_volume: float


class TransactionStats(BaseModel):
    total: int
    volume_24h: float
    average_amount: float


class EconomyStats(BaseModel):
    market: MarketStats
    transactions: TransactionStats
