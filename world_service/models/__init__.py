"""
Data models for the world service
"""

from .world import (
    Boundaries,
    CurrentWorldState,
    EconomicState,
    EventLocation,
    EventSeverity,
    Territory,
    WorldEvent,
    WorldEventType,
    WorldStats,
)
from .economy import (
    BalanceUpdateResult,
    EconomicEvent,
    EconomyStats,
    ImpactType,
    ItemCategory,
    MarketActivity,
    MarketItem,
    PlayerEconomicData,
    Transaction,
    TransactionCategory,
    TransactionResult,
    TransactionType,
)

__all__ = [
    "Boundaries",
    "CurrentWorldState",
    "EconomicState",
    "EventLocation",
    "EventSeverity",
    "Territory",
    "WorldEvent",
    "WorldEventType",
    "WorldStats",
    "BalanceUpdateResult",
    "EconomicEvent",
    "EconomyStats",
    "ImpactType",
    "ItemCategory",
    "MarketActivity",
    "MarketItem",
    "PlayerEconomicData",
    "Transaction",
    "TransactionCategory",
    "TransactionResult",
    "TransactionType",
]
