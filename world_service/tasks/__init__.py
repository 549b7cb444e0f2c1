"""
Simulation tasks: world store, economic state, pricing and market
"""

from .economic_state import EconomicStateAggregator
from .economy import MarketManager
from .pricing import MarketPricingEngine
from .world import WorldStateManager

__all__ = [
    "EconomicStateAggregator",
    "MarketManager",
    "MarketPricingEngine",
    "WorldStateManager",
]
