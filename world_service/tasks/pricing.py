"""
Market Pricing Engine
Turns supply, demand and recent market activity into price moves.
"""

import random
from datetime import timedelta
from typing import Optional

from loguru import logger

from ..config import Settings, settings as default_settings
from ..models.economy import ItemCategory, MarketActivity, MarketItem
from ..models.world import utcnow, WorldEventType

HIGH_VOLUME_RATIO = 1.5
LOW_VOLUME_RATIO = 0.5
HIGH_VOLUME_FORCE = 0.05
LOW_VOLUME_FORCE = -0.03
POLICE_RAID_DRUG_FORCE = 0.1
CONFLICT_WEAPON_FORCE = 0.08

RESTOCK_SUPPLY = 10
PURCHASE_DEMAND = 2
DEMAND_DECAY = 1
DEMAND_FLOOR = 10
DEMAND_DECAY_AFTER = timedelta(hours=1)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class MarketPricingEngine:
    """
    Pure pricing rules

    Randomness comes from an injected random.Random so ticks can be
    reproduced in tests.
    """

    def __init__(self, config: Optional[Settings] = None, rng: Optional[random.Random] = None):
        self.config = config or default_settings
        self.rng = rng or random.Random()

    def calculate_market_force_change(self, item: MarketItem, activity: Optional[MarketActivity] = None) -> float:
        """
        Net market pressure on an item, in [-1, 1]

        Positive values push the price up.
        """
        activity = activity or MarketActivity()

        supply_demand_ratio = (item.demand - item.supply) / 100
        random_factor = (self.rng.random() - 0.5) * item.volatility

        activity_force = 0.0
        if item.average_volume > 0:
            if activity.sales_volume > item.average_volume * HIGH_VOLUME_RATIO:
                activity_force += HIGH_VOLUME_FORCE
            elif activity.sales_volume < item.average_volume * LOW_VOLUME_RATIO:
                activity_force += LOW_VOLUME_FORCE

        if item.category == ItemCategory.DRUGS and WorldEventType.POLICE_RAID.value in activity.world_events:
            activity_force += POLICE_RAID_DRUG_FORCE
        if item.category == ItemCategory.WEAPONS and WorldEventType.TERRITORY_CONFLICT.value in activity.world_events:
            activity_force += CONFLICT_WEAPON_FORCE

        total = supply_demand_ratio + random_factor + activity_force * item.volatility
        return clamp(total, -1.0, 1.0)

    def adjust_supply_demand_from_activity(self, item: MarketItem, activity: Optional[MarketActivity] = None, now=None) -> MarketItem:
        """Apply restocks, purchases and demand decay; both stay within [0, 100]"""
        activity = activity or MarketActivity()
        now = now or utcnow()

        supply = item.supply + activity.restock_events * RESTOCK_SUPPLY
        supply -= activity.purchase_events
        demand = item.demand + activity.purchase_events * PURCHASE_DEMAND

        if activity.last_purchase_time is None or now - activity.last_purchase_time > DEMAND_DECAY_AFTER:
            if demand > DEMAND_FLOOR:
                demand = max(DEMAND_FLOOR, demand - DEMAND_DECAY)

        item.supply = clamp(supply, 0, 100)
        item.demand = clamp(demand, 0, 100)
        return item

    def next_price(self, item: MarketItem, change: float, inflation_rate: float = 0.0) -> float:
        """
        Candidate price after one tick

        The change is bounded by the item's volatility, then scaled by the
        configured step and the inflation multiplier.
        """
        bounded = clamp(change, -item.volatility, item.volatility)
        price = item.current_price * (1 + bounded * self.config.market_price_step)
        price *= 1 + inflation_rate

        floor = item.base_price * self.config.market_price_floor
        ceiling = item.base_price * self.config.market_price_ceiling
        return round(clamp(price, floor, ceiling), 2)

    def is_significant_move(self, old_price: float, new_price: float) -> bool:
        if old_price <= 0:
            return True
        move = abs(new_price - old_price) / old_price
        significant = move > self.config.market_min_price_move
        if not significant:
            logger.debug(f"Skipping price move of {move:.4f} (below threshold)")
        return significant
