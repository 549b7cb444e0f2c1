"""
Tests for the market pricing engine
"""

import random
from datetime import timedelta

import pytest

from world_service.models.economy import ItemCategory, MarketActivity
from world_service.models.world import utcnow
from world_service.tasks.pricing import MarketPricingEngine

from conftest import make_item


class FixedRandom(random.Random):
    """random() always returns the midpoint, cancelling the noise term"""

    def random(self):
        return 0.5


@pytest.fixture
def engine(test_settings):
    return MarketPricingEngine(test_settings, FixedRandom())


class TestMarketForce:

    def test_supply_demand_balance(self, engine):
        item = make_item(supply=30, demand=80)
        activity = MarketActivity(sales_volume=4)

        assert engine.calculate_market_force_change(item, activity) == pytest.approx(0.5)

    def test_high_volume_pushes_up(self, engine):
        item = make_item(volatility=0.5, average_volume=4)

        change = engine.calculate_market_force_change(item, MarketActivity(sales_volume=7))

        assert change == pytest.approx(0.05 * 0.5)

    def test_low_volume_pushes_down(self, engine):
        item = make_item(volatility=0.5, average_volume=4)

        change = engine.calculate_market_force_change(item, MarketActivity(sales_volume=1))

        assert change == pytest.approx(-0.03 * 0.5)

    def test_police_raid_raises_drug_pressure(self, engine):
        item = make_item(volatility=1.0)
        activity = MarketActivity(sales_volume=4, world_events=["police_raid"])

        assert engine.calculate_market_force_change(item, activity) == pytest.approx(0.1)

    def test_conflict_only_affects_weapons(self, engine):
        activity = MarketActivity(sales_volume=4, world_events=["territory_conflict"])

        drugs = engine.calculate_market_force_change(make_item(volatility=1.0), activity)
        weapons = engine.calculate_market_force_change(
            make_item(volatility=1.0, category=ItemCategory.WEAPONS), activity
        )

        assert drugs == pytest.approx(0.0)
        assert weapons == pytest.approx(0.08)

    def test_result_is_clamped(self, test_settings):
        engine = MarketPricingEngine(test_settings, random.Random(7))
        item = make_item(supply=0, demand=100, volatility=1.0)
        activity = MarketActivity(sales_volume=100, world_events=["police_raid"])

        for _ in range(50):
            assert -1.0 <= engine.calculate_market_force_change(item, activity) <= 1.0


class TestSupplyDemand:

    def test_restock_and_purchases(self, engine):
        item = make_item(supply=50, demand=50)
        now = utcnow()
        activity = MarketActivity(restock_events=2, purchase_events=3, last_purchase_time=now)

        engine.adjust_supply_demand_from_activity(item, activity, now)

        assert item.supply == 50 + 20 - 3
        assert item.demand == 50 + 6

    def test_demand_decays_without_purchases(self, engine):
        item = make_item(demand=40)
        now = utcnow()
        activity = MarketActivity(last_purchase_time=now - timedelta(hours=2))

        engine.adjust_supply_demand_from_activity(item, activity, now)

        assert item.demand == 39

    def test_demand_decay_floor(self, engine):
        item = make_item(demand=10)
        engine.adjust_supply_demand_from_activity(item, MarketActivity())
        assert item.demand == 10

    def test_bounds(self, engine):
        item = make_item(supply=95, demand=99)
        now = utcnow()
        activity = MarketActivity(restock_events=5, purchase_events=10, last_purchase_time=now)

        engine.adjust_supply_demand_from_activity(item, activity, now)

        assert 0 <= item.supply <= 100
        assert 0 <= item.demand <= 100


class TestNextPrice:

    def test_change_bounded_by_volatility(self, engine):
        item = make_item(current_price=100, volatility=0.2)

        # change of 1.0 is bounded to 0.2, then scaled by the 0.1 step
        assert engine.next_price(item, 1.0) == pytest.approx(102.0)
        assert engine.next_price(item, -1.0) == pytest.approx(98.0)

    def test_inflation_multiplier(self, engine):
        item = make_item(current_price=100, volatility=0.2)
        assert engine.next_price(item, 0.0, inflation_rate=0.05) == pytest.approx(105.0)

    def test_price_floor(self, engine):
        item = make_item(base_price=100, current_price=10.5, volatility=1.0)
        assert engine.next_price(item, -1.0) == pytest.approx(10.0)

    def test_price_ceiling(self, engine):
        item = make_item(base_price=100, current_price=995, volatility=1.0)
        assert engine.next_price(item, 1.0) == pytest.approx(1000.0)

    def test_significant_move(self, engine):
        assert engine.is_significant_move(100, 102) is True
        assert engine.is_significant_move(100, 100.5) is False
