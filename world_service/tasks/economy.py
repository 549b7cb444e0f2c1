"""
Market Tasks - Item prices, player purchases and sales
Applies the pricing engine on a fixed interval and settles transactions
against the character ledger.
"""

from collections import deque
from datetime import datetime, timedelta
from typing import Any, Deque, Dict, List, Optional

from loguru import logger
from prometheus_client import Counter

from ..config import Settings, settings as default_settings
from ..exceptions import (
    InsufficientFundsError,
    InvalidQuantityError,
    ItemNotFoundError,
    PlayerNotFoundError,
    TransactionFailedError,
    WorldServiceError,
)
from ..models.economy import (
    BalanceUpdateResult,
    EconomyStats,
    ItemCategory,
    MarketActivity,
    MarketItem,
    MarketStats,
    PlayerEconomicData,
    Transaction,
    TransactionCategory,
    TransactionResult,
    TransactionStats,
    TransactionType,
)
from ..models.world import WorldEvent, WorldEventType, utcnow
from ..utils import events
from ..utils.events import EventBus
from ..utils.snapshots import SnapshotLoad, load_snapshot, save_snapshot
from .pricing import MarketPricingEngine, clamp

MARKET_ITEMS_CACHE_KEY = "economy:market_items"
PLAYER_ECONOMY_CACHE_KEY = "economy:player:{}"

PLAYER_RECENT_TRANSACTIONS = 10
INCOME_TYPES = {TransactionType.INCOME, TransactionType.SALE}
EXPENSE_TYPES = {TransactionType.EXPENSE, TransactionType.PURCHASE}

# World events that move market prices
MARKET_EVENT_TYPES = {WorldEventType.POLICE_RAID, WorldEventType.TERRITORY_CONFLICT}

transactions_total = Counter(
    "world_market_transactions_total",
    "Market transactions by type and outcome",
    ["type", "outcome"]
)


def default_market_items() -> List[MarketItem]:
    """Built-in market seed"""
    now = utcnow()
    seeds = [
        ("weed", "Weed", ItemCategory.DRUGS, 50, 70, 60, 0.3, 10),
        ("cocaine", "Cocaine", ItemCategory.DRUGS, 200, 40, 80, 0.5, 5),
        ("meth", "Methamphetamine", ItemCategory.DRUGS, 150, 50, 70, 0.4, 8),
        ("pistol", "Pistol", ItemCategory.WEAPONS, 500, 80, 60, 0.2, 3),
        ("assault_rifle", "Assault Rifle", ItemCategory.WEAPONS, 2500, 30, 90, 0.6, 1),
        ("sports_car", "Sports Car", ItemCategory.VEHICLES, 50000, 60, 40, 0.1, 2),
    ]
    return [
        MarketItem(
            id=item_id,
            name=name,
            category=category,
            base_price=price,
            current_price=price,
            supply=supply,
            demand=demand,
            volatility=volatility,
            average_volume=average_volume,
            last_update=now,
        )
        for item_id, name, category, price, supply, demand, volatility, average_volume in seeds
    ]


def _parse_market_items(data: Any) -> List[MarketItem]:
    if not isinstance(data, list):
        raise TypeError(f"expected a list of market items, got {type(data).__name__}")
    return [MarketItem.model_validate(item) for item in data]


class MarketManager:
    """
    Market items, per-item activity and the transaction history

    Purchases and sales report business failures through
    TransactionResult instead of raising.
    """

    def __init__(
        self,
        cache,
        bus: EventBus,
        ledger,
        config: Optional[Settings] = None,
        pricing: Optional[MarketPricingEngine] = None,
        economic_state=None,
    ):
        self.cache = cache
        self.bus = bus
        self.ledger = ledger
        self.config = config or default_settings
        self.pricing = pricing or MarketPricingEngine(self.config)
        self.economic_state = economic_state
        self.market_items: Dict[str, MarketItem] = {}
        self.activity: Dict[str, MarketActivity] = {}
        self.transactions: Deque[Transaction] = deque(maxlen=self.config.transaction_history_limit)
        self._listening = False
        logger.info("MarketManager initialized")

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def load(self) -> SnapshotLoad:
        result = await load_snapshot(
            self.cache,
            MARKET_ITEMS_CACHE_KEY,
            _parse_market_items,
            default_market_items,
        )
        self.market_items = {item.id: item for item in result.value}
        self.activity = {item_id: MarketActivity() for item_id in self.market_items}

        if not result.from_cache:
            await self.cache_market_items()
            logger.info(f"Initialized {len(self.market_items)} default market items ({result.reason})")
        return result

    def attach_listeners(self):
        if not self._listening:
            self.bus.on(events.EVENT_CREATED, self.record_world_event)
            self._listening = True

    def detach_listeners(self):
        if self._listening:
            self.bus.off(events.EVENT_CREATED, self.record_world_event)
            self._listening = False

    async def cache_market_items(self) -> bool:
        items = [item.model_dump(mode="json") for item in self.market_items.values()]
        return await save_snapshot(self.cache, MARKET_ITEMS_CACHE_KEY, items, self.config.market_cache_ttl)

    # ========================================================================
    # Queries
    # ========================================================================

    def get_market_item(self, item_id: str) -> Optional[MarketItem]:
        return self.market_items.get(item_id)

    def get_all_market_items(self) -> List[MarketItem]:
        return list(self.market_items.values())

    def get_market_items_by_category(self, category: ItemCategory) -> List[MarketItem]:
        return [item for item in self.market_items.values() if item.category == category]

    def get_recent_transactions(self, limit: int = 50) -> List[Transaction]:
        if limit <= 0:
            return []
        return list(self.transactions)[-limit:][::-1]

    def get_player_transactions(self, player_id: str, limit: int = 50) -> List[Transaction]:
        player_transactions = [t for t in reversed(self.transactions) if t.player_id == player_id]
        return player_transactions[:max(limit, 0)]

    def get_economy_stats(self, now: Optional[datetime] = None) -> EconomyStats:
        now = now or utcnow()
        items = list(self.market_items.values())
        recent = [t for t in self.transactions if t.timestamp > now - timedelta(hours=24)]
        amounts = [t.amount for t in self.transactions]

        return EconomyStats(
            market=MarketStats(
                total_items=len(items),
                average_price=round(sum(i.current_price for i in items) / len(items), 2) if items else 0.0,
                total_volume=sum(i.average_volume for i in items),
            ),
            transactions=TransactionStats(
                total=len(self.transactions),
                volume_24h=round(sum(t.amount for t in recent), 2),
                average_amount=round(sum(amounts) / len(amounts), 2) if amounts else 0.0,
            ),
        )

    def _activity_for(self, item_id: str) -> MarketActivity:
        return self.activity.setdefault(item_id, MarketActivity())

    # ========================================================================
    # Balances
    # ========================================================================

    async def _apply_balance_change(self, player_id: str, amount: float) -> float:
        """
        Add amount (negative to debit) to a player's balance

        Raises:
            PlayerNotFoundError: Unknown player
            InsufficientFundsError: Balance would go negative
            TransactionFailedError: Ledger failure
        """
        try:
            balance = await self.ledger.get_balance(player_id)
        except Exception as e:
            raise TransactionFailedError(e) from e

        if balance is None:
            raise PlayerNotFoundError(player_id)

        new_balance = balance + amount
        if new_balance < 0:
            raise InsufficientFundsError(balance, -amount)

        try:
            await self.ledger.set_balance(player_id, new_balance)
        except LookupError as e:
            raise PlayerNotFoundError(player_id) from e
        except Exception as e:
            raise TransactionFailedError(e) from e

        return new_balance

    async def update_player_balance(self, player_id: str, amount: float) -> BalanceUpdateResult:
        try:
            new_balance = await self._apply_balance_change(player_id, amount)
        except WorldServiceError as e:
            logger.warning(f"Balance update for {player_id} failed: {e.message}")
            return BalanceUpdateResult(success=False, error=e.message)
        return BalanceUpdateResult(success=True, new_balance=new_balance)

    # ========================================================================
    # Transactions
    # ========================================================================

    async def purchase_item(self, player_id: str, item_id: str, quantity: int = 1) -> TransactionResult:
        """
        Buy quantity units of an item at the current price

        Quantity is not validated here: a purchase of zero units succeeds
        with zero cost.
        """
        item = self.market_items.get(item_id)
        if item is None:
            transactions_total.labels(type="purchase", outcome="failed").inc()
            return TransactionResult(success=False, error=ItemNotFoundError(item_id).message)

        total_cost = item.current_price * quantity

        try:
            await self._apply_balance_change(player_id, -total_cost)
        except WorldServiceError as e:
            transactions_total.labels(type="purchase", outcome="failed").inc()
            logger.warning(f"Purchase of {item_id} by {player_id} failed: {e.message}")
            return TransactionResult(success=False, error=e.message)

        transaction = Transaction(
            type=TransactionType.PURCHASE,
            player_id=player_id,
            item_id=item_id,
            amount=total_cost,
            description=f"Purchased {quantity}x {item.name}",
            metadata={"quantity": quantity, "unit_price": item.current_price},
        )
        self.transactions.append(transaction)

        item.supply = clamp(item.supply - quantity * 2, 0, 100)
        item.demand = clamp(item.demand + quantity, 0, 100)
        item.last_update = utcnow()

        activity = self._activity_for(item_id)
        activity.sales_volume += quantity
        activity.purchase_events += 1
        activity.last_purchase_time = transaction.timestamp

        await self.cache_market_items()
        await self.invalidate_player_summary(player_id)
        transactions_total.labels(type="purchase", outcome="success").inc()
        self.bus.emit(events.TRANSACTION_COMPLETED, transaction)

        logger.info(f"Player {player_id} purchased {quantity}x {item.name} for ${total_cost:.2f}")
        return TransactionResult(success=True, transaction=transaction)

    async def sell_item(self, player_id: str, item_id: str, quantity: int = 1) -> TransactionResult:
        """Sell quantity units back to the market at the configured sell ratio"""
        item = self.market_items.get(item_id)
        if item is None:
            transactions_total.labels(type="sale", outcome="failed").inc()
            return TransactionResult(success=False, error=ItemNotFoundError(item_id).message)

        if quantity <= 0:
            transactions_total.labels(type="sale", outcome="failed").inc()
            return TransactionResult(success=False, error=InvalidQuantityError(quantity).message)

        proceeds = round(item.current_price * quantity * self.config.sell_price_ratio, 2)

        try:
            await self._apply_balance_change(player_id, proceeds)
        except WorldServiceError as e:
            transactions_total.labels(type="sale", outcome="failed").inc()
            logger.warning(f"Sale of {item_id} by {player_id} failed: {e.message}")
            return TransactionResult(success=False, error=e.message)

        transaction = Transaction(
            type=TransactionType.SALE,
            player_id=player_id,
            item_id=item_id,
            amount=proceeds,
            description=f"Sold {quantity}x {item.name}",
            metadata={"quantity": quantity, "unit_price": item.current_price},
        )
        self.transactions.append(transaction)

        item.supply = clamp(item.supply + quantity * 2, 0, 100)
        item.demand = clamp(item.demand - quantity, 0, 100)
        item.last_update = utcnow()

        self._activity_for(item_id).restock_events += 1

        await self.cache_market_items()
        await self.invalidate_player_summary(player_id)
        transactions_total.labels(type="sale", outcome="success").inc()
        self.bus.emit(events.TRANSACTION_COMPLETED, transaction)

        logger.info(f"Player {player_id} sold {quantity}x {item.name} for ${proceeds:.2f}")
        return TransactionResult(success=True, transaction=transaction)

    # ========================================================================
    # Direct income and expenses
    # ========================================================================

    async def process_transaction(
        self,
        player_id: str,
        amount: float,
        transaction_type: TransactionType,
        category: TransactionCategory = TransactionCategory.OTHER,
        description: str = "",
    ) -> TransactionResult:
        """
        Credit income to, or debit an expense from, a player's balance

        Negative income is recorded as zero. Expenses are debited by their
        absolute amount. Purchases and sales go through purchase_item and
        sell_item instead.
        """
        transaction_type = TransactionType(transaction_type)
        category = TransactionCategory(category)

        if transaction_type == TransactionType.INCOME:
            amount = max(float(amount), 0.0)
            change = amount
        elif transaction_type == TransactionType.EXPENSE:
            amount = abs(float(amount))
            change = -amount
        else:
            transactions_total.labels(type=transaction_type.value, outcome="failed").inc()
            return TransactionResult(
                success=False,
                error=f"Failed to process transaction: {transaction_type.value} requires a market item",
            )

        try:
            await self._apply_balance_change(player_id, change)
        except WorldServiceError as e:
            transactions_total.labels(type=transaction_type.value, outcome="failed").inc()
            logger.warning(f"{transaction_type.value.capitalize()} for {player_id} failed: {e.message}")
            return TransactionResult(success=False, error=f"Failed to process transaction: {e.message}")

        transaction = Transaction(
            type=transaction_type,
            player_id=player_id,
            amount=amount,
            category=category,
            description=description or category.value.replace("_", " ").lower(),
        )
        self.transactions.append(transaction)

        await self.invalidate_player_summary(player_id)
        transactions_total.labels(type=transaction_type.value, outcome="success").inc()
        self.bus.emit(events.TRANSACTION_COMPLETED, transaction)

        logger.info(f"Processed {transaction_type.value} of ${amount:.2f} for {player_id} ({category.value})")
        return TransactionResult(success=True, transaction=transaction)

    async def get_player_economic_data(self, player_id: str) -> PlayerEconomicData:
        """
        Income, expenses and recent history for one player

        Served from the cache when present, otherwise summarized from the
        in-memory transaction history and cached. A player with no history
        gets an all-zero summary.
        """
        key = PLAYER_ECONOMY_CACHE_KEY.format(player_id)
        result = await load_snapshot(
            self.cache,
            key,
            PlayerEconomicData.model_validate,
            lambda: self._summarize_player(player_id),
        )
        if not result.from_cache:
            await save_snapshot(
                self.cache,
                key,
                result.value.model_dump(mode="json"),
                self.config.player_economy_cache_ttl,
            )
        return result.value

    def _summarize_player(self, player_id: str) -> PlayerEconomicData:
        history = self.get_player_transactions(player_id, limit=len(self.transactions))
        income = sum(t.amount for t in history if t.type in INCOME_TYPES)
        expenses = sum(t.amount for t in history if t.type in EXPENSE_TYPES)
        return PlayerEconomicData(
            total_income=round(income, 2),
            total_expenses=round(expenses, 2),
            net_worth=round(income - expenses, 2),
            recent_transactions=history[:PLAYER_RECENT_TRANSACTIONS],
        )

    async def invalidate_player_summary(self, player_id: str) -> bool:
        return await self.cache.delete(PLAYER_ECONOMY_CACHE_KEY.format(player_id))

    # ========================================================================
    # World events and price ticks
    # ========================================================================

    def record_world_event(self, event: WorldEvent) -> None:
        """Note a police raid or territory conflict for the next price tick"""
        if event.type not in MARKET_EVENT_TYPES:
            return
        for item_id in self.market_items:
            activity = self._activity_for(item_id)
            if event.type.value not in activity.world_events:
                activity.world_events.append(event.type.value)
        logger.debug(f"Market noted world event {event.id}")

    def _current_inflation(self) -> float:
        if self.economic_state is None:
            return 0.0
        state = self.economic_state.get_economic_state()
        return state.inflation_rate if state else 0.0

    async def update_market_prices(self) -> List[Dict[str, Any]]:
        """
        Price tick

        Never raises; a failure is logged and the tick is skipped.

        Returns:
            One entry per item whose price moved
        """
        try:
            now = utcnow()
            inflation = self._current_inflation()
            changes = []

            for item in self.market_items.values():
                activity = self.activity.get(item.id, MarketActivity())

                change = self.pricing.calculate_market_force_change(item, activity)
                new_price = self.pricing.next_price(item, change, inflation)

                if self.pricing.is_significant_move(item.current_price, new_price):
                    changes.append({
                        "item_id": item.id,
                        "old_price": item.current_price,
                        "new_price": new_price,
                    })
                    item.current_price = new_price
                    item.last_update = now

                self.pricing.adjust_supply_demand_from_activity(item, activity, now)

            # Activity carries purchase time forward for demand decay
            self.activity = {
                item_id: MarketActivity(last_purchase_time=activity.last_purchase_time)
                for item_id, activity in self.activity.items()
            }

            await self.cache_market_items()
            self.bus.emit(events.PRICES_UPDATED, changes)
            logger.info(f"Updated market prices: {len(changes)} items changed")
            return changes

        except Exception as e:
            logger.exception(f"Failed to update market prices: {e}")
            return []
