"""
Economy API Router
Market items, purchases, sales and player balances
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from ..models.api import BalanceUpdateRequest, EconomicEventRequest, PlayerTransactionRequest, TradeRequest
from ..models.economy import ItemCategory
from ..simulation import WorldSimulation
from .dependencies import get_simulation

router = APIRouter(prefix="/api/economy", tags=["economy"])


@router.get("/items")
async def list_market_items(simulation: WorldSimulation = Depends(get_simulation)):
    return {"items": simulation.market.get_all_market_items()}


@router.get("/items/category/{category}")
async def list_items_by_category(category: ItemCategory, simulation: WorldSimulation = Depends(get_simulation)):
    return {"items": simulation.market.get_market_items_by_category(category)}


@router.get("/items/{item_id}")
async def get_market_item(item_id: str, simulation: WorldSimulation = Depends(get_simulation)):
    item = simulation.market.get_market_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.post("/purchase")
async def purchase_item(request: TradeRequest, simulation: WorldSimulation = Depends(get_simulation)):
    """
    Purchase items at the current market price

    Business failures (unknown item or player, insufficient funds) are
    returned as {success: false, error}.
    """
    return await simulation.market.purchase_item(request.player_id, request.item_id, request.quantity)


@router.post("/sell")
async def sell_item(request: TradeRequest, simulation: WorldSimulation = Depends(get_simulation)):
    return await simulation.market.sell_item(request.player_id, request.item_id, request.quantity)


@router.post("/players/{player_id}/balance")
async def update_player_balance(
    player_id: str,
    request: BalanceUpdateRequest,
    simulation: WorldSimulation = Depends(get_simulation),
):
    return await simulation.market.update_player_balance(player_id, request.amount)


@router.post("/players/{player_id}/transactions")
async def process_player_transaction(
    player_id: str,
    request: PlayerTransactionRequest,
    simulation: WorldSimulation = Depends(get_simulation),
):
    """Record a direct income or expense such as a mission reward or a fine"""
    return await simulation.market.process_transaction(
        player_id,
        request.amount,
        request.type,
        request.category,
        request.description,
    )


@router.get("/players/{player_id}/summary")
async def player_economic_data(player_id: str, simulation: WorldSimulation = Depends(get_simulation)):
    return await simulation.market.get_player_economic_data(player_id)


@router.get("/transactions")
async def recent_transactions(
    limit: int = Query(50, ge=1, le=1000),
    simulation: WorldSimulation = Depends(get_simulation),
):
    return {"transactions": simulation.market.get_recent_transactions(limit)}


@router.get("/players/{player_id}/transactions")
async def player_transactions(
    player_id: str,
    limit: int = Query(50, ge=1, le=1000),
    simulation: WorldSimulation = Depends(get_simulation),
):
    return {"transactions": simulation.market.get_player_transactions(player_id, limit)}


@router.post("/events")
async def generate_economic_event(request: EconomicEventRequest, simulation: WorldSimulation = Depends(get_simulation)):
    return await simulation.economic_state.generate_economic_event(
        request.event_type,
        request.impact_type,
        request.severity,
        request.description,
        request.duration,
    )


@router.get("/inflation")
async def get_inflation(simulation: WorldSimulation = Depends(get_simulation)):
    return {"inflation_rate": await simulation.economic_state.calculate_inflation()}


@router.get("/stats")
async def get_economy_stats(simulation: WorldSimulation = Depends(get_simulation)):
    return simulation.market.get_economy_stats()
