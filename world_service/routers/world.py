"""
World API Router
Territories, world events and the economic state
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from ..exceptions import TerritoryNotFoundError
from ..models.api import (
    EconomicStateUpdateRequest,
    TerritoryControlRequest,
    WorldEventCreateRequest,
)
from ..simulation import WorldSimulation
from .dependencies import get_simulation

router = APIRouter(prefix="/api/world", tags=["world"])


# ============================================================================
# TERRITORIES
# ============================================================================

@router.get("/territories")
async def list_territories(simulation: WorldSimulation = Depends(get_simulation)):
    return {"territories": simulation.world.get_all_territories()}


@router.get("/territories/at")
async def territory_at_position(
    x: float,
    y: float,
    simulation: WorldSimulation = Depends(get_simulation),
):
    """Territory containing a point, and whether the point is contested"""
    return {
        "territory": simulation.world.get_territory_at_position(x, y),
        "contested": simulation.world.is_in_contested_territory(x, y),
        "location_name": simulation.world.get_location_name(x, y),
    }


@router.get("/territories/{territory_id}")
async def get_territory(territory_id: str, simulation: WorldSimulation = Depends(get_simulation)):
    territory = simulation.world.get_territory(territory_id)
    if territory is None:
        raise HTTPException(status_code=404, detail=f"Territory {territory_id} not found")
    return territory


@router.put("/territories/{territory_id}/control")
async def update_territory_control(
    territory_id: str,
    request: TerritoryControlRequest,
    simulation: WorldSimulation = Depends(get_simulation),
):
    try:
        territory = await simulation.world.update_territory_control(territory_id, request.faction_id)
    except TerritoryNotFoundError as e:
        logger.warning(f"Territory control update rejected: {e.message}")
        raise HTTPException(status_code=404, detail=e.message)
    return {"success": True, "territory": territory}


# ============================================================================
# WORLD EVENTS
# ============================================================================

@router.get("/events")
async def list_events(
    type: Optional[str] = Query(None, description="Filter by event type"),
    severity: Optional[str] = Query(None, description="Filter by severity"),
    simulation: WorldSimulation = Depends(get_simulation),
):
    return {"events": simulation.world.get_active_world_events(type, severity)}


@router.get("/events/at")
async def events_at_location(
    x: float,
    y: float,
    z: float = 0.0,
    simulation: WorldSimulation = Depends(get_simulation),
):
    return {"events": simulation.world.get_events_at_location(x, y, z)}


@router.post("/events")
async def create_event(request: WorldEventCreateRequest, simulation: WorldSimulation = Depends(get_simulation)):
    event = simulation.world.create_event(
        request.type,
        request.location,
        request.severity,
        request.duration,
        affected_factions=request.affected_factions,
        description=request.description,
    )
    return {"success": True, "event": event}


# ============================================================================
# STATE AND STATS
# ============================================================================

@router.get("/economic-state")
async def get_economic_state(simulation: WorldSimulation = Depends(get_simulation)):
    aggregator = simulation.economic_state
    return {
        "state": aggregator.get_economic_state(),
        "economic_level": aggregator.get_economic_level(),
        "crime_level": aggregator.get_crime_level(),
    }


@router.patch("/economic-state")
async def update_economic_state(
    request: EconomicStateUpdateRequest,
    simulation: WorldSimulation = Depends(get_simulation),
):
    state = await simulation.economic_state.update_economic_state(request.model_dump(exclude_none=True))
    if state is None:
        return {"success": False, "error": "Economic state not loaded"}
    return {"success": True, "state": state}


@router.get("/state")
async def get_current_world_state(simulation: WorldSimulation = Depends(get_simulation)):
    return await simulation.world.get_current_world_state()


@router.get("/stats")
async def get_world_stats(simulation: WorldSimulation = Depends(get_simulation)):
    return simulation.world.get_world_stats()
