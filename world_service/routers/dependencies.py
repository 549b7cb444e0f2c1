"""
Shared dependencies for the world service routers
"""

from fastapi import HTTPException, Request, status

from ..simulation import WorldSimulation


def get_simulation(request: Request) -> WorldSimulation:
    """
    Simulation owned by the running application

    Raises:
        HTTPException: 503 until startup has created the simulation
    """
    simulation = getattr(request.app.state, "simulation", None)
    if simulation is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="World simulation not started"
        )
    return simulation
