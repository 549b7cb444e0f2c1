"""
World Service - Main FastAPI Application
"""

import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .config import settings
from .database import CacheManager, create_sql_engine
from .exceptions import ErrorType, WorldServiceError
from .ledger import SQLEconomicEventStore, SQLPlayerLedger, create_tables
from .routers import economy_router, world_router
from .simulation import WorldSimulation


def setup_logging():
    """Configure loguru logging"""
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
        colorize=True,
    )

    log_file = Path(settings.log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.add(
        settings.log_file,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level=settings.log_level,
        rotation="10 MB",
        retention="7 days",
        compression="gz",
        enqueue=True,
    )

    logger.info("Logging configured")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events"""
    logger.info("=" * 80)
    logger.info(f"Starting {settings.service_name}")
    logger.info(f"Environment: {settings.environment}")
    logger.info("=" * 80)

    # Cache is optional; without it state lives in memory only
    cache = CacheManager(settings)
    if await cache.connect():
        logger.info("✓ Cache connection established")
    else:
        logger.warning("⚠ Running without cache, snapshots will not be persisted")

    engine = create_sql_engine(settings)
    create_tables(engine)

    simulation = WorldSimulation(
        cache=cache,
        ledger=SQLPlayerLedger(engine),
        event_store=SQLEconomicEventStore(engine),
        config=settings,
    )
    await simulation.start()
    app.state.simulation = simulation
    app.state.cache = cache
    logger.info(f"✓ {settings.service_name} started on {settings.service_host}:{settings.service_port}")

    yield

    logger.info(f"Shutting down {settings.service_name}...")
    await simulation.cleanup()
    await cache.disconnect()
    engine.dispose()
    app.state.simulation = None
    logger.info("✓ Shutdown complete")


# Initialize logging
setup_logging()

app = FastAPI(
    title="GangGPT World Service",
    description="Territories, world events, economic state and market simulation",
    version="1.0.0",
    lifespan=lifespan,
)


_ERROR_STATUS = {
    ErrorType.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorType.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorType.INSUFFICIENT_FUNDS: status.HTTP_400_BAD_REQUEST,
    ErrorType.CACHE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.exception_handler(WorldServiceError)
async def world_service_exception_handler(request: Request, exc: WorldServiceError):
    logger.warning(f"{exc.error_type.value} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=_ERROR_STATUS.get(exc.error_type, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content=exc.to_dict()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.opt(exception=exc).error(f"Unhandled exception on {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


@app.get("/health", tags=["health"])
async def health_check(request: Request):
    """Service status with cache connectivity"""
    cache = getattr(request.app.state, "cache", None)
    cache_healthy = await cache.health_check() if cache else False
    return {
        "status": "healthy" if cache_healthy else "degraded",
        "service": settings.service_name,
        "version": "1.0.0",
        "cache": "connected" if cache_healthy else "disconnected",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/metrics", tags=["health"])
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(world_router)
app.include_router(economy_router)


def run():
    uvicorn.run(
        app,
        host=settings.service_host,
        port=settings.service_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
