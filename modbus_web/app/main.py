from fastapi import FastAPI
from contextlib import asynccontextmanager

from modbus_web.app.config import settings
from modbus_web.app.core.connection_cache import ConnectionCache, CacheSweeper
from modbus_web.app.utilities.telemetry import logger, initialize_logging

from modbus_web.app.api.v1.router import combined_router
from modbus_web.app.core.exceptions import setup_exception_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown"""
    cache = ConnectionCache()
    sweeper = CacheSweeper(cache, interval=settings.sweep_interval,
                           idle_threshold=settings.idle_eviction_threshold)

    # Startup
    app.state.connection_cache = cache
    sweeper.start()
    logger.info("Modbus web service started", extra={
        "component": "main",
        "sweep_interval_seconds": settings.sweep_interval,
        "idle_eviction_threshold_seconds": settings.idle_eviction_threshold
    })

    try:
        yield
    finally:
        # Shutdown
        logger.info("Shutting down services...", extra={"component": "main"})
        sweeper.stop(timeout=5.0)
        cache.close_all()
        app.state.connection_cache = None


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    # Settings may have changed since import (e.g. --log-level)
    initialize_logging()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description=settings.api_description,
        lifespan=lifespan
    )

    # Setup exception handlers
    setup_exception_handlers(app)

    # Include routers
    app.include_router(combined_router)

    return app
