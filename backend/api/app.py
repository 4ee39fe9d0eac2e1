"""
FastAPI application factory for the Dugout API service.

Creates the app with:
- Scheduler control routes (jobs, trigger, enable/disable, health)
- Game state and prediction resolution routes
- Middleware stack
- Health check endpoints
- Lifespan management (build runtime, connect, start scheduler, drain on shutdown)
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Union

from fastapi import FastAPI

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import get_runtime, init_dependencies, reset_dependencies
from api.middleware import setup_middleware
from api.routes.games import router as games_router
from api.routes.system import router as system_router
from scheduler.runtime import build_runtime

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without DB/Redis."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Startup builds and opens the runtime and starts the scheduler;
    shutdown stops scheduling, drains in-flight runs and disconnects.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    runtime = build_runtime(settings)
    await runtime.open()
    if settings.db_create_schema:
        await runtime.db.create_schema()

    init_dependencies(runtime)

    if settings.scheduler_autostart:
        await runtime.scheduler.start()

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        scheduler=runtime.scheduler.state.value,
    )

    yield

    # Shutdown
    await runtime.close()
    reset_dependencies()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without DB/Redis."""
    app = FastAPI(
        title="Dugout API",
        description="Live game state and prediction resolution for the tracked team",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Middleware
    setup_middleware(app)

    # REST routes
    app.include_router(system_router)
    app.include_router(games_router)

    # Health check
    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> Dict[str, Union[str, bool, None]]:
        """Readiness probe: checks Postgres and, when used, Redis."""
        runtime = get_runtime()
        db_ok = await runtime.db.ping()
        redis_ok = await runtime.redis.ping() if runtime.redis is not None else None

        ready = db_ok and redis_ok is not False
        return {
            "status": "ok" if ready else "degraded",
            "database": db_ok,
            "redis": redis_ok,
            "scheduler": runtime.scheduler.state.value,
        }

    return app


# For running with uvicorn directly
app = create_app()
