"""
FastAPI application factory for the Matchday API service.

Creates the app with:
- Match read routes and admin triggers
- Middleware stack
- Health check endpoints
- Lifespan management: store connection, engines, and the in-process scheduler
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import get_db, init_dependencies
from api.middleware import setup_middleware
from api.routes.admin import router as admin_router
from api.routes.matches import router as matches_router
from scheduler.runtime import build_runtime, close_runtime
from scheduler.service import SchedulerService

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without DB or provider access."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Startup: connect the store (when configured), build engines, start the
    scheduler. Shutdown: stop the scheduler, then release connections.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server(settings.metrics_port)

    runtime = await build_runtime(settings)
    init_dependencies(runtime.reconciliation, runtime.grading, runtime.registry, runtime.db)

    scheduler: Optional[SchedulerService] = None
    scheduler_task: Optional[asyncio.Task[None]] = None
    if settings.scheduler_enabled:
        scheduler = SchedulerService(runtime.reconciliation, runtime.grading, runtime.registry, settings)
        scheduler_task = asyncio.create_task(scheduler.run(), name="scheduler")

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        store=settings.database_url_safe_log,
        scheduler=settings.scheduler_enabled,
    )

    yield

    if scheduler is not None and scheduler_task is not None:
        scheduler.request_shutdown()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            pass
    await close_runtime(runtime)
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing."""
    app = FastAPI(
        title="Matchday API",
        description="Match-state reconciliation and prediction grading",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(matches_router)
    app.include_router(admin_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> dict[str, Any]:
        """Readiness probe. The service is ready in fetch-only mode too."""
        db = get_db()
        if db is None:
            return {"status": "ok", "database": "not_configured"}

        db_ok = False
        try:
            async with db.read_session() as session:
                await session.execute(text("SELECT 1"))
            db_ok = True
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("readiness_db_failed", error=str(exc))

        return {"status": "ok" if db_ok else "degraded", "database": db_ok}

    return app


app = create_app()
