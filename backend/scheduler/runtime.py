"""
Process wiring shared by the API and the standalone scheduler.

Builds providers, stores and engines from settings. Without a database URL
the stores are left out and the engines run in fetch-only mode.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from shared.config import Settings, get_settings
from shared.models.enums import Sport
from shared.stores.blacklist import BlacklistStore
from shared.stores.matches import MatchStore
from shared.stores.predictions import PredictionStore
from shared.stores.profiles import UserStatsStore
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

from grading.engine import GradingEngine
from ingest.providers.base import BaseProvider
from ingest.providers.registry import build_providers
from ingest.reconciliation import ReconciliationEngine
from scheduler.engine.job_state import JobRegistry

logger = get_logger(__name__)

_CONNECT_RETRY_ATTEMPTS = 10
_CONNECT_RETRY_BASE_DELAY_S = 2.0


async def connect_with_retry(connect_fn: Callable[[], Awaitable[None]], name: str) -> None:
    """Call async connect_fn(); retry with exponential backoff on failure."""
    for attempt in range(1, _CONNECT_RETRY_ATTEMPTS + 1):
        try:
            await connect_fn()
            return
        except Exception as exc:
            if attempt == _CONNECT_RETRY_ATTEMPTS:
                raise
            delay = _CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=_CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)


@dataclass
class Runtime:
    settings: Settings
    providers: dict[Sport, BaseProvider]
    reconciliation: ReconciliationEngine
    grading: GradingEngine
    registry: JobRegistry = field(default_factory=JobRegistry)
    db: Optional[DatabaseManager] = None


async def build_runtime(settings: Settings | None = None) -> Runtime:
    settings = settings or get_settings()

    db: Optional[DatabaseManager] = None
    if settings.database_configured:
        db = DatabaseManager(settings)
        await connect_with_retry(db.connect, "Database")
    else:
        logger.warning("store_not_configured", detail="sync runs fetch-only, grading disabled")

    providers = build_providers(settings)
    for provider in providers.values():
        await provider.start()

    reconciliation = ReconciliationEngine(
        providers,
        MatchStore(db) if db else None,
        BlacklistStore(db) if db else None,
        settings,
    )
    grading = GradingEngine(
        providers.get(Sport.FOOTBALL),
        PredictionStore(db) if db else None,
        UserStatsStore(db) if db else None,
        settings,
    )
    if db:
        await reconciliation.reload_blacklist()

    return Runtime(
        settings=settings,
        providers=providers,
        reconciliation=reconciliation,
        grading=grading,
        db=db,
    )


async def close_runtime(runtime: Runtime) -> None:
    for provider in runtime.providers.values():
        await provider.close()
    if runtime.db:
        await runtime.db.disconnect()
