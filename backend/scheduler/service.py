"""
Scheduler service for Matchday.

Drives the reconciliation and grading engines on fixed cadences. Each job
has its own loop; every tick fires the job as a task through the job
registry, so a slow run makes later ticks skip instead of piling up.
"""
from __future__ import annotations

import asyncio
import signal
from typing import Any, Awaitable, Callable, Optional

from shared.config import Settings, get_settings
from shared.models.domain import GradingRunResult, PurgeResult, StuckFixResult, SyncResult
from shared.models.enums import JobName, Sport
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import PROVIDER_QUOTA_USED, start_metrics_server

from grading.engine import GradingEngine
from ingest.reconciliation import ReconciliationEngine
from scheduler.engine.job_state import JobRegistry
from scheduler.runtime import build_runtime, close_runtime

logger = get_logger(__name__)


class SyncBatch(list):
    """Per-sport sync results of one job run; fails if any sport failed."""

    @property
    def success(self) -> bool:
        return all(r.success for r in self)

    @property
    def error(self) -> Optional[str]:
        errors = [f"{r.sport.value}: {r.error}" for r in self if not r.success]
        return "; ".join(errors) or None


class SchedulerService:
    def __init__(
        self,
        reconciliation: ReconciliationEngine,
        grading: GradingEngine,
        registry: JobRegistry,
        settings: Settings | None = None,
    ) -> None:
        self._reconciliation = reconciliation
        self._grading = grading
        self._registry = registry
        self._settings = settings or get_settings()
        self._shutdown = asyncio.Event()
        self._loops: list[asyncio.Task[None]] = []
        self._inflight: set[asyncio.Task[Any]] = set()
        self._jobs: dict[JobName, tuple[Callable[[], Awaitable[Any]], float]] = {
            JobName.LIVE_SYNC: (self.run_live_sync, self._settings.live_sync_interval_s),
            JobName.TODAY_SYNC: (self.run_today_sync, self._settings.today_sync_interval_s),
            JobName.GRADING: (self.run_grading, self._settings.grading_interval_s),
            JobName.STUCK_FIX: (self.run_stuck_fix, self._settings.stuck_fix_interval_s),
            JobName.PURGE: (self.run_purge, self._settings.purge_interval_s),
            JobName.QUOTA_CHECK: (self.run_quota_check, self._settings.quota_check_interval_s),
        }

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    def sync_sports(self) -> list[Sport]:
        sports: list[Sport] = []
        for name in self._settings.sync_sports:
            try:
                sports.append(Sport(name.strip().lower()))
            except ValueError:
                logger.warning("unknown_sync_sport", sport=name)
        return sports

    # ── Job bodies ──────────────────────────────────────────────────────
    async def run_live_sync(self) -> SyncBatch:
        return SyncBatch([await self._reconciliation.sync_live(s) for s in self.sync_sports()])

    async def run_today_sync(self) -> SyncBatch:
        return SyncBatch([await self._reconciliation.sync_today(s) for s in self.sync_sports()])

    async def run_grading(self) -> GradingRunResult:
        return await self._grading.grade_all_pending()

    async def run_stuck_fix(self) -> StuckFixResult:
        return await self._reconciliation.fix_stuck_matches(self._settings.stuck_max_hours_live)

    async def run_purge(self) -> PurgeResult:
        return await self._reconciliation.purge_expired(self._settings.match_retention_days)

    async def run_quota_check(self) -> Optional[dict[str, Any]]:
        """Log provider request usage against the daily limit."""
        provider = self._reconciliation.provider_for(Sport.FOOTBALL)
        if provider is None:
            return None
        envelope = await provider.fetch_status()
        if not envelope.success or not envelope.data:
            logger.warning("quota_check_failed", provider=provider.name, error=envelope.error)
            return None

        requests = envelope.data[0].get("requests") or {}
        current = int(requests.get("current") or 0)
        limit = int(requests.get("limit_day") or 0)
        ratio = current / limit if limit else 0.0
        PROVIDER_QUOTA_USED.labels(provider=provider.name).set(ratio)

        if limit and ratio > self._settings.quota_warning_ratio:
            logger.warning("provider_quota_high", provider=provider.name, current=current, limit_day=limit, ratio=round(ratio, 3))
        else:
            logger.info("provider_quota", provider=provider.name, current=current, limit_day=limit)
        return {"current": current, "limit_day": limit, "ratio": ratio}

    # ── Ticking ─────────────────────────────────────────────────────────
    def fire(self, job: JobName) -> asyncio.Task[Any]:
        """Start one guarded run of ``job`` without waiting for it."""
        fn, _ = self._jobs[job]
        task = asyncio.create_task(self._registry.run(job, fn), name=f"job:{job.value}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _periodic(self, job: JobName, interval_s: float) -> None:
        while not self._shutdown.is_set():
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=interval_s)
            except asyncio.TimeoutError:
                self.fire(job)

    async def run(self) -> None:
        """Start every job loop and block until shutdown is requested."""
        if self._settings.initial_sync_on_startup:
            logger.info("initial_sync_started")
            await self._registry.run(JobName.TODAY_SYNC, self.run_today_sync)

        for job, (_, interval) in self._jobs.items():
            self._loops.append(asyncio.create_task(self._periodic(job, interval), name=f"loop:{job.value}"))
        logger.info(
            "scheduler_started",
            jobs={job.value: interval for job, (_, interval) in self._jobs.items()},
            sports=[s.value for s in self.sync_sports()],
        )

        try:
            await self._shutdown.wait()
        finally:
            await self.stop()

    def request_shutdown(self) -> None:
        self._shutdown.set()

    async def stop(self) -> None:
        self._shutdown.set()
        for task in self._loops:
            task.cancel()
        for task in list(self._inflight):
            task.cancel()
        await asyncio.gather(*self._loops, *self._inflight, return_exceptions=True)
        self._loops.clear()
        logger.info("scheduler_stopped")


async def main() -> None:
    """Standalone scheduler entrypoint (no HTTP surface)."""
    settings = get_settings()
    setup_logging("scheduler")
    start_metrics_server(settings.metrics_port)

    runtime = await build_runtime(settings)
    service = SchedulerService(runtime.reconciliation, runtime.grading, runtime.registry, settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, service.request_shutdown)

    logger.info("scheduler_service_started", instance_id=settings.instance_id)
    try:
        await service.run()
    finally:
        await close_runtime(runtime)
        logger.info("scheduler_service_stopped")


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
