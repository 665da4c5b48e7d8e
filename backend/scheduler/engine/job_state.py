"""
Single-flight job registry.

One registry per deployment. Each job type is either idle or running; a
tick that fires while the same job is still running is skipped, not queued.
Different job types never block each other.
"""
from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

from shared.models.domain import JobStatus
from shared.models.enums import JobName, JobState
from shared.utils.logging import get_logger
from shared.utils.metrics import JOB_DURATION, JOB_RUNNING, JOB_RUNS, JOB_SKIPS

logger = get_logger(__name__)

T = TypeVar("T")


def _outcome_of(result: Any) -> str:
    if getattr(result, "success", True) is False:
        return "failed"
    return "success"


class JobRegistry:
    def __init__(self) -> None:
        self._state: dict[JobName, JobState] = {job: JobState.IDLE for job in JobName}
        self._status: dict[JobName, JobStatus] = {
            job: JobStatus(job=job.value, state=JobState.IDLE.value) for job in JobName
        }

    def state(self, job: JobName) -> JobState:
        return self._state[job]

    def is_running(self, job: JobName) -> bool:
        return self._state[job] == JobState.RUNNING

    def try_acquire(self, job: JobName) -> bool:
        """
        Check-and-set idle -> running. There is no await between the check
        and the set, so this is atomic on the event loop.
        """
        if self._state[job] == JobState.RUNNING:
            return False
        self._state[job] = JobState.RUNNING
        self._status[job].state = JobState.RUNNING.value
        return True

    def release(self, job: JobName) -> None:
        self._state[job] = JobState.IDLE
        self._status[job].state = JobState.IDLE.value

    async def run(self, job: JobName, fn: Callable[[], Awaitable[T]]) -> Optional[T]:
        """
        Run ``fn`` under the job's single-flight guard.

        Returns None when skipped (already running) or when ``fn`` raised;
        unexpected exceptions are logged, never propagated.
        """
        if not self.try_acquire(job):
            self._status[job].skips += 1
            JOB_SKIPS.labels(job=job.value).inc()
            logger.info("job_skipped_already_running", job=job.value)
            return None

        status = self._status[job]
        status.last_started_at = datetime.now(timezone.utc)
        status.runs += 1
        JOB_RUNNING.labels(job=job.value).set(1)
        start = time.perf_counter()
        outcome = "error"
        try:
            result = await fn()
            outcome = _outcome_of(result)
            status.last_error = getattr(result, "error", None) if outcome == "failed" else None
            return result
        except asyncio.CancelledError:
            outcome = "cancelled"
            raise
        except Exception as exc:
            status.last_error = str(exc)
            logger.error("job_failed", job=job.value, error=str(exc), exc_info=True)
            return None
        finally:
            elapsed = time.perf_counter() - start
            self.release(job)
            status.last_finished_at = datetime.now(timezone.utc)
            JOB_RUNNING.labels(job=job.value).set(0)
            JOB_RUNS.labels(job=job.value, outcome=outcome).inc()
            JOB_DURATION.labels(job=job.value).observe(elapsed)
            logger.debug("job_finished", job=job.value, outcome=outcome, duration_s=round(elapsed, 3))

    def snapshot(self) -> list[JobStatus]:
        return [status.model_copy() for status in self._status.values()]
