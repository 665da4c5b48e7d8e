"""
Administrative triggers.

These call the engines directly, outside the scheduler's single-flight
guard, the same way a manual run would.

POST /v1/admin/sync/today
POST /v1/admin/sync/live
POST /v1/admin/fix-stuck
POST /v1/admin/purge
POST /v1/admin/grade
POST /v1/admin/grade/{match_id}
POST /v1/admin/blacklist/reload
GET  /v1/admin/jobs
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shared.models.enums import Sport
from shared.utils.logging import get_logger

from api.dependencies import get_grading, get_reconciliation, get_registry
from grading.engine import GradingEngine
from ingest.reconciliation import ReconciliationEngine
from scheduler.engine.job_state import JobRegistry

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/admin", tags=["admin"])


def _envelope(result: BaseModel, status_on_failure: int = 502, exclude: Optional[set[str]] = None) -> Any:
    data = result.model_dump(mode="json", exclude=exclude)
    if getattr(result, "success", True):
        return {"success": True, "data": data}
    return JSONResponse(
        status_code=status_on_failure,
        content={"success": False, "error": getattr(result, "error", None), "data": data},
    )


@router.post("/sync/today")
async def trigger_sync_today(
    sport: Sport = Sport.FOOTBALL,
    engine: ReconciliationEngine = Depends(get_reconciliation),
) -> Any:
    logger.info("admin_sync_today", sport=sport.value)
    return _envelope(await engine.sync_today(sport), exclude={"matches"})


@router.post("/sync/live")
async def trigger_sync_live(
    sport: Sport = Sport.FOOTBALL,
    engine: ReconciliationEngine = Depends(get_reconciliation),
) -> Any:
    logger.info("admin_sync_live", sport=sport.value)
    return _envelope(await engine.sync_live(sport), exclude={"matches"})


@router.post("/fix-stuck")
async def trigger_fix_stuck(
    max_hours_live: Optional[float] = Query(default=None, gt=0),
    engine: ReconciliationEngine = Depends(get_reconciliation),
) -> Any:
    logger.info("admin_fix_stuck", max_hours_live=max_hours_live)
    return _envelope(await engine.fix_stuck_matches(max_hours_live), status_on_failure=503)


@router.post("/purge")
async def trigger_purge(
    retention_days: Optional[int] = Query(default=None, ge=0),
    engine: ReconciliationEngine = Depends(get_reconciliation),
) -> Any:
    logger.info("admin_purge", retention_days=retention_days)
    return _envelope(await engine.purge_expired(retention_days), status_on_failure=503)


@router.post("/grade")
async def trigger_grade_all(engine: GradingEngine = Depends(get_grading)) -> Any:
    logger.info("admin_grade_all")
    return _envelope(await engine.grade_all_pending(), status_on_failure=503)


@router.post("/grade/{match_id}")
async def trigger_grade_match(match_id: int, engine: GradingEngine = Depends(get_grading)) -> Any:
    logger.info("admin_grade_match", match_id=match_id)
    result = await engine.grade_match(match_id)
    return _envelope(result, status_on_failure=409 if engine.configured else 503)


@router.post("/blacklist/reload")
async def reload_blacklist(engine: ReconciliationEngine = Depends(get_reconciliation)) -> Any:
    ids = await engine.reload_blacklist()
    logger.info("admin_blacklist_reloaded", size=len(ids))
    return {"success": True, "data": {"count": len(ids), "ids": sorted(ids)}}


@router.get("/jobs")
async def list_jobs(registry: JobRegistry = Depends(get_registry)) -> Any:
    return {"success": True, "data": [s.model_dump(mode="json") for s in registry.snapshot()]}
