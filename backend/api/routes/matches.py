"""
Match read endpoints, served from the match store.

GET /v1/matches       Filtered list (defaults to today in the sync timezone).
GET /v1/matches/live  Matches currently flagged live.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from shared.models.domain import Match, MatchFilters
from shared.models.enums import MatchStatus, Sport
from shared.utils.logging import get_logger

from api.dependencies import get_reconciliation
from ingest.reconciliation import STORE_NOT_CONFIGURED, ReconciliationEngine

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/matches", tags=["matches"])


def _store_unavailable() -> JSONResponse:
    return JSONResponse(status_code=503, content={"success": False, "error": STORE_NOT_CONFIGURED})


def _live_first(matches: list[Match]) -> list[Match]:
    far_future = datetime.max.replace(tzinfo=timezone.utc)
    return sorted(matches, key=lambda m: (not m.is_live, m.date or far_future, m.id))


def _group_by_league(matches: list[Match]) -> list[dict[str, Any]]:
    groups: dict[Optional[int], dict[str, Any]] = {}
    for m in matches:
        group = groups.setdefault(
            m.league_id,
            {
                "league_id": m.league_id,
                "league_name": m.league_name,
                "league_country": m.league_country,
                "league_logo": m.league_logo,
                "league_flag": m.league_flag,
                "matches": [],
            },
        )
        group["matches"].append(m.model_dump(mode="json"))
    return list(groups.values())


@router.get("")
async def list_matches(
    day: Optional[date] = Query(default=None, alias="date"),
    league_id: Optional[int] = None,
    status: Optional[MatchStatus] = None,
    live: Optional[bool] = None,
    sport: Sport = Sport.FOOTBALL,
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    engine: ReconciliationEngine = Depends(get_reconciliation),
) -> Any:
    """Stored matches, live first then by kickoff, also grouped by league."""
    if not engine.store_configured:
        return _store_unavailable()

    filters = MatchFilters(sport=sport, league_id=league_id, status=status, is_live=live, limit=limit)
    if day is None and league_id is None and not live:
        day = engine.today()
    matches = _live_first(await engine.query_matches(filters, day=day))
    return {
        "success": True,
        "data": [m.model_dump(mode="json") for m in matches],
        "count": len(matches),
        "grouped": _group_by_league(matches),
        "date": day.isoformat() if day else None,
    }


@router.get("/live")
async def list_live_matches(
    sport: Sport = Sport.FOOTBALL,
    engine: ReconciliationEngine = Depends(get_reconciliation),
) -> Any:
    if not engine.store_configured:
        return _store_unavailable()
    matches = await engine.query_matches(MatchFilters(sport=sport, is_live=True))
    return {
        "success": True,
        "data": [m.model_dump(mode="json") for m in matches],
        "count": len(matches),
    }
