"""
In-memory stores, a canned provider and raw payload builders.

The fakes mirror the store contracts (conditional pending-only prediction
writes, update-returning match patches) so the engines can be tested
without Postgres or network access.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from shared.models.domain import Match, MatchFilters, Prediction, ProviderEnvelope, UserStats
from shared.models.enums import PredictionKind, PredictionStatus, Sport

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


# ── Raw payload builders ────────────────────────────────────────────────

def football_fixture(
    fixture_id: int,
    status: str = "NS",
    home: Optional[int] = None,
    away: Optional[int] = None,
    league: str = "Eredivisie",
    kickoff: str = "2026-10-19T15:00:00+00:00",
    elapsed: Optional[int] = None,
) -> dict[str, Any]:
    return {
        "fixture": {
            "id": fixture_id,
            "timezone": "UTC",
            "date": kickoff,
            "timestamp": int(datetime.fromisoformat(kickoff).timestamp()),
            "venue": {"id": 1, "name": "Stadion", "city": "Rotterdam"},
            "status": {"long": status, "short": status, "elapsed": elapsed},
        },
        "league": {"id": 88, "name": league, "country": "Netherlands", "season": 2026, "round": "Regular Season - 9"},
        "teams": {
            "home": {"id": 10, "name": "Home FC", "logo": "h.png", "winner": None},
            "away": {"id": 20, "name": "Away FC", "logo": "a.png", "winner": None},
        },
        "goals": {"home": home, "away": away},
        "score": {
            "halftime": {"home": None, "away": None},
            "fulltime": {"home": None, "away": None},
            "extratime": {"home": None, "away": None},
            "penalty": {"home": None, "away": None},
        },
    }


def ok(records: list[dict[str, Any]]) -> ProviderEnvelope:
    return ProviderEnvelope(success=True, data=records, results=len(records))


# ── Provider ────────────────────────────────────────────────────────────

class FakeProvider:
    """Returns canned envelopes and records every call."""

    def __init__(
        self,
        sport: Sport = Sport.FOOTBALL,
        by_date: Optional[ProviderEnvelope] = None,
        live: Optional[ProviderEnvelope] = None,
        by_id: Optional[dict[int, ProviderEnvelope]] = None,
        status: Optional[ProviderEnvelope] = None,
    ) -> None:
        self.sport = sport
        self.name = f"fake_{sport.value}"
        self.by_date = by_date or ok([])
        self.live = live or ok([])
        self.by_id = by_id or {}
        self.status = status or ok([])
        self.calls: list[tuple[str, Any]] = []

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def fetch_by_date(self, day: date, timezone_name: Optional[str] = None) -> ProviderEnvelope:
        self.calls.append(("by_date", (day, timezone_name)))
        return self.by_date

    async def fetch_live(self) -> ProviderEnvelope:
        self.calls.append(("live", None))
        return self.live

    async def fetch_by_id(self, match_id: int) -> ProviderEnvelope:
        self.calls.append(("by_id", match_id))
        return self.by_id.get(match_id, ok([]))

    async def fetch_status(self) -> ProviderEnvelope:
        self.calls.append(("status", None))
        return self.status

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)


# ── Stores ──────────────────────────────────────────────────────────────

def _matches_filters(m: Match, f: MatchFilters) -> bool:
    if f.sport is not None and m.sport != f.sport:
        return False
    if f.date_from is not None and (m.date is None or m.date < f.date_from):
        return False
    if f.date_before is not None and (m.date is None or m.date >= f.date_before):
        return False
    if f.league_id is not None and m.league_id != f.league_id:
        return False
    if f.status is not None and m.status != f.status:
        return False
    if f.is_live is not None and m.is_live != f.is_live:
        return False
    return True


class FakeMatchStore:
    def __init__(self, rows: Iterable[Match] = ()) -> None:
        self.rows: dict[tuple[Sport, int], Match] = {(m.sport, m.id): m for m in rows}
        self.upsert_calls: list[list[Match]] = []
        self.fail_update_ids: set[int] = set()
        self.ignore_update_ids: set[int] = set()

    async def upsert_many(self, matches: list[Match]) -> int:
        self.upsert_calls.append(list(matches))
        for m in matches:
            self.rows[(m.sport, m.id)] = m.model_copy(update={"last_updated": NOW})
        return len(matches)

    async def get_many(self, sport: Sport, ids: Iterable[int]) -> dict[int, Match]:
        return {i: self.rows[(sport, i)] for i in ids if (sport, i) in self.rows}

    async def query(self, filters: MatchFilters) -> list[Match]:
        far = datetime.max.replace(tzinfo=timezone.utc)
        found = sorted(
            (m for m in self.rows.values() if _matches_filters(m, filters)),
            key=lambda m: (m.date or far, m.id),
        )
        return found[: filters.limit] if filters.limit else found

    async def delete(self, filters: MatchFilters) -> int:
        doomed = [key for key, m in self.rows.items() if _matches_filters(m, filters)]
        for key in doomed:
            del self.rows[key]
        return len(doomed)

    async def update_match(self, sport: Sport, match_id: int, patch: dict[str, Any]) -> Optional[Match]:
        if match_id in self.fail_update_ids:
            raise RuntimeError("write rejected")
        row = self.rows.get((sport, match_id))
        if row is None:
            return None
        if match_id in self.ignore_update_ids:
            return row
        updated = row.model_copy(update=patch)
        self.rows[(sport, match_id)] = updated
        return updated


class FakePredictionStore:
    def __init__(self, predictions: Iterable[Prediction] = ()) -> None:
        self.rows: dict[PredictionKind, dict[int, Prediction]] = {k: {} for k in PredictionKind}
        for p in predictions:
            self.rows[p.kind][p.id] = p
        self.patches: dict[tuple[PredictionKind, int], dict[str, Any]] = {}
        self.fail_ids: set[int] = set()
        self.stolen_ids: set[int] = set()

    async def query_pending(self, kind: PredictionKind, match_id: Optional[int] = None) -> list[Prediction]:
        return [
            p
            for p in sorted(self.rows[kind].values(), key=lambda p: p.id)
            if p.status == PredictionStatus.PENDING and (match_id is None or p.match_id == match_id)
        ]

    async def pending_match_ids(self, kind: PredictionKind) -> set[int]:
        return {p.match_id for p in self.rows[kind].values() if p.status == PredictionStatus.PENDING}

    async def update_by_id(self, kind: PredictionKind, prediction_id: int, patch: dict[str, Any]) -> bool:
        if prediction_id in self.fail_ids:
            raise RuntimeError("write rejected")
        row = self.rows[kind].get(prediction_id)
        if row is None or row.status != PredictionStatus.PENDING:
            return False
        if prediction_id in self.stolen_ids:
            # graded by a concurrent run between the read and this write
            self.rows[kind][prediction_id] = row.model_copy(update={"status": PredictionStatus.GRADED})
            return False
        self.rows[kind][prediction_id] = row.model_copy(
            update={
                "status": PredictionStatus(patch["status"]),
                "is_correct": patch["is_correct"],
                "points_earned": patch["points_earned"],
            }
        )
        self.patches[(kind, prediction_id)] = patch
        return True

    async def release_graded(self, kind: PredictionKind, prediction_ids: list[int]) -> int:
        released = 0
        for pid in prediction_ids:
            row = self.rows[kind].get(pid)
            if row is None or row.status != PredictionStatus.GRADED:
                continue
            self.rows[kind][pid] = row.model_copy(
                update={"status": PredictionStatus.PENDING, "is_correct": None, "points_earned": 0}
            )
            self.patches.pop((kind, pid), None)
            released += 1
        return released


class FakeUserStatsStore:
    def __init__(self, profiles: Iterable[UserStats] = ()) -> None:
        self.profiles: dict[str, UserStats] = {p.email: p for p in profiles}
        self.updates: list[tuple[str, dict[str, int]]] = []
        self.fail_updates = 0

    async def get_by_email(self, email: str) -> Optional[UserStats]:
        return self.profiles.get(email)

    async def update_by_email(self, email: str, patch: dict[str, int]) -> bool:
        if self.fail_updates > 0:
            self.fail_updates -= 1
            raise ConnectionResetError("connection reset")
        if email not in self.profiles:
            return False
        self.profiles[email] = self.profiles[email].model_copy(update=patch)
        self.updates.append((email, patch))
        return True


class FakeBlacklistStore:
    def __init__(self, ids: Iterable[int] = (), fail: bool = False) -> None:
        self.ids = set(ids)
        self.fail = fail

    async def list_ids(self) -> set[int]:
        if self.fail:
            raise RuntimeError("deny-list table unavailable")
        return set(self.ids)
