"""
Pydantic v2 domain models shared across all Matchday services.
These are the canonical wire/internal representations, NOT ORM models.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import MatchStatus, Outcome, PredictionKind, PredictionStatus, Sport


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Canonical match ─────────────────────────────────────────────────────
class Match(DomainModel):
    """
    One fixture/game in canonical shape, identical across sports.

    Football sub-scores live in the ht/ft/et/pen columns; every other
    sport keeps its period breakdown in ``score_detail``.
    """
    sport: Sport = Sport.FOOTBALL
    id: int

    date: Optional[datetime] = None
    timestamp: Optional[int] = None
    timezone: Optional[str] = None
    venue: Optional[str] = None
    venue_city: Optional[str] = None

    status: MatchStatus = MatchStatus.SCHEDULED
    status_short: Optional[str] = None
    status_long: Optional[str] = None
    elapsed: Optional[int] = None
    is_live: bool = False

    league_id: Optional[int] = None
    league_name: Optional[str] = None
    league_country: Optional[str] = None
    league_logo: Optional[str] = None
    league_flag: Optional[str] = None
    league_season: Optional[int] = None
    league_round: Optional[str] = None

    home_team_id: Optional[int] = None
    home_team_name: Optional[str] = None
    home_team_logo: Optional[str] = None
    home_team_winner: Optional[bool] = None
    away_team_id: Optional[int] = None
    away_team_name: Optional[str] = None
    away_team_logo: Optional[str] = None
    away_team_winner: Optional[bool] = None

    home_score: Optional[int] = None
    away_score: Optional[int] = None
    ht_home: Optional[int] = None
    ht_away: Optional[int] = None
    ft_home: Optional[int] = None
    ft_away: Optional[int] = None
    et_home: Optional[int] = None
    et_away: Optional[int] = None
    pen_home: Optional[int] = None
    pen_away: Optional[int] = None
    score_detail: dict[str, Any] = Field(default_factory=dict)

    last_updated: datetime = Field(default_factory=utcnow)


class MatchFilters(DomainModel):
    """Read/delete filter for the match store. Unset fields do not filter."""
    sport: Optional[Sport] = None
    date_from: Optional[datetime] = None
    date_before: Optional[datetime] = None
    league_id: Optional[int] = None
    status: Optional[MatchStatus] = None
    is_live: Optional[bool] = None
    limit: Optional[int] = None


# ── Provider envelope ───────────────────────────────────────────────────
class ProviderEnvelope(DomainModel):
    """Uniform result of one provider call: never raises, always reports."""
    success: bool
    data: list[dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
    results: int = 0
    latency_ms: float = 0.0

    @classmethod
    def failed(cls, error: str, latency_ms: float = 0.0) -> "ProviderEnvelope":
        return cls(success=False, error=error, latency_ms=latency_ms)


# ── Reconciliation results ──────────────────────────────────────────────
class SyncResult(DomainModel):
    success: bool
    sport: Sport
    fetched: int = 0
    saved: bool = False
    saved_count: int = 0
    blacklisted: int = 0
    error: Optional[str] = None
    matches: list[Match] = Field(default_factory=list)


class SaveResult(DomainModel):
    success: bool
    count: int = 0
    blacklisted: int = 0
    skipped_terminal: int = 0
    error: Optional[str] = None


class StuckRowOutcome(DomainModel):
    sport: Sport
    match_id: int
    action: str
    success: bool
    error: Optional[str] = None


class StuckFixResult(DomainModel):
    success: bool
    checked: int = 0
    fixed: int = 0
    failed: int = 0
    rows: list[StuckRowOutcome] = Field(default_factory=list)
    error: Optional[str] = None


class PurgeResult(DomainModel):
    success: bool
    deleted: int = 0
    error: Optional[str] = None


# ── Grading ─────────────────────────────────────────────────────────────
class MatchResult(DomainModel):
    """Terminal result of a finished match, as used for grading."""
    match_id: int
    status_short: str
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    home_score: int
    away_score: int
    winner: Outcome
    league_name: str = ""


class Prediction(DomainModel):
    """A stored prediction of either kind; only the matching predicted_* fields are set."""
    kind: PredictionKind
    id: int
    match_id: int
    email: str
    status: PredictionStatus = PredictionStatus.PENDING
    predicted_result: Optional[Outcome] = None
    predicted_home_score: Optional[int] = None
    predicted_away_score: Optional[int] = None
    is_correct: Optional[bool] = None
    points_earned: int = 0


class UserPartial(DomainModel):
    """One user's contribution from one prediction kind on one match."""
    points: int = 0
    is_correct: bool = False
    predictions: int = 0
    correct: int = 0
    prediction_ids: list[int] = Field(default_factory=list)

    def add(self, points: int, is_correct: bool, prediction_id: Optional[int] = None) -> None:
        self.points += points
        self.is_correct = self.is_correct or is_correct
        self.predictions += 1
        self.correct += int(is_correct)
        if prediction_id is not None:
            self.prediction_ids.append(prediction_id)


class KindGradeResult(DomainModel):
    kind: PredictionKind
    graded: int = 0
    correct: int = 0
    failed: int = 0
    user_results: dict[str, UserPartial] = Field(default_factory=dict)


class MatchGradeResult(DomainModel):
    success: bool
    match_id: int
    result: Optional[MatchResult] = None
    winner_graded: int = 0
    score_graded: int = 0
    correct: int = 0
    users_updated: int = 0
    error: Optional[str] = None

    @property
    def graded(self) -> int:
        return self.winner_graded + self.score_graded


class GradingRunResult(DomainModel):
    success: bool
    candidates: int = 0
    matches_graded: int = 0
    matches_skipped: int = 0
    graded: int = 0
    correct: int = 0
    error: Optional[str] = None


class UserStats(DomainModel):
    email: str
    total_experience: int = 0
    season_points: int = 0
    current_streak: int = 0
    best_streak: int = 0
    correct_predictions: int = 0
    total_predictions: int = 0


class StatsUpdate(DomainModel):
    """Absolute new values for a user's stats after one graded match."""
    total_experience: int
    season_points: int
    current_streak: int
    best_streak: int
    correct_predictions: int
    total_predictions: int
    bonus: int = 0
    points_earned: int = 0

    def as_patch(self) -> dict[str, int]:
        return self.model_dump(exclude={"bonus", "points_earned"})


# ── Scheduler ───────────────────────────────────────────────────────────
class JobStatus(DomainModel):
    job: str
    state: str
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_error: Optional[str] = None
    runs: int = 0
    skips: int = 0
