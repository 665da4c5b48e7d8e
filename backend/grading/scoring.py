"""
Scoring rules for graded predictions.

Pure functions only; the grading engine owns all I/O.
"""
from __future__ import annotations

from typing import Iterable, Optional

from shared.models.domain import StatsUpdate, UserPartial, UserStats
from shared.models.enums import Outcome, PredictionKind

# (big league, normal league)
POINTS: dict[PredictionKind, tuple[int, int]] = {
    PredictionKind.WINNER: (15, 10),
    PredictionKind.SCORE: (25, 20),
}

# streak reached -> bonus
STREAK_MILESTONES: dict[int, int] = {3: 5, 5: 10, 10: 25}


def is_big_league(league_name: Optional[str], big_leagues: Iterable[str]) -> bool:
    """Case-insensitive substring match against the allow-list."""
    name = (league_name or "").lower()
    if not name:
        return False
    return any(big.lower() in name for big in big_leagues if big)


def outcome_of(home_score: int, away_score: int) -> Outcome:
    if home_score > away_score:
        return Outcome.HOME
    if away_score > home_score:
        return Outcome.AWAY
    return Outcome.DRAW


def calculate_points(kind: PredictionKind, is_correct: bool, big_league: bool) -> int:
    if not is_correct:
        return 0
    big, normal = POINTS[kind]
    return big if big_league else normal


def streak_milestone_bonus(old_streak: int, new_streak: int) -> int:
    """Bonus paid only on the transition that first reaches a milestone."""
    if new_streak <= old_streak:
        return 0
    return STREAK_MILESTONES.get(new_streak, 0)


def compute_stats_update(current: UserStats, partials: Iterable[Optional[UserPartial]]) -> StatsUpdate:
    """
    Fold one match's graded predictions for a user into new absolute stats.

    The streak moves once per match: +1 if any prediction on the match was
    correct, otherwise reset to 0.
    """
    present = [p for p in partials if p is not None and p.predictions > 0]
    points = sum(p.points for p in present)
    made = sum(p.predictions for p in present)
    correct = sum(p.correct for p in present)
    hit = correct > 0

    old_streak = current.current_streak or 0
    new_streak = old_streak + 1 if hit else 0
    bonus = streak_milestone_bonus(old_streak, new_streak) if hit else 0
    earned = points + bonus

    return StatsUpdate(
        total_experience=(current.total_experience or 0) + earned,
        season_points=(current.season_points or 0) + earned,
        current_streak=new_streak,
        best_streak=max(new_streak, current.best_streak or 0),
        correct_predictions=(current.correct_predictions or 0) + correct,
        total_predictions=(current.total_predictions or 0) + made,
        bonus=bonus,
        points_earned=points,
    )
