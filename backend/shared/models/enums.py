"""Domain enumerations for the Matchday platform."""
from __future__ import annotations

from enum import Enum


class Sport(str, Enum):
    FOOTBALL = "football"
    BASKETBALL = "basketball"
    BASEBALL = "baseball"
    VOLLEYBALL = "volleyball"


class MatchStatus(str, Enum):
    """Coarse match state derived from the provider's fine-grained code."""
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"
    POSTPONED = "postponed"

    @property
    def is_terminal(self) -> bool:
        return self in (MatchStatus.FINISHED, MatchStatus.POSTPONED)


class Outcome(str, Enum):
    HOME = "home"
    AWAY = "away"
    DRAW = "draw"


class PredictionKind(str, Enum):
    WINNER = "winner"
    SCORE = "score"


class PredictionStatus(str, Enum):
    PENDING = "pending"
    GRADED = "graded"


class JobName(str, Enum):
    LIVE_SYNC = "live_sync"
    TODAY_SYNC = "today_sync"
    GRADING = "grading"
    STUCK_FIX = "stuck_fix"
    PURGE = "purge"
    QUOTA_CHECK = "quota_check"


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
