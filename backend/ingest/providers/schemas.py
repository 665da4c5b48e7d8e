"""
Raw payload schemas for the api-sports families.

These models are deliberately lenient: unknown fields are ignored, a nested
object that is missing or not an object becomes an empty model, and scalar
values that fail to coerce become None. Nothing here raises for bad data
except a record that is not an object at all.
"""
from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator


def _lenient_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _lenient_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _lenient_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


LInt = Annotated[Optional[int], BeforeValidator(_lenient_int)]
LStr = Annotated[Optional[str], BeforeValidator(_lenient_str)]
LBool = Annotated[Optional[bool], BeforeValidator(_lenient_bool)]


class RawModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def coerce_missing(cls, data: Any) -> Any:
        return data if isinstance(data, dict) else {}


# ── Shared pieces ───────────────────────────────────────────────────────
class RawStatus(RawModel):
    long: LStr = None
    short: LStr = None
    elapsed: LInt = None
    timer: LStr = None


class RawTeam(RawModel):
    id: LInt = None
    name: LStr = None
    logo: LStr = None
    winner: LBool = None


class RawTeams(RawModel):
    home: RawTeam = Field(default_factory=RawTeam)
    away: RawTeam = Field(default_factory=RawTeam)


class RawPair(RawModel):
    home: LInt = None
    away: LInt = None


class RawLeague(RawModel):
    id: LInt = None
    name: LStr = None
    country: LStr = None
    logo: LStr = None
    flag: LStr = None
    season: LInt = None
    round: LStr = None


# ── Football (/fixtures) ────────────────────────────────────────────────
class RawVenue(RawModel):
    id: LInt = None
    name: LStr = None
    city: LStr = None


class RawFixture(RawModel):
    id: LInt = None
    timezone: LStr = None
    date: LStr = None
    timestamp: LInt = None
    venue: RawVenue = Field(default_factory=RawVenue)
    status: RawStatus = Field(default_factory=RawStatus)


class RawFootballScore(RawModel):
    halftime: RawPair = Field(default_factory=RawPair)
    fulltime: RawPair = Field(default_factory=RawPair)
    extratime: RawPair = Field(default_factory=RawPair)
    penalty: RawPair = Field(default_factory=RawPair)


class FootballFixturePayload(RawModel):
    fixture: RawFixture = Field(default_factory=RawFixture)
    league: RawLeague = Field(default_factory=RawLeague)
    teams: RawTeams = Field(default_factory=RawTeams)
    goals: RawPair = Field(default_factory=RawPair)
    score: RawFootballScore = Field(default_factory=RawFootballScore)

    @property
    def match_id(self) -> Optional[int]:
        return self.fixture.id


# ── Games family (/games) ───────────────────────────────────────────────
class RawCountry(RawModel):
    id: LInt = None
    name: LStr = None
    code: LStr = None
    flag: LStr = None


class RawGameLeague(RawModel):
    id: LInt = None
    name: LStr = None
    type: LStr = None
    season: LStr = None
    logo: LStr = None


class RawSideScore(RawModel):
    """
    One side's score object.

    Basketball fills the quarter fields, baseball fills innings/hits/errors,
    volleyball sends a bare integer (sets won) which lands in ``total``.
    """
    quarter_1: LInt = None
    quarter_2: LInt = None
    quarter_3: LInt = None
    quarter_4: LInt = None
    over_time: LInt = None
    innings: dict[str, LInt] = Field(default_factory=dict)
    hits: LInt = None
    errors: LInt = None
    total: LInt = None

    @model_validator(mode="before")
    @classmethod
    def coerce_missing(cls, data: Any) -> Any:
        if isinstance(data, (int, float, str)) and not isinstance(data, bool):
            return {"total": data}
        if not isinstance(data, dict):
            return {}
        if "innings" in data and not isinstance(data["innings"], dict):
            data = {k: v for k, v in data.items() if k != "innings"}
        return data


class RawGameScores(RawModel):
    home: RawSideScore = Field(default_factory=RawSideScore)
    away: RawSideScore = Field(default_factory=RawSideScore)


class RawPeriods(RawModel):
    first: RawPair = Field(default_factory=RawPair)
    second: RawPair = Field(default_factory=RawPair)
    third: RawPair = Field(default_factory=RawPair)
    fourth: RawPair = Field(default_factory=RawPair)
    fifth: RawPair = Field(default_factory=RawPair)


class GamePayload(RawModel):
    id: LInt = None
    date: LStr = None
    time: LStr = None
    timestamp: LInt = None
    timezone: LStr = None
    week: LStr = None
    status: RawStatus = Field(default_factory=RawStatus)
    league: RawGameLeague = Field(default_factory=RawGameLeague)
    country: RawCountry = Field(default_factory=RawCountry)
    teams: RawTeams = Field(default_factory=RawTeams)
    scores: RawGameScores = Field(default_factory=RawGameScores)
    periods: RawPeriods = Field(default_factory=RawPeriods)

    @property
    def match_id(self) -> Optional[int]:
        return self.id
