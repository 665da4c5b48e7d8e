"""
Canonical match transform.

The single point where provider-native records become ``Match`` entities.
Pure functions: no I/O, no clock reads except ``last_updated``. Missing or
malformed nested fields resolve to None here and nowhere else.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from shared.models.domain import Match
from shared.models.enums import MatchStatus, Sport
from shared.utils.logging import get_logger

from ingest.providers.schemas import FootballFixturePayload, GamePayload, RawPair, RawSideScore

logger = get_logger(__name__)


class InvalidMatchRecord(ValueError):
    """Raised for a record that cannot be keyed (not an object, or no id)."""


@dataclass(frozen=True)
class StatusCodes:
    """One sport's status vocabulary."""
    live: frozenset[str]
    finished: frozenset[str]
    postponed: frozenset[str]
    scheduled: frozenset[str] = frozenset()
    live_prefixes: tuple[str, ...] = ()
    live_substrings: tuple[str, ...] = ()
    finished_code: str = "FT"
    finished_long: str = "Match Finished"
    abandoned_code: str = "ABD"
    abandoned_long: str = "Match Abandoned"


STATUS_CODES: dict[Sport, StatusCodes] = {
    Sport.FOOTBALL: StatusCodes(
        live=frozenset({"1H", "2H", "HT", "ET", "P", "BT", "LIVE"}),
        finished=frozenset({"FT", "AET", "PEN"}),
        postponed=frozenset({"PST", "CANC", "ABD", "AWD", "WO"}),
        scheduled=frozenset({"TBD", "NS"}),
    ),
    Sport.BASKETBALL: StatusCodes(
        live=frozenset({"Q1", "Q2", "Q3", "Q4", "OT", "BT", "HT"}),
        finished=frozenset({"FT", "AOT"}),
        postponed=frozenset({"POST", "CANC", "SUSP", "AWD", "ABD"}),
        scheduled=frozenset({"NS"}),
        finished_long="Game Finished",
        abandoned_long="Abandoned",
    ),
    Sport.BASEBALL: StatusCodes(
        live=frozenset({f"IN{n}" for n in range(1, 13)} | {"LIVE", "INPROGRESS"}),
        finished=frozenset({"FT", "AOT", "FINISHED"}),
        postponed=frozenset({"POST", "CANC", "SUSP", "AWD", "WO", "ABD"}),
        scheduled=frozenset({"NS"}),
        live_prefixes=("IN",),
        finished_long="Finished",
        abandoned_long="Abandoned",
    ),
    Sport.VOLLEYBALL: StatusCodes(
        live=frozenset({"SET1", "SET2", "SET3", "SET4", "SET5", "BT", "IN_PROGRESS"}),
        finished=frozenset({"FT", "AOT", "FINISHED"}),
        postponed=frozenset({"POST", "CANC", "AWD", "ABD"}),
        scheduled=frozenset({"NS"}),
        live_substrings=("SET",),
        finished_long="Finished",
        abandoned_long="Abandoned",
    ),
}


def status_codes(sport: Sport) -> StatusCodes:
    return STATUS_CODES[sport]


def classify_status(sport: Sport, status_short: Optional[str]) -> tuple[MatchStatus, bool]:
    """
    Map a provider status code to (coarse status, is_live).

    Explicit sets win over the prefix/substring live rules, so e.g. a
    finished code is never read as live. Unknown codes are ``scheduled``.
    """
    codes = STATUS_CODES[sport]
    code = (status_short or "").strip().upper()
    if not code:
        return MatchStatus.SCHEDULED, False
    if code in codes.live:
        return MatchStatus.LIVE, True
    if code in codes.finished:
        return MatchStatus.FINISHED, False
    if code in codes.postponed:
        return MatchStatus.POSTPONED, False
    if code in codes.scheduled:
        return MatchStatus.SCHEDULED, False
    if any(code.startswith(p) for p in codes.live_prefixes):
        return MatchStatus.LIVE, True
    if any(s in code for s in codes.live_substrings):
        return MatchStatus.LIVE, True
    return MatchStatus.SCHEDULED, False


def is_finished_code(sport: Sport, status_short: Optional[str]) -> bool:
    return (status_short or "").strip().upper() in STATUS_CODES[sport].finished


def _parse_datetime(value: Optional[str], timestamp: Optional[int]) -> Optional[datetime]:
    if value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if timestamp is not None:
        try:
            return datetime.fromtimestamp(timestamp, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def _season_year(value: Optional[str]) -> Optional[int]:
    head = (value or "")[:4]
    return int(head) if head.isdigit() else None


def _winner_flags(status: MatchStatus, home: Optional[int], away: Optional[int]) -> tuple[Optional[bool], Optional[bool]]:
    if status != MatchStatus.FINISHED or home is None or away is None or home == away:
        return None, None
    return home > away, away > home


# ── Football ────────────────────────────────────────────────────────────
def _transform_football(raw: dict[str, Any]) -> Match:
    p = FootballFixturePayload.model_validate(raw)
    if p.match_id is None:
        raise InvalidMatchRecord("fixture.id missing")

    status, is_live = classify_status(Sport.FOOTBALL, p.fixture.status.short)
    return Match(
        sport=Sport.FOOTBALL,
        id=p.match_id,
        date=_parse_datetime(p.fixture.date, p.fixture.timestamp),
        timestamp=p.fixture.timestamp,
        timezone=p.fixture.timezone,
        venue=p.fixture.venue.name or None,
        venue_city=p.fixture.venue.city or None,
        status=status,
        status_short=p.fixture.status.short,
        status_long=p.fixture.status.long,
        elapsed=p.fixture.status.elapsed,
        is_live=is_live,
        league_id=p.league.id,
        league_name=p.league.name,
        league_country=p.league.country,
        league_logo=p.league.logo,
        league_flag=p.league.flag,
        league_season=p.league.season,
        league_round=p.league.round,
        home_team_id=p.teams.home.id,
        home_team_name=p.teams.home.name,
        home_team_logo=p.teams.home.logo,
        home_team_winner=p.teams.home.winner,
        away_team_id=p.teams.away.id,
        away_team_name=p.teams.away.name,
        away_team_logo=p.teams.away.logo,
        away_team_winner=p.teams.away.winner,
        home_score=p.goals.home,
        away_score=p.goals.away,
        ht_home=p.score.halftime.home,
        ht_away=p.score.halftime.away,
        ft_home=p.score.fulltime.home,
        ft_away=p.score.fulltime.away,
        et_home=p.score.extratime.home,
        et_away=p.score.extratime.away,
        pen_home=p.score.penalty.home,
        pen_away=p.score.penalty.away,
    )


# ── Games family ────────────────────────────────────────────────────────
def _quarters(side: RawSideScore) -> dict[str, Optional[int]]:
    return {
        "q1": side.quarter_1,
        "q2": side.quarter_2,
        "q3": side.quarter_3,
        "q4": side.quarter_4,
        "ot": side.over_time,
    }


def _pair(pair: RawPair) -> dict[str, Optional[int]]:
    return {"home": pair.home, "away": pair.away}


def _score_detail(sport: Sport, p: GamePayload) -> dict[str, Any]:
    home, away = p.scores.home, p.scores.away
    if sport == Sport.BASKETBALL:
        return {"quarters": {"home": _quarters(home), "away": _quarters(away)}}
    if sport == Sport.BASEBALL:
        return {
            "innings": {"home": dict(home.innings), "away": dict(away.innings)},
            "hits": {"home": home.hits, "away": away.hits},
            "errors": {"home": home.errors, "away": away.errors},
        }
    if sport == Sport.VOLLEYBALL:
        periods = p.periods
        return {
            "sets": {
                "first": _pair(periods.first),
                "second": _pair(periods.second),
                "third": _pair(periods.third),
                "fourth": _pair(periods.fourth),
                "fifth": _pair(periods.fifth),
            }
        }
    return {}


def _transform_game(sport: Sport, raw: dict[str, Any]) -> Match:
    p = GamePayload.model_validate(raw)
    if p.match_id is None:
        raise InvalidMatchRecord("id missing")

    status, is_live = classify_status(sport, p.status.short)
    home_score, away_score = p.scores.home.total, p.scores.away.total
    home_winner, away_winner = _winner_flags(status, home_score, away_score)
    finished = status == MatchStatus.FINISHED
    return Match(
        sport=sport,
        id=p.match_id,
        date=_parse_datetime(p.date, p.timestamp),
        timestamp=p.timestamp,
        timezone=p.timezone,
        status=status,
        status_short=p.status.short,
        status_long=p.status.long,
        elapsed=None,
        is_live=is_live,
        league_id=p.league.id,
        league_name=p.league.name,
        league_country=p.country.name,
        league_logo=p.league.logo,
        league_flag=p.country.flag,
        league_season=_season_year(p.league.season),
        league_round=p.week,
        home_team_id=p.teams.home.id,
        home_team_name=p.teams.home.name,
        home_team_logo=p.teams.home.logo,
        home_team_winner=home_winner,
        away_team_id=p.teams.away.id,
        away_team_name=p.teams.away.name,
        away_team_logo=p.teams.away.logo,
        away_team_winner=away_winner,
        home_score=home_score,
        away_score=away_score,
        ft_home=home_score if finished else None,
        ft_away=away_score if finished else None,
        score_detail=_score_detail(sport, p),
    )


# ── Public API ──────────────────────────────────────────────────────────
def transform_match(sport: Sport, raw: Any) -> Match:
    """
    Map one provider-native record to the canonical Match.

    Raises:
        InvalidMatchRecord: if the record is not an object or carries no id.
    """
    if not isinstance(raw, dict):
        raise InvalidMatchRecord(f"expected object, got {type(raw).__name__}")
    try:
        if sport == Sport.FOOTBALL:
            return _transform_football(raw)
        return _transform_game(sport, raw)
    except ValidationError as exc:
        raise InvalidMatchRecord(str(exc)) from exc


def transform_matches(sport: Sport, raws: Iterable[Any]) -> list[Match]:
    """Transform a batch, skipping (and logging) records that cannot be keyed."""
    matches: list[Match] = []
    for raw in raws:
        try:
            matches.append(transform_match(sport, raw))
        except InvalidMatchRecord as exc:
            logger.warning("match_record_skipped", sport=sport.value, reason=str(exc))
    return matches
