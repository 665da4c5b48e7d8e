"""
SQLAlchemy 2.0 ORM models for Matchday.
The schema is created from this metadata by run_migration_001.py.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class MatchORM(Base):
    """Rolling cache of canonical matches, one row per (sport, provider id)."""
    __tablename__ = "matches"

    sport: Mapped[str] = mapped_column(String(20), primary_key=True)
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    timestamp: Mapped[Optional[int]] = mapped_column(BigInteger)
    timezone: Mapped[Optional[str]] = mapped_column(String(64))
    venue: Mapped[Optional[str]] = mapped_column(String(200))
    venue_city: Mapped[Optional[str]] = mapped_column(String(200))

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    status_short: Mapped[Optional[str]] = mapped_column(String(20))
    status_long: Mapped[Optional[str]] = mapped_column(String(100))
    elapsed: Mapped[Optional[int]] = mapped_column(Integer)
    is_live: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    league_id: Mapped[Optional[int]] = mapped_column(Integer)
    league_name: Mapped[Optional[str]] = mapped_column(String(200))
    league_country: Mapped[Optional[str]] = mapped_column(String(100))
    league_logo: Mapped[Optional[str]] = mapped_column(Text)
    league_flag: Mapped[Optional[str]] = mapped_column(Text)
    league_season: Mapped[Optional[int]] = mapped_column(Integer)
    league_round: Mapped[Optional[str]] = mapped_column(String(100))

    home_team_id: Mapped[Optional[int]] = mapped_column(Integer)
    home_team_name: Mapped[Optional[str]] = mapped_column(String(200))
    home_team_logo: Mapped[Optional[str]] = mapped_column(Text)
    home_team_winner: Mapped[Optional[bool]] = mapped_column(Boolean)
    away_team_id: Mapped[Optional[int]] = mapped_column(Integer)
    away_team_name: Mapped[Optional[str]] = mapped_column(String(200))
    away_team_logo: Mapped[Optional[str]] = mapped_column(Text)
    away_team_winner: Mapped[Optional[bool]] = mapped_column(Boolean)

    home_score: Mapped[Optional[int]] = mapped_column(Integer)
    away_score: Mapped[Optional[int]] = mapped_column(Integer)
    ht_home: Mapped[Optional[int]] = mapped_column(Integer)
    ht_away: Mapped[Optional[int]] = mapped_column(Integer)
    ft_home: Mapped[Optional[int]] = mapped_column(Integer)
    ft_away: Mapped[Optional[int]] = mapped_column(Integer)
    et_home: Mapped[Optional[int]] = mapped_column(Integer)
    et_away: Mapped[Optional[int]] = mapped_column(Integer)
    pen_home: Mapped[Optional[int]] = mapped_column(Integer)
    pen_away: Mapped[Optional[int]] = mapped_column(Integer)
    score_detail: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_matches_date", "date"),
        Index("ix_matches_is_live_date", "is_live", "date"),
        Index("ix_matches_league_id", "league_id"),
    )


class _PredictionColumns:
    """Columns shared by both prediction tables. Kinds are never merged."""

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean)
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actual_home_score: Mapped[Optional[int]] = mapped_column(Integer)
    actual_away_score: Mapped[Optional[int]] = mapped_column(Integer)
    graded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class WinnerPredictionORM(_PredictionColumns, Base):
    __tablename__ = "winner_predictions"

    predicted_result: Mapped[str] = mapped_column(String(10), nullable=False)
    actual_result: Mapped[Optional[str]] = mapped_column(String(10))


class ScorePredictionORM(_PredictionColumns, Base):
    __tablename__ = "score_predictions"

    predicted_home_score: Mapped[int] = mapped_column(Integer, nullable=False)
    predicted_away_score: Mapped[int] = mapped_column(Integer, nullable=False)


class ProfileORM(Base):
    """Per-user cumulative stats, written only by the grading engine."""
    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    total_experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    season_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_predictions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_predictions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class BlacklistedMatchORM(Base):
    """Deny-list of provider match ids that must never be written."""
    __tablename__ = "match_blacklist"

    match_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
