"""
Central configuration for all Matchday services.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


DEFAULT_BIG_LEAGUES: list[str] = [
    "UEFA Champions League",
    "Premier League",
    "La Liga",
    "Serie A",
    "Bundesliga",
    "Liga 1",
    "Europa League",
    "World Cup",
    "Euro Championship",
]


def _as_asyncpg_url(raw: str) -> str:
    if raw.startswith("postgres://"):
        return "postgresql+asyncpg://" + raw[len("postgres://") :]
    if raw.startswith("postgresql://"):
        return raw.replace("postgresql://", "postgresql+asyncpg://", 1)
    return raw


class Settings(BaseSettings):
    """Root settings shared across all services."""

    model_config = SettingsConfigDict(
        env_prefix="MD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Unique pod/container ID, bound to every log line")

    # ── Postgres ─────────────────────────────────────────────
    database_url: Optional[str] = Field(
        default=None,
        description="Match/prediction store. Unset means sync runs fetch-only and grading is disabled.",
    )
    db_pool_min: int = 2
    db_pool_max: int = 10
    db_command_timeout: int = 30

    @model_validator(mode="after")
    def use_database_url_fallback(self) -> "Settings":
        """Use DATABASE_URL from env (e.g. Railway/Heroku) when MD_DATABASE_URL is not set."""
        if self.database_url:
            return self
        raw = os.environ.get("DATABASE_URL") or os.environ.get("POSTGRES_URL")
        if raw:
            self.database_url = raw
        return self

    @model_validator(mode="after")
    def normalize_database_url_asyncpg(self) -> "Settings":
        """Ensure database_url uses the asyncpg driver."""
        if self.database_url and "+asyncpg" not in self.database_url:
            self.database_url = _as_asyncpg_url(self.database_url)
        return self

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["*"]

    # ── Provider (api-sports family) ─────────────────────────
    api_sports_key: str = ""
    football_base_url: str = "https://v3.football.api-sports.io"
    basketball_base_url: str = "https://v1.basketball.api-sports.io"
    baseball_base_url: str = "https://v1.baseball.api-sports.io"
    volleyball_base_url: str = "https://v1.volleyball.api-sports.io"
    provider_request_timeout_s: float = 30.0
    provider_max_attempts: int = Field(default=1, description="1 = no inline retry; next tick retries")

    # ── Reconciliation ───────────────────────────────────────
    match_blacklist: list[int] = Field(
        default_factory=list,
        description="Match ids known to be permanently broken upstream; never written to the store.",
    )
    stuck_max_hours_live: float = 4.0
    match_retention_days: int = 7
    sync_timezone: str = "UTC"
    sync_sports: list[str] = ["football"]

    # ── Grading ──────────────────────────────────────────────
    big_leagues: list[str] = Field(default_factory=lambda: list(DEFAULT_BIG_LEAGUES))
    grading_inter_match_delay_s: float = 0.5

    # ── Scheduler ────────────────────────────────────────────
    scheduler_enabled: bool = True
    initial_sync_on_startup: bool = True
    live_sync_interval_s: float = 60.0
    today_sync_interval_s: float = 900.0
    grading_interval_s: float = 120.0
    stuck_fix_interval_s: float = 86400.0
    purge_interval_s: float = 86400.0
    quota_check_interval_s: float = 3600.0
    quota_warning_ratio: float = 0.8

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @property
    def database_configured(self) -> bool:
        return bool(self.database_url)

    @property
    def database_url_safe_log(self) -> str:
        """URL with password redacted, for logging only."""
        if not self.database_url:
            return "<not configured>"
        try:
            u = urlparse(self.database_url)
            netloc = f"{u.username or '?'}@***" + (f":{u.port}" if u.port else "")
            path = u.path or "/?"
            return f"{u.scheme}://{netloc}{path}"
        except ValueError:
            return "postgresql+asyncpg://***"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
