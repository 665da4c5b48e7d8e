"""
Provider registry: one adapter per sport, built from settings.
"""
from __future__ import annotations

from typing import Optional

import httpx

from shared.config import Settings, get_settings
from shared.models.enums import Sport
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider
from ingest.providers.football import FootballProvider
from ingest.providers.games import GamesProvider

logger = get_logger(__name__)


def _base_url(settings: Settings, sport: Sport) -> str:
    return {
        Sport.FOOTBALL: settings.football_base_url,
        Sport.BASKETBALL: settings.basketball_base_url,
        Sport.BASEBALL: settings.baseball_base_url,
        Sport.VOLLEYBALL: settings.volleyball_base_url,
    }[sport]


def build_provider(
    sport: Sport,
    settings: Settings | None = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseProvider:
    settings = settings or get_settings()
    http = ProviderHTTPClient(
        provider_name=f"api_{sport.value}",
        base_url=_base_url(settings, sport),
        headers={"x-apisports-key": settings.api_sports_key},
        timeout_s=settings.provider_request_timeout_s,
        max_attempts=settings.provider_max_attempts,
        transport=transport,
    )
    if sport == Sport.FOOTBALL:
        return FootballProvider(http)
    return GamesProvider(sport, http)


def build_providers(
    settings: Settings | None = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[Sport, BaseProvider]:
    """One adapter per supported sport."""
    settings = settings or get_settings()
    if not settings.api_sports_key:
        logger.warning("provider_api_key_missing")
    providers = {sport: build_provider(sport, settings, transport) for sport in Sport}
    logger.info("providers_built", sports=[s.value for s in providers])
    return providers
