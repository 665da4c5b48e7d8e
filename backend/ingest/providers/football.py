"""
API-Football (api-sports v3) adapter.

Fixtures live under ``/fixtures`` and accept ``date``, ``live=all`` and
``id`` filters.
"""
from __future__ import annotations

from datetime import date

from shared.models.domain import ProviderEnvelope
from shared.models.enums import Sport
from shared.utils.http_client import ProviderHTTPClient

from ingest.providers.base import BaseProvider


class FootballProvider(BaseProvider):
    PATH = "/fixtures"

    def __init__(self, http_client: ProviderHTTPClient) -> None:
        super().__init__(name="api_football", sport=Sport.FOOTBALL, http_client=http_client)

    async def _fetch_by_date(self, day: date, timezone_name: str | None) -> ProviderEnvelope:
        params: dict[str, str] = {"date": day.isoformat()}
        if timezone_name:
            params["timezone"] = timezone_name
        return await self._get(self.PATH, params)

    async def _fetch_live(self) -> ProviderEnvelope:
        return await self._get(self.PATH, {"live": "all"})

    async def _fetch_by_id(self, match_id: int) -> ProviderEnvelope:
        return await self._get(self.PATH, {"id": str(match_id)})
