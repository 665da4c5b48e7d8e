"""
Adapter for the api-sports v1 "games" family (basketball, baseball, volleyball).

All three expose the same ``/games`` endpoint; only the host differs.
"""
from __future__ import annotations

from datetime import date

from shared.models.domain import ProviderEnvelope
from shared.models.enums import Sport
from shared.utils.http_client import ProviderHTTPClient

from ingest.providers.base import BaseProvider


class GamesProvider(BaseProvider):
    PATH = "/games"

    def __init__(self, sport: Sport, http_client: ProviderHTTPClient) -> None:
        if sport == Sport.FOOTBALL:
            raise ValueError("football uses FootballProvider (/fixtures)")
        super().__init__(name=f"api_{sport.value}", sport=sport, http_client=http_client)

    async def _fetch_by_date(self, day: date, timezone_name: str | None) -> ProviderEnvelope:
        params: dict[str, str] = {"date": day.isoformat()}
        if timezone_name:
            params["timezone"] = timezone_name
        return await self._get(self.PATH, params)

    async def _fetch_live(self) -> ProviderEnvelope:
        return await self._get(self.PATH, {"live": "all"})

    async def _fetch_by_id(self, match_id: int) -> ProviderEnvelope:
        return await self._get(self.PATH, {"id": str(match_id)})
