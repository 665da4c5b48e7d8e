"""
Abstract base class for all sports data providers.
Defines the contract that every provider adapter must implement.
"""
from __future__ import annotations

import abc
import time
from datetime import date
from typing import Any, Awaitable

import httpx

from shared.models.domain import ProviderEnvelope
from shared.models.enums import Sport
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


def _describe_errors(errors: Any) -> str:
    if isinstance(errors, dict):
        return "; ".join(f"{k}: {v}" for k, v in errors.items())
    if isinstance(errors, list):
        return "; ".join(str(e) for e in errors)
    return str(errors)


class BaseProvider(abc.ABC):
    """
    Abstract base class for one sport's upstream provider.

    Public fetch methods never raise: every transport, HTTP, JSON or
    provider-level error comes back as a failed ProviderEnvelope. The
    ``data`` list holds provider-native records, untouched.
    """

    def __init__(self, name: str, sport: Sport, http_client: ProviderHTTPClient) -> None:
        self._name = name
        self._sport = sport
        self._http = http_client

    @property
    def name(self) -> str:
        return self._name

    @property
    def sport(self) -> Sport:
        return self._sport

    async def start(self) -> None:
        """Initialize the provider HTTP client."""
        await self._http.start()

    async def close(self) -> None:
        """Shutdown the provider HTTP client."""
        await self._http.close()

    # ── Public contract ─────────────────────────────────────────────────
    async def fetch_by_date(self, day: date, timezone_name: str | None = None) -> ProviderEnvelope:
        """All matches scheduled on ``day`` (YYYY-MM-DD in ``timezone_name``)."""
        return await self._timed("fetch_by_date", self._fetch_by_date(day, timezone_name))

    async def fetch_live(self) -> ProviderEnvelope:
        """Only matches currently in play."""
        return await self._timed("fetch_live", self._fetch_live())

    async def fetch_by_id(self, match_id: int) -> ProviderEnvelope:
        return await self._timed("fetch_by_id", self._fetch_by_id(match_id))

    async def fetch_status(self) -> ProviderEnvelope:
        """Account/quota information. ``data[0]`` is the raw status object."""
        return await self._timed("fetch_status", self._get("/status"))

    async def _timed(self, op: str, call: Awaitable[ProviderEnvelope]) -> ProviderEnvelope:
        start = time.perf_counter()
        try:
            result = await call
        except (httpx.HTTPError, ValueError) as exc:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "provider_fetch_error",
                provider=self._name,
                sport=self._sport.value,
                op=op,
                error=str(exc) or type(exc).__name__,
            )
            return ProviderEnvelope.failed(str(exc) or type(exc).__name__, latency_ms=latency_ms)

        result.latency_ms = (time.perf_counter() - start) * 1000
        if not result.success:
            logger.warning(
                "provider_fetch_failed",
                provider=self._name,
                sport=self._sport.value,
                op=op,
                error=result.error,
            )
        return result

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> ProviderEnvelope:
        """GET an api-sports endpoint and unwrap its ``{errors, results, response}`` body."""
        resp = await self._http.get(path, params=params, sport=self._sport.value)
        body = resp.json()
        if not isinstance(body, dict):
            return ProviderEnvelope.failed("unexpected response body")

        errors = body.get("errors")
        if errors:
            return ProviderEnvelope.failed(_describe_errors(errors))

        payload = body.get("response")
        if payload is None:
            return ProviderEnvelope.failed("missing response field")
        if isinstance(payload, dict):
            payload = [payload]
        data = [item for item in payload if isinstance(item, dict)]
        return ProviderEnvelope(success=True, data=data, results=int(body.get("results") or len(data)))

    # ── Abstract methods (each provider implements these) ───────────────
    @abc.abstractmethod
    async def _fetch_by_date(self, day: date, timezone_name: str | None) -> ProviderEnvelope:
        ...

    @abc.abstractmethod
    async def _fetch_live(self) -> ProviderEnvelope:
        ...

    @abc.abstractmethod
    async def _fetch_by_id(self, match_id: int) -> ProviderEnvelope:
        ...
