"""
Async HTTP client wrapper for provider requests.
Includes timeout management, optional bounded retry, and metrics collection.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS

logger = get_logger(__name__)


class ProviderHTTPClient:
    """
    Async HTTP client tailored for the api-sports family of endpoints.

    One attempt per call by default: a failed fetch is reported to the
    caller and the next scheduled tick is the retry.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        max_attempts: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.provider_request_timeout_s
        self._max_attempts = max(1, max_attempts or settings.provider_max_attempts)
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider(self) -> str:
        return self._provider

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        sport: str = "unknown",
    ) -> httpx.Response:
        """
        Perform a GET request with metrics and structured logging.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses once attempts are exhausted.
            httpx.TransportError: On timeouts and connection failures.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        last_exc: Optional[Exception] = None

        for attempt in range(1, self._max_attempts + 1):
            start_time = time.perf_counter()
            status = "unknown"
            try:
                resp = await self._client.get(path, params=params)
                status = str(resp.status_code)
                resp.raise_for_status()
                logger.debug(
                    "provider_request_success",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                    latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                return resp

            except httpx.TimeoutException as exc:
                status = "timeout"
                last_exc = exc
                logger.warning("provider_timeout", provider=self._provider, path=path, attempt=attempt)

            except httpx.HTTPStatusError as exc:
                last_exc = exc
                code = exc.response.status_code
                logger.warning(
                    "provider_http_error",
                    provider=self._provider,
                    path=path,
                    status=code,
                    attempt=attempt,
                )
                if 400 <= code < 500 and code != 429:
                    raise

            except httpx.TransportError as exc:
                status = "error"
                last_exc = exc
                logger.warning(
                    "provider_request_error",
                    provider=self._provider,
                    path=path,
                    error=str(exc),
                    attempt=attempt,
                )

            finally:
                PROVIDER_REQUESTS.labels(
                    provider=self._provider, sport=sport, endpoint=path, status=status
                ).inc()
                PROVIDER_LATENCY.labels(provider=self._provider).observe(time.perf_counter() - start_time)

            if attempt < self._max_attempts:
                await asyncio.sleep(1.0 * attempt)

        if last_exc:
            raise last_exc
        raise RuntimeError(f"Provider request failed after {self._max_attempts} attempts")
