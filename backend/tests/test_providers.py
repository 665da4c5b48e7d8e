"""
Provider adapter tests over httpx.MockTransport (no network).

Run: pytest backend/tests/test_providers.py -v
"""
from __future__ import annotations

from datetime import date
from typing import Callable

import httpx
import pytest

from ingest.providers.base import BaseProvider
from ingest.providers.games import GamesProvider
from ingest.providers.registry import build_provider, build_providers
from shared.config import Settings
from shared.models.enums import Sport

from tests.fakes import football_fixture


def body(response: object, errors: object = None, results: int | None = None) -> dict:
    items = response if isinstance(response, list) else [response]
    return {
        "get": "fixtures",
        "parameters": {},
        "errors": errors if errors is not None else [],
        "results": results if results is not None else len(items),
        "paging": {"current": 1, "total": 1},
        "response": response,
    }


async def started(
    sport: Sport,
    settings: Settings,
    handler: Callable[[httpx.Request], httpx.Response],
) -> BaseProvider:
    provider = build_provider(sport, settings, transport=httpx.MockTransport(handler))
    await provider.start()
    return provider


@pytest.mark.asyncio
async def test_football_fetch_by_date(settings: Settings) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=body([football_fixture(1), football_fixture(2)]))

    provider = await started(Sport.FOOTBALL, settings, handler)
    try:
        envelope = await provider.fetch_by_date(date(2026, 10, 19), "Europe/Amsterdam")
    finally:
        await provider.close()

    assert envelope.success
    assert envelope.results == 2
    assert [r["fixture"]["id"] for r in envelope.data] == [1, 2]
    assert envelope.latency_ms >= 0

    request = seen[0]
    assert request.url.path == "/fixtures"
    assert request.url.params["date"] == "2026-10-19"
    assert request.url.params["timezone"] == "Europe/Amsterdam"
    assert request.headers["x-apisports-key"] == "test-key"


@pytest.mark.asyncio
async def test_football_live_and_by_id_params(settings: Settings) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=body([]))

    provider = await started(Sport.FOOTBALL, settings, handler)
    try:
        live = await provider.fetch_live()
        single = await provider.fetch_by_id(4242)
    finally:
        await provider.close()

    assert live.success and live.data == []
    assert single.success
    assert seen[0].url.params["live"] == "all"
    assert seen[1].url.params["id"] == "4242"


@pytest.mark.asyncio
async def test_games_family_uses_games_path(settings: Settings) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=body([{"id": 5}]))

    provider = await started(Sport.BASKETBALL, settings, handler)
    try:
        envelope = await provider.fetch_live()
    finally:
        await provider.close()

    assert envelope.success
    assert seen[0].url.path == "/games"
    assert seen[0].url.host == "v1.basketball.api-sports.io"


@pytest.mark.asyncio
async def test_provider_error_payload_is_a_failure(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body([], errors={"token": "Error/Missing application key."}))

    provider = await started(Sport.FOOTBALL, settings, handler)
    try:
        envelope = await provider.fetch_live()
    finally:
        await provider.close()

    assert not envelope.success
    assert envelope.data == []
    assert envelope.error == "token: Error/Missing application key."


@pytest.mark.asyncio
async def test_http_error_is_a_failure(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream unavailable")

    provider = await started(Sport.FOOTBALL, settings, handler)
    try:
        envelope = await provider.fetch_by_date(date(2026, 10, 19))
    finally:
        await provider.close()

    assert not envelope.success
    assert "503" in (envelope.error or "")


@pytest.mark.asyncio
async def test_timeout_is_a_failure(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    provider = await started(Sport.FOOTBALL, settings, handler)
    try:
        envelope = await provider.fetch_live()
    finally:
        await provider.close()

    assert not envelope.success
    assert envelope.error == "timed out"


@pytest.mark.asyncio
async def test_invalid_json_is_a_failure(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    provider = await started(Sport.FOOTBALL, settings, handler)
    try:
        envelope = await provider.fetch_live()
    finally:
        await provider.close()

    assert not envelope.success


@pytest.mark.asyncio
async def test_status_object_is_wrapped(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/status"
        return httpx.Response(200, json=body({"requests": {"current": 12, "limit_day": 100}}, results=1))

    provider = await started(Sport.FOOTBALL, settings, handler)
    try:
        envelope = await provider.fetch_status()
    finally:
        await provider.close()

    assert envelope.success
    assert envelope.data == [{"requests": {"current": 12, "limit_day": 100}}]


def test_build_providers_covers_every_sport(settings: Settings) -> None:
    providers = build_providers(settings)
    assert set(providers) == set(Sport)
    assert providers[Sport.FOOTBALL].name == "api_football"
    assert isinstance(providers[Sport.VOLLEYBALL], GamesProvider)


def test_games_provider_rejects_football(settings: Settings) -> None:
    provider = build_provider(Sport.BASEBALL, settings)
    with pytest.raises(ValueError):
        GamesProvider(Sport.FOOTBALL, provider._http)
