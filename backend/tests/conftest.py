"""Shared fixtures for the Matchday test suite."""
from __future__ import annotations

import pytest

from shared.config import Settings

from tests.fakes import FakeMatchStore


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url=None,
        api_sports_key="test-key",
        match_blacklist=[],
        sync_timezone="UTC",
        sync_sports=["football"],
        grading_inter_match_delay_s=0.5,
        metrics_enabled=False,
        initial_sync_on_startup=False,
    )


@pytest.fixture
def match_store() -> FakeMatchStore:
    return FakeMatchStore()
