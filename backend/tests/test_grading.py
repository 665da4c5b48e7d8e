"""
Grading engine tests against in-memory prediction and profile stores.

Run: pytest backend/tests/test_grading.py -v
"""
from __future__ import annotations

from typing import Optional

import pytest

from grading.engine import RESULT_NOT_READY, STORE_NOT_CONFIGURED, GradingEngine
from shared.config import Settings
from shared.models.domain import Prediction, ProviderEnvelope, UserStats
from shared.models.enums import Outcome, PredictionKind, PredictionStatus

from tests.fakes import (
    NOW,
    FakePredictionStore,
    FakeProvider,
    FakeUserStatsStore,
    fixed_clock,
    football_fixture,
    ok,
)

EMAIL = "fan@example.com"


def winner(pid: int, match_id: int, pick: Outcome, email: str = EMAIL) -> Prediction:
    return Prediction(kind=PredictionKind.WINNER, id=pid, match_id=match_id, email=email, predicted_result=pick)


def score(pid: int, match_id: int, home: int, away: int, email: str = EMAIL) -> Prediction:
    return Prediction(
        kind=PredictionKind.SCORE,
        id=pid,
        match_id=match_id,
        email=email,
        predicted_home_score=home,
        predicted_away_score=away,
    )


def finished(match_id: int, home: int, away: int, league: str = "Eredivisie", status: str = "FT") -> ProviderEnvelope:
    return ok([football_fixture(match_id, status=status, home=home, away=away, league=league)])


class Sleeps:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_engine(
    settings: Settings,
    provider: Optional[FakeProvider],
    predictions: Optional[FakePredictionStore],
    users: Optional[FakeUserStatsStore],
    sleeps: Optional[Sleeps] = None,
) -> GradingEngine:
    return GradingEngine(provider, predictions, users, settings, sleep=sleeps or Sleeps(), clock=fixed_clock)


# ── Result lookup ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fetch_result_for_finished_match(settings: Settings) -> None:
    provider = FakeProvider(by_id={100: finished(100, 2, 1)})
    engine = make_engine(settings, provider, FakePredictionStore(), FakeUserStatsStore())

    result = await engine.fetch_result(100)

    assert result is not None
    assert (result.home_score, result.away_score) == (2, 1)
    assert result.winner == Outcome.HOME
    assert result.league_name == "Eredivisie"
    assert result.home_team == "Home FC"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["AET", "PEN"])
async def test_fetch_result_accepts_extra_time_and_penalties(settings: Settings, status: str) -> None:
    provider = FakeProvider(by_id={100: finished(100, 1, 1, status=status)})
    engine = make_engine(settings, provider, FakePredictionStore(), FakeUserStatsStore())
    result = await engine.fetch_result(100)
    assert result is not None
    assert result.winner == Outcome.DRAW


@pytest.mark.asyncio
async def test_fetch_result_none_while_in_play(settings: Settings) -> None:
    provider = FakeProvider(by_id={100: ok([football_fixture(100, status="2H", home=1, away=0)])})
    engine = make_engine(settings, provider, FakePredictionStore(), FakeUserStatsStore())
    assert await engine.fetch_result(100) is None


@pytest.mark.asyncio
async def test_fetch_result_none_without_scores(settings: Settings) -> None:
    provider = FakeProvider(by_id={100: ok([football_fixture(100, status="FT")])})
    engine = make_engine(settings, provider, FakePredictionStore(), FakeUserStatsStore())
    assert await engine.fetch_result(100) is None


@pytest.mark.asyncio
async def test_fetch_result_none_on_provider_failure(settings: Settings) -> None:
    provider = FakeProvider(by_id={100: ProviderEnvelope.failed("boom")})
    engine = make_engine(settings, provider, FakePredictionStore(), FakeUserStatsStore())
    assert await engine.fetch_result(100) is None
    assert await engine.fetch_result(999) is None


# ── Per-kind grading ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_winner_points_by_league_tier(settings: Settings) -> None:
    store = FakePredictionStore([winner(1, 100, Outcome.HOME), winner(2, 200, Outcome.HOME)])
    provider = FakeProvider(
        by_id={100: finished(100, 2, 1), 200: finished(200, 3, 0, league="Premier League")}
    )
    engine = make_engine(settings, provider, store, FakeUserStatsStore())

    normal = await engine.grade_winner_predictions(100, await engine.fetch_result(100))
    big = await engine.grade_winner_predictions(200, await engine.fetch_result(200))

    assert normal.user_results[EMAIL].points == 10
    assert big.user_results[EMAIL].points == 15


@pytest.mark.asyncio
async def test_exact_score_only(settings: Settings) -> None:
    store = FakePredictionStore([
        score(1, 100, 2, 1, email="exact@example.com"),
        score(2, 100, 2, 0, email="close@example.com"),
    ])
    provider = FakeProvider(by_id={100: finished(100, 2, 1)})
    engine = make_engine(settings, provider, store, FakeUserStatsStore())

    out = await engine.grade_score_predictions(100, await engine.fetch_result(100))

    assert out.graded == 2
    assert out.correct == 1
    assert out.user_results["exact@example.com"].points == 20
    assert out.user_results["close@example.com"].points == 0
    assert store.rows[PredictionKind.SCORE][2].is_correct is False
    assert store.rows[PredictionKind.SCORE][2].status == PredictionStatus.GRADED


@pytest.mark.asyncio
async def test_grade_patch_records_actual_result(settings: Settings) -> None:
    store = FakePredictionStore([winner(1, 100, Outcome.AWAY)])
    provider = FakeProvider(by_id={100: finished(100, 2, 1)})
    engine = make_engine(settings, provider, store, FakeUserStatsStore())

    await engine.grade_winner_predictions(100, await engine.fetch_result(100))

    patch = store.patches[(PredictionKind.WINNER, 1)]
    assert patch["status"] == "graded"
    assert patch["is_correct"] is False
    assert patch["points_earned"] == 0
    assert patch["actual_result"] == "home"
    assert (patch["actual_home_score"], patch["actual_away_score"]) == (2, 1)
    assert patch["graded_at"] == NOW


@pytest.mark.asyncio
async def test_write_failure_does_not_stop_the_batch(settings: Settings) -> None:
    store = FakePredictionStore([
        winner(1, 100, Outcome.HOME, email="a@example.com"),
        winner(2, 100, Outcome.HOME, email="b@example.com"),
    ])
    store.fail_ids = {1}
    provider = FakeProvider(by_id={100: finished(100, 2, 1)})
    engine = make_engine(settings, provider, store, FakeUserStatsStore())

    out = await engine.grade_winner_predictions(100, await engine.fetch_result(100))

    assert out.failed == 1
    assert out.graded == 1
    assert list(out.user_results) == ["b@example.com"]
    assert store.rows[PredictionKind.WINNER][1].status == PredictionStatus.PENDING


# ── Match grading and user stats ────────────────────────────────────────

@pytest.mark.asyncio
async def test_grade_match_updates_stats_once_per_match(settings: Settings) -> None:
    predictions = FakePredictionStore([winner(1, 100, Outcome.HOME), score(2, 100, 2, 0)])
    users = FakeUserStatsStore([
        UserStats(
            email=EMAIL,
            total_experience=50,
            season_points=50,
            current_streak=2,
            best_streak=2,
            correct_predictions=4,
            total_predictions=6,
        )
    ])
    provider = FakeProvider(by_id={100: finished(100, 2, 1)})
    engine = make_engine(settings, provider, predictions, users)

    result = await engine.grade_match(100)

    assert result.success
    assert result.winner_graded == 1
    assert result.score_graded == 1
    assert result.correct == 1
    assert result.users_updated == 1

    stats = users.profiles[EMAIL]
    assert stats.current_streak == 3
    assert stats.best_streak == 3
    assert stats.total_experience == 50 + 10 + 5
    assert stats.season_points == 50 + 10 + 5
    assert stats.correct_predictions == 5
    assert stats.total_predictions == 8
    assert len(users.updates) == 1


@pytest.mark.asyncio
async def test_regrading_is_a_no_op(settings: Settings) -> None:
    predictions = FakePredictionStore([winner(1, 100, Outcome.HOME)])
    users = FakeUserStatsStore([UserStats(email=EMAIL)])
    provider = FakeProvider(by_id={100: finished(100, 2, 1)})
    engine = make_engine(settings, provider, predictions, users)

    await engine.grade_match(100)
    second = await engine.grade_match(100)

    assert second.graded == 0
    assert second.users_updated == 0
    assert users.profiles[EMAIL].total_experience == 10
    assert len(users.updates) == 1


@pytest.mark.asyncio
async def test_prediction_taken_by_concurrent_run_is_not_counted(settings: Settings) -> None:
    predictions = FakePredictionStore([winner(1, 100, Outcome.HOME)])
    predictions.stolen_ids = {1}
    users = FakeUserStatsStore([UserStats(email=EMAIL)])
    provider = FakeProvider(by_id={100: finished(100, 2, 1)})
    engine = make_engine(settings, provider, predictions, users)

    result = await engine.grade_match(100)

    assert result.graded == 0
    assert users.updates == []


@pytest.mark.asyncio
async def test_missing_profile_still_grades_prediction(settings: Settings) -> None:
    predictions = FakePredictionStore([winner(1, 100, Outcome.HOME)])
    users = FakeUserStatsStore()
    provider = FakeProvider(by_id={100: finished(100, 2, 1)})
    engine = make_engine(settings, provider, predictions, users)

    result = await engine.grade_match(100)

    assert result.success
    assert result.winner_graded == 1
    assert result.users_updated == 0
    assert predictions.rows[PredictionKind.WINNER][1].status == PredictionStatus.GRADED


@pytest.mark.asyncio
async def test_failed_stats_write_returns_predictions_to_pending(settings: Settings) -> None:
    predictions = FakePredictionStore([winner(1, 100, Outcome.HOME), score(2, 100, 2, 1)])
    users = FakeUserStatsStore([UserStats(email=EMAIL)])
    users.fail_updates = 1
    provider = FakeProvider(by_id={100: finished(100, 2, 1)})
    engine = make_engine(settings, provider, predictions, users)

    first = await engine.grade_all_pending()

    assert first.success
    assert first.matches_graded == 1
    assert predictions.rows[PredictionKind.WINNER][1].status == PredictionStatus.PENDING
    assert predictions.rows[PredictionKind.SCORE][2].status == PredictionStatus.PENDING
    assert users.updates == []
    assert await engine.list_matches_awaiting_grading() == [100]

    await engine.grade_all_pending()

    assert predictions.rows[PredictionKind.WINNER][1].status == PredictionStatus.GRADED
    assert predictions.rows[PredictionKind.SCORE][2].status == PredictionStatus.GRADED
    stats = users.profiles[EMAIL]
    assert stats.total_experience == 10 + 20
    assert stats.current_streak == 1
    assert stats.total_predictions == 2
    assert len(users.updates) == 1


@pytest.mark.asyncio
async def test_grade_match_not_finished(settings: Settings) -> None:
    predictions = FakePredictionStore([winner(1, 100, Outcome.HOME)])
    provider = FakeProvider(by_id={100: ok([football_fixture(100, status="1H", home=0, away=0)])})
    engine = make_engine(settings, provider, predictions, FakeUserStatsStore())

    result = await engine.grade_match(100)

    assert not result.success
    assert result.error == RESULT_NOT_READY
    assert predictions.rows[PredictionKind.WINNER][1].status == PredictionStatus.PENDING


# ── Batch driver ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_candidates_are_union_of_both_kinds(settings: Settings) -> None:
    predictions = FakePredictionStore([winner(1, 300, Outcome.HOME), score(2, 100, 1, 0), score(3, 300, 0, 0)])
    engine = make_engine(settings, FakeProvider(), predictions, FakeUserStatsStore())
    assert await engine.list_matches_awaiting_grading() == [100, 300]


@pytest.mark.asyncio
async def test_grade_all_pending_pauses_between_matches(settings: Settings) -> None:
    predictions = FakePredictionStore([winner(1, 100, Outcome.HOME), winner(2, 200, Outcome.AWAY)])
    provider = FakeProvider(by_id={100: finished(100, 2, 1), 200: finished(200, 0, 1)})
    sleeps = Sleeps()
    engine = make_engine(settings, provider, predictions, FakeUserStatsStore([UserStats(email=EMAIL)]), sleeps)

    run = await engine.grade_all_pending()

    assert run.success
    assert run.candidates == 2
    assert run.matches_graded == 2
    assert run.graded == 2
    assert run.correct == 2
    assert sleeps.calls == [0.5]


@pytest.mark.asyncio
async def test_grade_all_pending_skips_unfinished(settings: Settings) -> None:
    predictions = FakePredictionStore([winner(1, 100, Outcome.HOME), winner(2, 200, Outcome.HOME)])
    provider = FakeProvider(by_id={200: finished(200, 1, 0)})
    engine = make_engine(settings, provider, predictions, FakeUserStatsStore())

    run = await engine.grade_all_pending()

    assert run.matches_graded == 1
    assert run.matches_skipped == 1
    assert predictions.rows[PredictionKind.WINNER][1].status == PredictionStatus.PENDING


class _FlakyProvider(FakeProvider):
    async def fetch_by_id(self, match_id: int) -> ProviderEnvelope:
        if match_id == 100:
            raise RuntimeError("unexpected")
        return await super().fetch_by_id(match_id)


@pytest.mark.asyncio
async def test_grade_all_pending_survives_a_failing_match(settings: Settings) -> None:
    predictions = FakePredictionStore([winner(1, 100, Outcome.HOME), winner(2, 200, Outcome.HOME)])
    provider = _FlakyProvider(by_id={200: finished(200, 1, 0)})
    engine = make_engine(settings, provider, predictions, FakeUserStatsStore())

    run = await engine.grade_all_pending()

    assert run.success
    assert run.matches_graded == 1
    assert run.matches_skipped == 1


@pytest.mark.asyncio
async def test_grading_disabled_without_store(settings: Settings) -> None:
    engine = make_engine(settings, FakeProvider(), None, None)
    assert not engine.configured

    run = await engine.grade_all_pending()
    single = await engine.grade_match(100)

    assert not run.success
    assert run.error == STORE_NOT_CONFIGURED
    assert single.error == STORE_NOT_CONFIGURED
