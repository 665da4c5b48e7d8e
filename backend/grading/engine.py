"""
Grading engine.

Turns a finished match's result into point awards and streak updates for
every user holding a pending prediction on it. All progress is durable in
each prediction's ``status``; the engine keeps no state between runs.

Grade writes only match rows that are still pending, so a prediction picked
up by two overlapping runs is counted by exactly one of them.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from shared.config import Settings, get_settings
from shared.models.domain import (
    GradingRunResult,
    KindGradeResult,
    MatchGradeResult,
    MatchResult,
    Prediction,
    UserPartial,
)
from shared.models.enums import PredictionKind, PredictionStatus, Sport
from shared.stores.predictions import PredictionStore
from shared.stores.profiles import UserStatsStore
from shared.utils.logging import get_logger
from shared.utils.metrics import PREDICTIONS_GRADED, USER_STATS_UPDATES

from grading.scoring import calculate_points, compute_stats_update, is_big_league, outcome_of
from ingest.normalization.transformer import InvalidMatchRecord, is_finished_code, transform_match
from ingest.providers.base import BaseProvider

logger = get_logger(__name__)

STORE_NOT_CONFIGURED = "store not configured"
RESULT_NOT_READY = "match not finished or not found"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_correct(kind: PredictionKind, prediction: Prediction, result: MatchResult) -> bool:
    if kind == PredictionKind.WINNER:
        return prediction.predicted_result == result.winner
    return (
        prediction.predicted_home_score == result.home_score
        and prediction.predicted_away_score == result.away_score
    )


class GradingEngine:
    def __init__(
        self,
        provider: Optional[BaseProvider],
        prediction_store: Optional[PredictionStore],
        user_stats_store: Optional[UserStatsStore],
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._provider = provider
        self._predictions = prediction_store
        self._users = user_stats_store
        self._settings = settings or get_settings()
        self._sleep = sleep
        self._now = clock
        self._sport = provider.sport if provider is not None else Sport.FOOTBALL

    @property
    def configured(self) -> bool:
        return self._provider is not None and self._predictions is not None and self._users is not None

    # ── Work queue ──────────────────────────────────────────────────────
    async def list_matches_awaiting_grading(self) -> list[int]:
        """Distinct match ids referenced by any pending prediction of either kind."""
        if self._predictions is None:
            return []
        ids: set[int] = set()
        for kind in PredictionKind:
            ids |= await self._predictions.pending_match_ids(kind)
        return sorted(ids)

    # ── Result lookup ───────────────────────────────────────────────────
    async def fetch_result(self, match_id: int) -> Optional[MatchResult]:
        """
        Terminal result of ``match_id``, or None if it is not finished yet
        (or the provider could not be reached). Never a partial result.
        """
        if self._provider is None:
            return None

        envelope = await self._provider.fetch_by_id(match_id)
        if not envelope.success or not envelope.data:
            logger.debug("match_result_unavailable", match_id=match_id, error=envelope.error)
            return None

        try:
            match = transform_match(self._sport, envelope.data[0])
        except InvalidMatchRecord as exc:
            logger.warning("match_result_unreadable", match_id=match_id, error=str(exc))
            return None

        if not is_finished_code(self._sport, match.status_short):
            return None
        if match.home_score is None or match.away_score is None:
            logger.warning("match_result_missing_score", match_id=match_id, status_short=match.status_short)
            return None

        return MatchResult(
            match_id=match_id,
            status_short=match.status_short or "",
            home_team=match.home_team_name,
            away_team=match.away_team_name,
            home_score=match.home_score,
            away_score=match.away_score,
            winner=outcome_of(match.home_score, match.away_score),
            league_name=match.league_name or "",
        )

    # ── Per-kind grading ────────────────────────────────────────────────
    async def grade_winner_predictions(self, match_id: int, result: MatchResult) -> KindGradeResult:
        return await self._grade_kind(PredictionKind.WINNER, match_id, result)

    async def grade_score_predictions(self, match_id: int, result: MatchResult) -> KindGradeResult:
        return await self._grade_kind(PredictionKind.SCORE, match_id, result)

    def _grade_patch(self, kind: PredictionKind, is_correct: bool, points: int, result: MatchResult) -> dict[str, Any]:
        patch: dict[str, Any] = {
            "status": PredictionStatus.GRADED.value,
            "is_correct": is_correct,
            "points_earned": points,
            "actual_home_score": result.home_score,
            "actual_away_score": result.away_score,
            "graded_at": self._now(),
        }
        if kind == PredictionKind.WINNER:
            patch["actual_result"] = result.winner.value
        return patch

    async def _grade_kind(self, kind: PredictionKind, match_id: int, result: MatchResult) -> KindGradeResult:
        out = KindGradeResult(kind=kind)
        if self._predictions is None:
            return out

        try:
            pending = await self._predictions.query_pending(kind, match_id)
        except Exception as exc:
            logger.error("pending_predictions_query_failed", kind=kind.value, match_id=match_id, error=str(exc), exc_info=True)
            return out

        big = is_big_league(result.league_name, self._settings.big_leagues)
        for prediction in pending:
            is_correct = _is_correct(kind, prediction, result)
            points = calculate_points(kind, is_correct, big)
            try:
                written = await self._predictions.update_by_id(
                    kind, prediction.id, self._grade_patch(kind, is_correct, points, result)
                )
            except Exception as exc:
                out.failed += 1
                logger.error(
                    "prediction_update_failed",
                    kind=kind.value,
                    prediction_id=prediction.id,
                    match_id=match_id,
                    error=str(exc),
                    exc_info=True,
                )
                continue

            if not written:
                logger.info("prediction_already_graded", kind=kind.value, prediction_id=prediction.id, match_id=match_id)
                continue

            out.graded += 1
            out.correct += int(is_correct)
            out.user_results.setdefault(prediction.email, UserPartial()).add(points, is_correct, prediction.id)
            PREDICTIONS_GRADED.labels(kind=kind.value, correct=str(is_correct).lower()).inc()

        return out

    # ── User stats ──────────────────────────────────────────────────────
    async def update_user_stats_per_match(
        self,
        email: str,
        winner_partial: Optional[UserPartial],
        score_partial: Optional[UserPartial],
    ) -> bool:
        """Apply one match's combined result to a user's stats. Streak moves once."""
        if self._users is None:
            return False
        try:
            current = await self._users.get_by_email(email)
            if current is None:
                USER_STATS_UPDATES.labels(outcome="missing_profile").inc()
                logger.warning("user_profile_missing", email=email)
                return False

            update = compute_stats_update(current, [winner_partial, score_partial])
            ok = await self._users.update_by_email(email, update.as_patch())
        except Exception as exc:
            USER_STATS_UPDATES.labels(outcome="error").inc()
            logger.error("user_stats_update_failed", email=email, error=str(exc), exc_info=True)
            await self._release_predictions(email, winner_partial, score_partial)
            return False

        if not ok:
            USER_STATS_UPDATES.labels(outcome="missing_profile").inc()
            logger.warning("user_stats_update_no_row", email=email)
            return False

        USER_STATS_UPDATES.labels(outcome="updated").inc()
        logger.info(
            "user_stats_updated",
            email=email,
            points=update.points_earned,
            bonus=update.bonus,
            streak=update.current_streak,
        )
        return True

    async def _release_predictions(
        self,
        email: str,
        winner_partial: Optional[UserPartial],
        score_partial: Optional[UserPartial],
    ) -> int:
        """Return a user's just-graded predictions to pending so the next run regrades them."""
        if self._predictions is None:
            return 0
        released = 0
        for kind, partial in ((PredictionKind.WINNER, winner_partial), (PredictionKind.SCORE, score_partial)):
            if partial is None or not partial.prediction_ids:
                continue
            try:
                released += await self._predictions.release_graded(kind, partial.prediction_ids)
            except Exception as exc:
                logger.error(
                    "prediction_release_failed",
                    kind=kind.value,
                    email=email,
                    prediction_ids=partial.prediction_ids,
                    error=str(exc),
                    exc_info=True,
                )
        logger.warning("predictions_released", email=email, released=released)
        return released

    # ── Drivers ─────────────────────────────────────────────────────────
    async def _grade_with_result(self, match_id: int, result: MatchResult) -> MatchGradeResult:
        winner = await self.grade_winner_predictions(match_id, result)
        score = await self.grade_score_predictions(match_id, result)

        emails = sorted(set(winner.user_results) | set(score.user_results))
        users_updated = 0
        for email in emails:
            if await self.update_user_stats_per_match(
                email,
                winner.user_results.get(email),
                score.user_results.get(email),
            ):
                users_updated += 1

        logger.info(
            "match_graded",
            match_id=match_id,
            score=f"{result.home_score}-{result.away_score}",
            league=result.league_name,
            winner_graded=winner.graded,
            score_graded=score.graded,
            correct=winner.correct + score.correct,
            failed=winner.failed + score.failed,
            users_updated=users_updated,
        )
        return MatchGradeResult(
            success=True,
            match_id=match_id,
            result=result,
            winner_graded=winner.graded,
            score_graded=score.graded,
            correct=winner.correct + score.correct,
            users_updated=users_updated,
        )

    async def grade_match(self, match_id: int) -> MatchGradeResult:
        """Grade one match on demand, bypassing the candidate listing."""
        if not self.configured:
            return MatchGradeResult(success=False, match_id=match_id, error=STORE_NOT_CONFIGURED)

        result = await self.fetch_result(match_id)
        if result is None:
            return MatchGradeResult(success=False, match_id=match_id, error=RESULT_NOT_READY)
        return await self._grade_with_result(match_id, result)

    async def grade_all_pending(self) -> GradingRunResult:
        """List candidate matches, grade each finished one, pause between matches."""
        if not self.configured:
            return GradingRunResult(success=False, error=STORE_NOT_CONFIGURED)

        try:
            match_ids = await self.list_matches_awaiting_grading()
        except Exception as exc:
            logger.error("grading_candidates_failed", error=str(exc), exc_info=True)
            return GradingRunResult(success=False, error=str(exc))

        if not match_ids:
            logger.debug("grading_nothing_pending")
            return GradingRunResult(success=True)

        run = GradingRunResult(success=True, candidates=len(match_ids))
        for index, match_id in enumerate(match_ids):
            try:
                result = await self.fetch_result(match_id)
                if result is None:
                    run.matches_skipped += 1
                    logger.debug("match_not_finished", match_id=match_id)
                    continue
                graded = await self._grade_with_result(match_id, result)
            except Exception as exc:
                run.matches_skipped += 1
                logger.error("match_grading_failed", match_id=match_id, error=str(exc), exc_info=True)
                continue

            run.matches_graded += 1
            run.graded += graded.graded
            run.correct += graded.correct
            if index < len(match_ids) - 1:
                await self._sleep(self._settings.grading_inter_match_delay_s)

        logger.info(
            "grading_completed",
            candidates=run.candidates,
            matches_graded=run.matches_graded,
            matches_skipped=run.matches_skipped,
            graded=run.graded,
            correct=run.correct,
        )
        return run
