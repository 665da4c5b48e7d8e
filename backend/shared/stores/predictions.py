"""Prediction store: winner and score predictions, kept in separate tables."""
from __future__ import annotations

from typing import Any, Optional, Union

from sqlalchemy import select, update

from shared.models.domain import Prediction
from shared.models.enums import PredictionKind, PredictionStatus
from shared.models.orm import ScorePredictionORM, WinnerPredictionORM
from shared.utils.database import DatabaseManager

PredictionORM = Union[type[WinnerPredictionORM], type[ScorePredictionORM]]

_TABLES: dict[PredictionKind, PredictionORM] = {
    PredictionKind.WINNER: WinnerPredictionORM,
    PredictionKind.SCORE: ScorePredictionORM,
}


def _to_prediction(kind: PredictionKind, row: Any) -> Prediction:
    return Prediction(
        kind=kind,
        id=row.id,
        match_id=row.match_id,
        email=row.email,
        status=row.status,
        predicted_result=getattr(row, "predicted_result", None),
        predicted_home_score=getattr(row, "predicted_home_score", None),
        predicted_away_score=getattr(row, "predicted_away_score", None),
        is_correct=row.is_correct,
        points_earned=row.points_earned or 0,
    )


class PredictionStore:
    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def query_pending(self, kind: PredictionKind, match_id: Optional[int] = None) -> list[Prediction]:
        table = _TABLES[kind]
        stmt = select(table).where(table.status == PredictionStatus.PENDING.value)
        if match_id is not None:
            stmt = stmt.where(table.match_id == match_id)
        stmt = stmt.order_by(table.id)
        async with self._db.read_session() as session:
            result = await session.execute(stmt)
            return [_to_prediction(kind, row) for row in result.scalars().all()]

    async def pending_match_ids(self, kind: PredictionKind) -> set[int]:
        table = _TABLES[kind]
        stmt = select(table.match_id).where(table.status == PredictionStatus.PENDING.value).distinct()
        async with self._db.read_session() as session:
            result = await session.execute(stmt)
            return set(result.scalars().all())

    async def update_by_id(self, kind: PredictionKind, prediction_id: int, patch: dict[str, Any]) -> bool:
        """
        Apply ``patch`` only if the row is still pending.

        Returns False when no pending row matched, i.e. the prediction was
        already graded by a concurrent run.
        """
        table = _TABLES[kind]
        stmt = (
            update(table)
            .where(table.id == prediction_id, table.status == PredictionStatus.PENDING.value)
            .values(**patch)
        )
        async with self._db.write_session() as session:
            result = await session.execute(stmt)
            return (result.rowcount or 0) > 0

    async def release_graded(self, kind: PredictionKind, prediction_ids: list[int]) -> int:
        """
        Put graded predictions back to pending and clear their grading fields.

        Only rows currently ``graded`` are touched. Returns the number released.
        """
        if not prediction_ids:
            return 0
        table = _TABLES[kind]
        values: dict[str, Any] = {
            "status": PredictionStatus.PENDING.value,
            "is_correct": None,
            "points_earned": 0,
            "actual_home_score": None,
            "actual_away_score": None,
            "graded_at": None,
        }
        if kind == PredictionKind.WINNER:
            values["actual_result"] = None
        stmt = (
            update(table)
            .where(table.id.in_(prediction_ids), table.status == PredictionStatus.GRADED.value)
            .values(**values)
        )
        async with self._db.write_session() as session:
            result = await session.execute(stmt)
            return result.rowcount or 0
