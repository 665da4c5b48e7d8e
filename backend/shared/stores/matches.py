"""
Match store: the rolling cache of canonical matches.

Rows are keyed by (sport, id). Writes go through PostgreSQL
INSERT ... ON CONFLICT DO UPDATE so that re-saving the same batch is a no-op
apart from last_updated.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional

from sqlalchemy import Select, delete, select, tuple_, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from shared.models.domain import Match, MatchFilters
from shared.models.enums import Sport
from shared.models.orm import MatchORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

logger = get_logger(__name__)

_KEY_COLUMNS = ("sport", "id")
# PostgreSQL caps a single statement at 32767 bind parameters.
MAX_BIND_PARAMS = 32767


def _to_row(match: Match) -> dict[str, Any]:
    row = match.model_dump(mode="python")
    row["sport"] = match.sport.value
    row["status"] = match.status.value
    return row


def _to_match(orm: MatchORM) -> Match:
    return Match.model_validate(orm)


def upsert_statements(rows: list[dict[str, Any]]) -> Iterator[Any]:
    """One INSERT ... ON CONFLICT per chunk of rows small enough to bind."""
    columns = MatchORM.__table__.columns
    chunk = max(1, MAX_BIND_PARAMS // len(columns))
    for start in range(0, len(rows), chunk):
        stmt = pg_insert(MatchORM).values(rows[start:start + chunk])
        update_cols = {
            col.name: stmt.excluded[col.name]
            for col in columns
            if col.name not in _KEY_COLUMNS
        }
        yield stmt.on_conflict_do_update(index_elements=list(_KEY_COLUMNS), set_=update_cols)


def _apply_filters(stmt: Any, filters: MatchFilters) -> Any:
    if filters.sport is not None:
        stmt = stmt.where(MatchORM.sport == filters.sport.value)
    if filters.date_from is not None:
        stmt = stmt.where(MatchORM.date >= filters.date_from)
    if filters.date_before is not None:
        stmt = stmt.where(MatchORM.date < filters.date_before)
    if filters.league_id is not None:
        stmt = stmt.where(MatchORM.league_id == filters.league_id)
    if filters.status is not None:
        stmt = stmt.where(MatchORM.status == filters.status.value)
    if filters.is_live is not None:
        stmt = stmt.where(MatchORM.is_live.is_(filters.is_live))
    return stmt


class MatchStore:
    """Relational match store over the ``matches`` table."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def upsert_many(self, matches: list[Match]) -> int:
        """Insert or update every match by (sport, id). Returns rows written."""
        if not matches:
            return 0
        rows = [_to_row(m) for m in matches]
        now = datetime.now(timezone.utc)
        for row in rows:
            row["last_updated"] = now

        async with self._db.write_session() as session:
            for stmt in upsert_statements(rows):
                await session.execute(stmt)
        return len(rows)

    async def get_many(self, sport: Sport, ids: Iterable[int]) -> dict[int, Match]:
        id_list = list(ids)
        if not id_list:
            return {}
        stmt = select(MatchORM).where(
            tuple_(MatchORM.sport, MatchORM.id).in_([(sport.value, i) for i in id_list])
        )
        async with self._db.read_session() as session:
            result = await session.execute(stmt)
            return {row.id: _to_match(row) for row in result.scalars().all()}

    async def query(self, filters: MatchFilters) -> list[Match]:
        """Filtered read, ordered by kickoff."""
        stmt: Select[Any] = _apply_filters(select(MatchORM), filters).order_by(
            MatchORM.date.asc(), MatchORM.id.asc()
        )
        if filters.limit:
            stmt = stmt.limit(filters.limit)
        async with self._db.read_session() as session:
            result = await session.execute(stmt)
            return [_to_match(row) for row in result.scalars().all()]

    async def delete(self, filters: MatchFilters) -> int:
        """Filtered delete. Returns the number of rows removed."""
        stmt = _apply_filters(delete(MatchORM), filters)
        async with self._db.write_session() as session:
            result = await session.execute(stmt)
            return result.rowcount or 0

    async def update_match(self, sport: Sport, match_id: int, patch: dict[str, Any]) -> Optional[Match]:
        """
        Patch one row and return it as stored after the write.

        Returns None when no row matched.
        """
        values = dict(patch)
        if "status" in values and hasattr(values["status"], "value"):
            values["status"] = values["status"].value
        values["last_updated"] = datetime.now(timezone.utc)
        stmt = (
            update(MatchORM)
            .where(MatchORM.sport == sport.value, MatchORM.id == match_id)
            .values(**values)
            .returning(MatchORM)
        )
        async with self._db.write_session() as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return _to_match(row) if row is not None else None
