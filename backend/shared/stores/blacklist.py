"""Deny-list table of match ids that must never reach the match store."""
from __future__ import annotations

from sqlalchemy import select

from shared.models.orm import BlacklistedMatchORM
from shared.utils.database import DatabaseManager


class BlacklistStore:
    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def list_ids(self) -> set[int]:
        async with self._db.read_session() as session:
            result = await session.execute(select(BlacklistedMatchORM.match_id))
            return set(result.scalars().all())
