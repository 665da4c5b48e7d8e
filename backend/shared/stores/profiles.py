"""User stats store, one row per user keyed by email."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select, update

from shared.models.domain import UserStats
from shared.models.orm import ProfileORM
from shared.utils.database import DatabaseManager


class UserStatsStore:
    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_by_email(self, email: str) -> Optional[UserStats]:
        async with self._db.read_session() as session:
            result = await session.execute(select(ProfileORM).where(ProfileORM.email == email))
            row = result.scalar_one_or_none()
            return UserStats.model_validate(row) if row is not None else None

    async def update_by_email(self, email: str, patch: dict[str, int]) -> bool:
        stmt = update(ProfileORM).where(ProfileORM.email == email).values(**patch)
        async with self._db.write_session() as session:
            result = await session.execute(stmt)
            return (result.rowcount or 0) > 0
