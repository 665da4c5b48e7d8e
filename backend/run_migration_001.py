#!/usr/bin/env python3
"""
Create the Matchday tables (matches, predictions, profiles, match_blacklist).
Idempotent: existing tables are left as they are.
Requires MD_DATABASE_URL (or DATABASE_URL) in the environment or .env.
Run after `pip install -e .`: python3 backend/run_migration_001.py
"""
import asyncio
import sys

from shared.config import get_settings
from shared.models.orm import Base
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def main() -> None:
    settings = get_settings()
    setup_logging("migrate")
    if not settings.database_configured:
        logger.error("migration_no_database", detail="set MD_DATABASE_URL or DATABASE_URL")
        sys.exit(1)

    db = DatabaseManager(settings)
    await db.connect()
    try:
        async with db.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("migration_001_applied", tables=sorted(Base.metadata.tables))
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
