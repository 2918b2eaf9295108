"""Apply the chatwatch schema migrations.

Usage:
    python db_migrate.py          # Run all pending migrations
    python db_migrate.py --dry    # Show pending migrations without applying
"""

import asyncio
import logging
import sys
from pathlib import Path

# Ensure backend/ is on sys.path so shared.* and tracker.* are importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from shared.database import DatabaseManager, PoolConfig
from shared.migrations import MigrationRunner
from tracker.core import get_settings, setup_logging

logger = logging.getLogger("db_migrate")


async def main() -> None:
    settings = get_settings()
    db = DatabaseManager(settings.database_url, PoolConfig(min_size=1, max_size=2))
    await db.connect()

    try:
        runner = MigrationRunner(db.pool)

        if "--dry" in sys.argv:
            pending = await runner.pending()
            logger.info(f"Pending: {len(pending)}")
            for version in pending:
                logger.info(f"  -> {version}")
            if not pending:
                logger.info("Database is up to date.")
        else:
            newly_applied = await runner.run_pending()
            logger.info(f"Applied {len(newly_applied)} migration(s).")
    finally:
        await db.disconnect()


if __name__ == "__main__":
    setup_logging(get_settings())
    asyncio.run(main())
