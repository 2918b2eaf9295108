"""Lightweight migration runner with tracking table."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"


class MigrationRunner:
    """Apply ``versions/NNN_description.sql`` files once each, in filename order.

    Applied versions are recorded in ``schema_migrations``.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def ensure_table(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                    version    TEXT PRIMARY KEY,
                    name       TEXT NOT NULL,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )

    async def get_applied(self) -> set[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
            return {row["version"] for row in rows}

    async def pending(self, migrations_dir: Path | None = None) -> list[str]:
        """Versions on disk that have not been applied yet."""
        migrations_dir = migrations_dir or VERSIONS_DIR
        await self.ensure_table()
        applied = await self.get_applied()
        return [p.stem for p in sorted(migrations_dir.glob("*.sql")) if p.stem not in applied]

    async def run_pending(self, migrations_dir: Path | None = None) -> list[str]:
        """Apply all pending migrations. Returns the newly applied versions."""
        migrations_dir = migrations_dir or VERSIONS_DIR
        await self.ensure_table()
        applied = await self.get_applied()

        sql_files = sorted(migrations_dir.glob("*.sql"))
        if not sql_files:
            logger.info("No migration files found in %s", migrations_dir)
            return []

        newly_applied: list[str] = []
        for sql_path in sql_files:
            version = sql_path.stem
            if version in applied:
                continue
            await self._apply_one(version, sql_path.name, sql_path.read_text(encoding="utf-8"))
            newly_applied.append(version)

        if newly_applied:
            logger.info("Applied %d migration(s): %s", len(newly_applied), ", ".join(newly_applied))
        else:
            logger.info("Database schema is up to date")
        return newly_applied

    async def _apply_one(self, version: str, name: str, sql: str) -> None:
        logger.info("Applying migration: %s", version)
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute(
                    f"INSERT INTO {self.TRACKING_TABLE} (version, name) VALUES ($1, $2)",
                    version,
                    name,
                )
