"""Apply the SQL files in ``versions/`` in order and record what has run."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"

# Serializes concurrent app instances starting against the same database.
_ADVISORY_LOCK_KEY = 0x46_44_4D_47


@dataclass(frozen=True)
class Migration:
    version: str
    path: Path

    @property
    def sql(self) -> str:
        return self.path.read_text(encoding="utf-8")

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.path.read_bytes()).hexdigest()


def discover(migrations_dir: Path | None = None) -> list[Migration]:
    """Return migrations sorted by filename (``NNN_description.sql``)."""
    directory = migrations_dir or VERSIONS_DIR
    return [Migration(version=p.stem, path=p) for p in sorted(directory.glob("*.sql"))]


class MigrationRunner:
    """Execute pending migrations, each in its own transaction.

    Applied versions and their checksums live in ``schema_migrations``; a file
    edited after it was applied is reported but never re-run.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def run_pending(self, migrations_dir: Path | None = None) -> list[str]:
        """Apply every migration not yet recorded. Returns the newly applied versions."""
        migrations = discover(migrations_dir)
        if not migrations:
            logger.info("No migration files found")
            return []

        newly_applied: list[str] = []
        async with self.pool.acquire() as conn:
            await conn.execute("SELECT pg_advisory_lock($1)", _ADVISORY_LOCK_KEY)
            try:
                await conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                        version    TEXT PRIMARY KEY,
                        checksum   TEXT NOT NULL,
                        applied_at TIMESTAMPTZ DEFAULT NOW()
                    )
                    """
                )
                rows = await conn.fetch(
                    f"SELECT version, checksum FROM {self.TRACKING_TABLE}"  # noqa: S608
                )
                applied = {row["version"]: row["checksum"] for row in rows}

                for migration in migrations:
                    recorded = applied.get(migration.version)
                    if recorded is not None:
                        if recorded != migration.checksum:
                            logger.warning(
                                "Migration %s changed after it was applied", migration.version
                            )
                        continue

                    logger.info("Applying migration: %s", migration.version)
                    async with conn.transaction():
                        await conn.execute(migration.sql)
                        await conn.execute(
                            f"INSERT INTO {self.TRACKING_TABLE} (version, checksum) "  # noqa: S608
                            "VALUES ($1, $2)",
                            migration.version,
                            migration.checksum,
                        )
                    newly_applied.append(migration.version)
            finally:
                await conn.execute("SELECT pg_advisory_unlock($1)", _ADVISORY_LOCK_KEY)

        if newly_applied:
            logger.info("Applied %d migration(s): %s", len(newly_applied), ", ".join(newly_applied))
        else:
            logger.info("Database is up to date")
        return newly_applied
