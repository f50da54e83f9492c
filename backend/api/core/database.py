"""PostgreSQL pool lifecycle for the optional database-backed storage.

SSL and other connection options come from the DSN query string
(e.g. ``?sslmode=require``).
"""

import logging

import asyncpg

from shared.migrations.runner import MigrationRunner
from shared.storage.postgres import init_connection

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages PostgreSQL connection pool lifecycle"""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Initialize database connection pool"""
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return

        try:
            self._pool = await asyncpg.create_pool(
                self.database_url,
                min_size=1,
                max_size=5,
                timeout=30.0,
                command_timeout=60.0,
                max_inactive_connection_lifetime=300.0,
                init=init_connection,
            )
            logger.info("Database pool created")
        except Exception as e:
            logger.exception(f"Failed to create database pool: {e}")
            raise

    async def migrate(self) -> list[str]:
        """Apply pending schema migrations"""
        return await MigrationRunner(self.pool).run_pending()

    async def disconnect(self) -> None:
        """Close database connection pool"""
        if self._pool is None:
            return

        try:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")
        except Exception as e:
            logger.exception(f"Error closing database pool: {e}")

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the database connection pool"""
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool
