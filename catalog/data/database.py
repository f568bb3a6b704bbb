"""
asyncpg connection pool wrapper.

Every query goes through `fetch` / `fetchrow`, which translate driver
failures into StoreError. No retries are attempted here; transient failures
surface to the caller.
"""

import asyncpg
import logging
from typing import Optional, List, Dict, Any
from catalog.core.config import Settings
from catalog.core.errors import StoreError

logger = logging.getLogger(__name__)


class Database:
    """
    Read-only access to the relational product catalog.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """
        Create the connection pool.
        Should be called during application startup.
        """
        if self.pool is not None:
            return
        try:
            self.pool = await asyncpg.create_pool(
                self.settings.database_url,
                min_size=self.settings.db_pool_min_size,
                max_size=self.settings.db_pool_max_size,
            )
            logger.info("Database pool established")
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to connect to database: {str(e)}")
            raise

    async def close(self) -> None:
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("Database pool closed")

    async def fetch(self, query: str, *args) -> List[Dict[str, Any]]:
        """
        Run a parameterized SELECT and return all rows as dicts.

        Raises:
            StoreError: If the pool is not ready or the query fails
        """
        if self.pool is None:
            raise StoreError("Database pool is not initialized")
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
                return [dict(row) for row in rows]
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Query failed: {str(e)}")
            raise StoreError(str(e)) from e

    async def fetchrow(self, query: str, *args) -> Optional[Dict[str, Any]]:
        """
        Run a parameterized SELECT and return the first row, or None.

        Raises:
            StoreError: If the pool is not ready or the query fails
        """
        if self.pool is None:
            raise StoreError("Database pool is not initialized")
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, *args)
                return dict(row) if row else None
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Query failed: {str(e)}")
            raise StoreError(str(e)) from e
