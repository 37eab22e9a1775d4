"""
PostgreSQL access through an asyncpg pool.

Every pooled connection registers JSON codecs for json/jsonb, so
repositories pass and receive plain dicts and lists (source config, raw
payloads, enrichment errors, parsed AI responses). Queries slower than
``db_slow_query_ms`` are logged with their collapsed SQL text.
"""

import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from curator.config.settings import get_settings

logger = logging.getLogger(__name__)


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Register JSON codecs on a freshly opened connection."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


def rows_affected(status: str) -> int:
    """Parse the row count out of an asyncpg status string ("UPDATE 3")."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class Database:
    """
    Pool owner shared by every repository.

    Repositories only call execute/fetch/fetchrow/fetchval; multi-statement
    work goes through ``transaction()``.

    Usage:
        async with Database() as db:
            rows = await db.fetch("SELECT id FROM entries WHERE enrichment_status = $1", "pending")

            async with db.transaction() as conn:
                await conn.execute("UPDATE entries SET ...")
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        slow_query_ms: float | None = None,
    ):
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._slow_query_ms = settings.db_slow_query_ms if slow_query_ms is None else slow_query_ms

        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Open the pool. Connection errors propagate to the caller."""
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=60,
                init=_init_connection,
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"Failed to connect to database: {e}")
            raise
        logger.info(f"Database connected (pool: {self._min_size}-{self._max_size})")

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pool(self) -> asyncpg.Pool:
        """Get connection pool, raising if not connected."""
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Connection with an open transaction, committed on clean exit."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def _run(self, method: str, query: str, args: tuple) -> Any:
        started = time.monotonic()
        async with self.pool.acquire() as conn:
            result = await getattr(conn, method)(query, *args)

        elapsed_ms = (time.monotonic() - started) * 1000
        if elapsed_ms >= self._slow_query_ms:
            logger.warning("Slow query (%.0f ms): %s", elapsed_ms, " ".join(query.split())[:200])
        return result

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement; returns the status string ("UPDATE 1")."""
        return await self._run("execute", query, args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        return await self._run("fetch", query, args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        return await self._run("fetchrow", query, args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self._run("fetchval", query, args)

    async def health_check(self) -> bool:
        """True if the database answers ``SELECT 1``."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except (RuntimeError, OSError, asyncpg.PostgresError) as e:
            logger.warning(f"Database health check failed: {e}")
            return False
