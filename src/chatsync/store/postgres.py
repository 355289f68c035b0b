"""PostgreSQL-backed key-path store."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg

from chatsync.config import settings
from chatsync.errors import ReadFailedError, WriteFailedError
from chatsync.store.base import KeyPathStore, validate_path

logger = logging.getLogger(__name__)

NOTIFY_CHANNEL = "key_path_changed"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS key_paths (
    path TEXT PRIMARY KEY,
    value JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


class PostgresKeyPathStore(KeyPathStore):
    """Key-path store on a single JSONB table.

    Each path is one row, so a write is atomic for its path only. Writes
    publish the changed path on a NOTIFY channel; observers LISTEN on a
    dedicated pooled connection.
    """

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url or settings.database_url
        self._pool: asyncpg.Pool | None = None

    async def connect(self):
        """Create connection pool and ensure the table exists."""
        if not self.database_url:
            return
        self._pool = await asyncpg.create_pool(
            self.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        async with self.connection() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Connected PostgreSQL key-path store")

    async def disconnect(self):
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self):
        """Get a connection from the pool."""
        if not self._pool:
            raise RuntimeError("Database not connected")
        async with self._pool.acquire() as conn:
            yield conn

    async def get(self, path: str) -> Any | None:
        validate_path(path)
        try:
            async with self.connection() as conn:
                row = await conn.fetchrow("SELECT value FROM key_paths WHERE path = $1", path)
        except (asyncpg.PostgresError, OSError) as e:
            raise ReadFailedError(f"Read failed for {path}: {e}", path=path) from e
        if not row:
            return None
        return json.loads(row["value"])

    async def set(self, path: str, value: Any | None) -> None:
        validate_path(path)
        try:
            async with self.connection() as conn:
                async with conn.transaction():
                    if value is None:
                        await conn.execute("DELETE FROM key_paths WHERE path = $1", path)
                    else:
                        await conn.execute(
                            """
                            INSERT INTO key_paths (path, value, updated_at)
                            VALUES ($1, $2::jsonb, NOW())
                            ON CONFLICT (path)
                            DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
                            """,
                            path,
                            json.dumps(value),
                        )
                    await conn.execute("SELECT pg_notify($1, $2)", NOTIFY_CHANNEL, path)
        except (asyncpg.PostgresError, OSError) as e:
            raise WriteFailedError(f"Write failed for {path}: {e}", path=path) from e

    async def observe(self, path: str) -> AsyncIterator[Any | None]:
        validate_path(path)
        changed: asyncio.Queue = asyncio.Queue()

        def _on_notify(connection, pid, channel, payload):
            if payload == path:
                changed.put_nowait(payload)

        async with self.connection() as conn:
            await conn.add_listener(NOTIFY_CHANNEL, _on_notify)
            logger.debug(f"Listening for changes to {path}")
            try:
                yield await self.get(path)
                while True:
                    await changed.get()
                    yield await self.get(path)
            finally:
                await conn.remove_listener(NOTIFY_CHANNEL, _on_notify)
                logger.debug(f"Stopped listening for changes to {path}")
