"""
Shared aiosqlite connection for the role-persist store.

The bot keeps one connection for its whole lifetime. Writes go through
``transaction()``, which holds a lock so the sweeper, the member-update
listener and slash commands never interleave statements inside one commit.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from patrolcord.util.logger import get_logger

logger = get_logger("database_connection")


class ConnectionManager:
    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def open(self, path: Path) -> None:
        if self._conn is not None:
            logger.warning("[DB CONNECTION] Already open, ignoring second open(%s)", path)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row
        # WAL lets autocomplete reads proceed while a sweep is deleting
        await self._conn.execute("PRAGMA journal_mode = WAL")
        logger.info("[DB CONNECTION] Opened %s", path)

    async def close(self) -> None:
        """Close the connection; a no-op when it was never opened."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        await conn.close()
        logger.info("[DB CONNECTION] Closed")

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database connection is not open; call initialize_database() first")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Exclusive write scope: commit on success, roll back and re-raise on error."""
        conn = self.connection
        async with self._write_lock:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        yield self.connection


db_connection = ConnectionManager()
