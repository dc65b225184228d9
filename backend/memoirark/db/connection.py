"""Async SQLite connection wrapper: WAL mode, schema setup, serialized writes.

Bulk uploads commit from several tasks over one connection, so every write
goes through a single asyncio.Lock. Multi-statement projections use
`transaction()` so a row and its link rows land together or not at all.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from memoirark.db.schema import SCHEMA_SQL

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


class Database:
    """Thin async wrapper around aiosqlite."""

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._conn = connection
        self._write_lock = asyncio.Lock()

    @classmethod
    async def connect(cls, path: str | Path = "memoirark.db") -> "Database":
        """Open (creating if needed) the database and apply the schema."""
        if str(path) != MEMORY:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute("PRAGMA busy_timeout=5000")
        db = cls(conn)
        await db._ensure_schema()
        logger.info("Opened database %s", path)
        return db

    async def _ensure_schema(self) -> None:
        """Create tables if they don't exist. Idempotent."""
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()

    async def execute(self, sql: str, params: tuple | None = None) -> aiosqlite.Cursor:
        """Execute and commit a single write."""
        async with self._write_lock:
            cursor = await self._conn.execute(sql, params or ())
            await self._conn.commit()
        return cursor

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run several writes as one unit.

        Yields the raw connection; statements on it commit together when the
        block exits and roll back if it raises. Do not call `execute` inside
        the block, the write lock is already held.
        """
        async with self._write_lock:
            try:
                yield self._conn
            except BaseException:
                await self._conn.rollback()
                raise
            await self._conn.commit()

    async def fetchone(self, sql: str, params: tuple | None = None) -> aiosqlite.Row | None:
        cursor = await self._conn.execute(sql, params or ())
        return await cursor.fetchone()

    async def fetchall(self, sql: str, params: tuple | None = None) -> list[aiosqlite.Row]:
        cursor = await self._conn.execute(sql, params or ())
        return list(await cursor.fetchall())

    async def close(self) -> None:
        await self._conn.close()
