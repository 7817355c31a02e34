"""Async SQLite connection for the trade book."""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)


class Database:
    """One ``aiosqlite`` connection shared by the repository.

    The connection runs in WAL mode with foreign keys enforced, so deleting
    a trade row also drops its executions. ``busy_timeout_ms`` lets a CLI
    run wait for another writer instead of failing with ``database is locked``.

    Usage::

        async with Database("data/tradebook.db") as db:
            repo = Repository(db)
    """

    def __init__(self, db_path: str, busy_timeout_ms: int = 5000) -> None:
        if busy_timeout_ms < 0:
            raise ValueError(f"busy_timeout_ms must be non-negative, got {busy_timeout_ms}")
        self._db_path = db_path
        self._busy_timeout_ms = busy_timeout_ms
        self._conn: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def connection(self) -> aiosqlite.Connection:
        """Return the active connection or raise."""
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> None:
        """Open the trade book file, creating its directory on first use."""
        if self._conn is not None:
            return
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")
        logger.info("Opened trade book %s (schema v%d)", self._db_path, await self.schema_version())

    async def schema_version(self) -> int:
        """``PRAGMA user_version`` as stamped by ``run_migrations``; 0 when unmigrated."""
        cursor = await self.connection.execute("PRAGMA user_version")
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def disconnect(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("Closed trade book %s", self._db_path)

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.disconnect()
