"""Tests for the async SQLite database connection."""

import pytest

from tradebook.data.database import Database
from tradebook.data.migrations import SCHEMA_VERSION, run_migrations


class TestDatabase:
    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self, db_path):
        db = Database(db_path)
        assert db.is_connected is False
        await db.connect()
        assert db.is_connected is True
        assert db.path == db_path
        await db.disconnect()
        assert db.is_connected is False

    @pytest.mark.asyncio
    async def test_connection_property_raises_when_not_connected(self, db_path):
        db = Database(db_path)
        with pytest.raises(RuntimeError, match="not connected"):
            _ = db.connection

    @pytest.mark.asyncio
    async def test_context_manager_enables_wal(self, db_path):
        async with Database(db_path) as db:
            cursor = await db.connection.execute("PRAGMA journal_mode")
            row = await cursor.fetchone()
            assert row[0] == "wal"

    @pytest.mark.asyncio
    async def test_foreign_keys_enabled(self, db_path):
        async with Database(db_path) as db:
            cursor = await db.connection.execute("PRAGMA foreign_keys")
            row = await cursor.fetchone()
            assert row[0] == 1

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path):
        nested = str(tmp_path / "sub" / "dir" / "book.db")
        async with Database(nested) as db:
            assert db.is_connected

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, db_path):
        db = Database(db_path)
        await db.connect()
        await db.disconnect()
        await db.disconnect()

    @pytest.mark.asyncio
    async def test_busy_timeout_applied(self, db_path):
        async with Database(db_path, busy_timeout_ms=1234) as db:
            cursor = await db.connection.execute("PRAGMA busy_timeout")
            row = await cursor.fetchone()
            assert row[0] == 1234

    def test_negative_busy_timeout_rejected(self, db_path):
        with pytest.raises(ValueError, match="busy_timeout_ms"):
            Database(db_path, busy_timeout_ms=-1)

    @pytest.mark.asyncio
    async def test_schema_version_before_and_after_migrations(self, db_path):
        async with Database(db_path) as db:
            assert await db.schema_version() == 0

        await run_migrations(db_path)
        async with Database(db_path) as db:
            assert await db.schema_version() == SCHEMA_VERSION

    @pytest.mark.asyncio
    async def test_connect_twice_keeps_connection(self, db_path):
        async with Database(db_path) as db:
            conn = db.connection
            await db.connect()
            assert db.connection is conn
