"""SQLite schema creation and migrations."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

SCHEMA_VERSION = 2

# Decimal amounts are stored as TEXT to keep their exact value.
TABLES: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS portfolios (
        portfolio_id        TEXT    PRIMARY KEY,
        name                TEXT    NOT NULL DEFAULT '',
        description         TEXT    NOT NULL DEFAULT '',
        owner_id            TEXT    NOT NULL DEFAULT '',
        active              INTEGER NOT NULL DEFAULT 1,
        created_at          TEXT,
        updated_at          TEXT,
        trade_ids           TEXT    DEFAULT '[]',
        winning_trade_ids   TEXT    DEFAULT '[]',
        losing_trade_ids    TEXT    DEFAULT '[]',
        metrics             TEXT    DEFAULT '{}'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trades (
        trade_id        TEXT    PRIMARY KEY,
        portfolio_id    TEXT    NOT NULL,
        symbol          TEXT    NOT NULL,
        position_type   TEXT    NOT NULL,
        status          TEXT    NOT NULL,
        entry_info      TEXT    NOT NULL,
        exit_info       TEXT,
        metrics         TEXT    NOT NULL,
        entry_at        TEXT,
        strategy        TEXT    DEFAULT '',
        notes           TEXT    DEFAULT '',
        tags            TEXT    DEFAULT '[]',
        instrument      TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS executions (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        trade_id        TEXT    NOT NULL,
        execution_id    TEXT    DEFAULT '',
        portfolio_id    TEXT    DEFAULT '',
        symbol          TEXT    NOT NULL,
        side            TEXT    NOT NULL,
        quantity        INTEGER NOT NULL,
        price           TEXT    NOT NULL,
        fees            TEXT    NOT NULL DEFAULT '0',
        executed_at     TEXT    NOT NULL,
        seq             INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (trade_id) REFERENCES trades(trade_id) ON DELETE CASCADE
    )
    """,
]

# Columns added after v1; (table, column, type) applied to older files
COLUMNS: list[tuple[str, str, str]] = [
    ("trades", "instrument", "TEXT"),
]

INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_trades_portfolio ON trades(portfolio_id, symbol)",
    "CREATE INDEX IF NOT EXISTS idx_trades_status ON trades(status)",
    "CREATE INDEX IF NOT EXISTS idx_executions_trade ON executions(trade_id, seq)",
]


async def run_migrations(db_path: str) -> None:
    """Create tables and indexes if they don't exist; add columns older files lack."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(db_path) as db:
        for ddl in TABLES:
            await db.execute(ddl)
        for table, column, column_type in COLUMNS:
            cursor = await db.execute(f"PRAGMA table_info({table})")
            existing = {row[1] for row in await cursor.fetchall()}
            if column not in existing:
                await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
        for idx in INDEXES:
            await db.execute(idx)
        await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        await db.commit()
