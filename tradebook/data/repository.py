"""CRUD operations for trades, their executions and portfolios."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable

from tradebook.config.constants import (
    IndexType,
    MarketSegment,
    PositionType,
    Side,
    TradeStatus,
)
from tradebook.data.models import (
    DerivativeInfo,
    EntryExitInfo,
    Execution,
    InstrumentInfo,
    Portfolio,
    PortfolioMetrics,
    TradeDetails,
    TradeMetrics,
)

if TYPE_CHECKING:
    from tradebook.data.database import Database

logger = logging.getLogger(__name__)

# Stay well below SQLite's bound-parameter limit
_IN_CHUNK = 500

_METRICS_DECIMALS = (
    "profit_loss",
    "profit_loss_percentage",
    "return_on_equity",
    "risk_amount",
    "reward_amount",
    "risk_reward_ratio",
)
_PORTFOLIO_DECIMALS = (
    "win_rate",
    "loss_rate",
    "profit_factor",
    "expectancy",
    "total_value",
    "total_profit",
    "total_loss",
    "net_profit_loss",
    "net_profit_loss_percentage",
)


def _dt_to_str(dt: datetime | None) -> str | None:
    """Convert datetime to ISO string for storage."""
    return dt.isoformat() if dt else None


def _str_to_dt(s: str | None) -> datetime | None:
    """Parse ISO string back to datetime."""
    return datetime.fromisoformat(s) if s else None


def _dec(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(value: Any) -> str:
    return json.dumps(value, default=_json_default)


def _entry_exit_from_json(raw: str | None) -> EntryExitInfo | None:
    if not raw:
        return None
    data = json.loads(raw)
    return EntryExitInfo(
        timestamp=_str_to_dt(data.get("timestamp")),
        price=Decimal(data["price"]),
        quantity=int(data["quantity"]),
        total_value=Decimal(data["total_value"]),
        fees=Decimal(data.get("fees", "0")),
        reason=data.get("reason", ""),
    )


def _metrics_from_json(raw: str) -> TradeMetrics:
    data = json.loads(raw)
    for key in _METRICS_DECIMALS:
        data[key] = _dec(data.get(key))
    return TradeMetrics(**data)


def _instrument_from_json(raw: str | None) -> InstrumentInfo | None:
    if not raw:
        return None
    data = json.loads(raw)
    derivative = data.get("derivative")
    if derivative is not None:
        expiry = derivative.get("expiry_date")
        derivative = DerivativeInfo(
            underlying_symbol=derivative["underlying_symbol"],
            expiry_date=date.fromisoformat(expiry) if expiry else None,
            strike_price=_dec(derivative.get("strike_price")),
            is_call=derivative.get("is_call"),
        )
    index_type = data.get("index_type")
    return InstrumentInfo(
        raw_symbol=data["raw_symbol"],
        symbol=data["symbol"],
        segment=MarketSegment(data["segment"]),
        index_type=IndexType(index_type) if index_type else None,
        derivative=derivative,
    )


def _portfolio_metrics_from_json(raw: str | None) -> PortfolioMetrics:
    data = json.loads(raw) if raw else {}
    for key in _PORTFOLIO_DECIMALS:
        if key in data:
            data[key] = Decimal(data[key])
    return PortfolioMetrics(**data)


class Repository:
    """Data-access layer for the SQLite database."""

    def __init__(self, db: "Database") -> None:
        self._db = db

    @property
    def _conn(self):
        return self._db.connection

    # -- Trades ---------------------------------------------------------------

    async def save_trade(self, trade: TradeDetails) -> str:
        """Insert or replace a trade together with its executions. Returns the trade id."""
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO trades
                (trade_id, portfolio_id, symbol, position_type, status,
                 entry_info, exit_info, metrics, entry_at, strategy, notes, tags,
                 instrument)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                trade.trade_id,
                trade.portfolio_id,
                trade.symbol,
                trade.position_type.value,
                trade.status.value,
                _dumps(asdict(trade.entry_info)),
                _dumps(asdict(trade.exit_info)) if trade.exit_info else None,
                _dumps(asdict(trade.metrics)),
                _dt_to_str(trade.entry_info.timestamp),
                trade.strategy,
                trade.notes,
                _dumps(trade.tags),
                _dumps(asdict(trade.instrument)) if trade.instrument else None,
            ),
        )
        await self._conn.execute(
            "DELETE FROM executions WHERE trade_id = ?", (trade.trade_id,)
        )
        await self._conn.executemany(
            """
            INSERT INTO executions
                (trade_id, execution_id, portfolio_id, symbol, side, quantity,
                 price, fees, executed_at, seq)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    trade.trade_id,
                    e.execution_id,
                    e.portfolio_id or trade.portfolio_id,
                    e.symbol,
                    e.side.value,
                    e.quantity,
                    str(e.price),
                    str(e.fees),
                    _dt_to_str(e.executed_at),
                    seq,
                )
                for seq, e in enumerate(trade.executions)
            ],
        )
        await self._conn.commit()
        return trade.trade_id

    async def save_trades(self, trades: Iterable[TradeDetails]) -> int:
        """Persist several trades. Returns the number saved."""
        count = 0
        for trade in trades:
            await self.save_trade(trade)
            count += 1
        logger.debug("Saved batch of %d trades", count)
        return count

    async def get_trades_by_ids(self, trade_ids: Iterable[str]) -> list[TradeDetails]:
        """Fetch trades (with executions) for the given ids; unknown ids are skipped."""
        ids = list(dict.fromkeys(trade_ids))
        trades: list[TradeDetails] = []
        for start in range(0, len(ids), _IN_CHUNK):
            chunk = ids[start:start + _IN_CHUNK]
            placeholders = ", ".join("?" for _ in chunk)
            cursor = await self._conn.execute(
                f"""
                SELECT trade_id, portfolio_id, symbol, position_type, status,
                       entry_info, exit_info, metrics, strategy, notes, tags, instrument
                FROM trades
                WHERE trade_id IN ({placeholders})
                ORDER BY entry_at ASC, trade_id ASC
                """,
                chunk,
            )
            rows = await cursor.fetchall()
            trades.extend(await self._rows_to_trades(rows))
        return trades

    async def get_trades_by_portfolio(
        self,
        portfolio_id: str,
        symbol: str | None = None,
    ) -> list[TradeDetails]:
        """All trades recorded for a portfolio, optionally filtered by symbol."""
        if symbol:
            cursor = await self._conn.execute(
                """
                SELECT trade_id, portfolio_id, symbol, position_type, status,
                       entry_info, exit_info, metrics, strategy, notes, tags, instrument
                FROM trades
                WHERE portfolio_id = ? AND symbol = ?
                ORDER BY entry_at ASC, trade_id ASC
                """,
                (portfolio_id, symbol),
            )
        else:
            cursor = await self._conn.execute(
                """
                SELECT trade_id, portfolio_id, symbol, position_type, status,
                       entry_info, exit_info, metrics, strategy, notes, tags, instrument
                FROM trades
                WHERE portfolio_id = ?
                ORDER BY entry_at ASC, trade_id ASC
                """,
                (portfolio_id,),
            )
        rows = await cursor.fetchall()
        return await self._rows_to_trades(rows)

    async def get_open_trade(self, portfolio_id: str, symbol: str) -> TradeDetails | None:
        """Most recently opened OPEN trade for a symbol in a portfolio."""
        cursor = await self._conn.execute(
            """
            SELECT trade_id, portfolio_id, symbol, position_type, status,
                   entry_info, exit_info, metrics, strategy, notes, tags, instrument
            FROM trades
            WHERE portfolio_id = ? AND symbol = ? AND status = ?
            ORDER BY entry_at DESC
            LIMIT 1
            """,
            (portfolio_id, symbol, TradeStatus.OPEN.value),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return (await self._rows_to_trades([row]))[0]

    async def update_trade_annotations(
        self,
        trade_id: str,
        notes: str | None = None,
        tags: list[str] | None = None,
        strategy: str | None = None,
    ) -> bool:
        """Set notes/tags/strategy on a stored trade. Returns False if it does not exist."""
        cursor = await self._conn.execute(
            """
            UPDATE trades
            SET notes = COALESCE(?, notes),
                tags = COALESCE(?, tags),
                strategy = COALESCE(?, strategy)
            WHERE trade_id = ?
            """,
            (notes, _dumps(tags) if tags is not None else None, strategy, trade_id),
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    async def _rows_to_trades(self, rows) -> list[TradeDetails]:
        if not rows:
            return []
        executions = await self._get_executions([row[0] for row in rows])
        return [
            TradeDetails(
                trade_id=row[0],
                portfolio_id=row[1],
                symbol=row[2],
                position_type=PositionType(row[3]),
                status=TradeStatus(row[4]),
                entry_info=_entry_exit_from_json(row[5]),
                exit_info=_entry_exit_from_json(row[6]),
                metrics=_metrics_from_json(row[7]),
                executions=executions.get(row[0], []),
                strategy=row[8] or "",
                notes=row[9] or "",
                tags=json.loads(row[10]) if row[10] else [],
                instrument=_instrument_from_json(row[11]),
            )
            for row in rows
        ]

    # -- Executions -----------------------------------------------------------

    async def _get_executions(self, trade_ids: list[str]) -> dict[str, list[Execution]]:
        by_trade: dict[str, list[Execution]] = {}
        for start in range(0, len(trade_ids), _IN_CHUNK):
            chunk = trade_ids[start:start + _IN_CHUNK]
            placeholders = ", ".join("?" for _ in chunk)
            cursor = await self._conn.execute(
                f"""
                SELECT id, trade_id, execution_id, portfolio_id, symbol, side,
                       quantity, price, fees, executed_at
                FROM executions
                WHERE trade_id IN ({placeholders})
                ORDER BY trade_id ASC, seq ASC
                """,
                chunk,
            )
            for row in await cursor.fetchall():
                by_trade.setdefault(row[1], []).append(
                    Execution(
                        id=row[0],
                        execution_id=row[2],
                        portfolio_id=row[3],
                        symbol=row[4],
                        side=Side(row[5]),
                        quantity=row[6],
                        price=Decimal(row[7]),
                        fees=Decimal(row[8]),
                        executed_at=_str_to_dt(row[9]),
                    )
                )
        return by_trade

    # -- Portfolios -----------------------------------------------------------

    async def save_portfolio(self, portfolio: Portfolio) -> str:
        """Insert or update a portfolio. Returns the portfolio id."""
        await self._conn.execute(
            """
            INSERT INTO portfolios
                (portfolio_id, name, description, owner_id, active, created_at,
                 updated_at, trade_ids, winning_trade_ids, losing_trade_ids, metrics)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(portfolio_id)
            DO UPDATE SET name=excluded.name, description=excluded.description,
                          owner_id=excluded.owner_id, active=excluded.active,
                          updated_at=excluded.updated_at, trade_ids=excluded.trade_ids,
                          winning_trade_ids=excluded.winning_trade_ids,
                          losing_trade_ids=excluded.losing_trade_ids,
                          metrics=excluded.metrics
            """,
            (
                portfolio.portfolio_id,
                portfolio.name,
                portfolio.description,
                portfolio.owner_id,
                1 if portfolio.active else 0,
                _dt_to_str(portfolio.created_at),
                _dt_to_str(portfolio.updated_at),
                _dumps(portfolio.trade_ids),
                _dumps(portfolio.winning_trade_ids),
                _dumps(portfolio.losing_trade_ids),
                _dumps(asdict(portfolio.metrics)),
            ),
        )
        await self._conn.commit()
        return portfolio.portfolio_id

    async def get_portfolio(self, portfolio_id: str) -> Portfolio | None:
        """Fetch a portfolio by id."""
        cursor = await self._conn.execute(
            """
            SELECT portfolio_id, name, description, owner_id, active, created_at,
                   updated_at, trade_ids, winning_trade_ids, losing_trade_ids, metrics
            FROM portfolios
            WHERE portfolio_id = ?
            """,
            (portfolio_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Portfolio(
            portfolio_id=row[0],
            name=row[1],
            description=row[2],
            owner_id=row[3],
            active=bool(row[4]),
            created_at=_str_to_dt(row[5]),
            updated_at=_str_to_dt(row[6]),
            trade_ids=json.loads(row[7]) if row[7] else [],
            winning_trade_ids=json.loads(row[8]) if row[8] else [],
            losing_trade_ids=json.loads(row[9]) if row[9] else [],
            metrics=_portfolio_metrics_from_json(row[10]),
        )
