"""Tests for the repository CRUD operations."""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import patch
from decimal import Decimal

import pytest

from tests.factories import fill
from tradebook.config.constants import IndexType, MarketSegment, PositionType, Side, TradeStatus
from tradebook.data.database import Database
from tradebook.data.migrations import run_migrations
from tradebook.data.models import Portfolio, PortfolioMetrics
from tradebook.data.repository import Repository


@pytest.fixture
async def repo(db_path) -> Repository:
    """Create a repository with a migrated database."""
    await run_migrations(db_path)
    db = Database(db_path)
    await db.connect()
    repo = Repository(db)
    yield repo
    await db.disconnect()


def _round_trips(processor, portfolio_id: str = "pf"):
    return processor.process(
        [
            fill("BUY", 50, "10", minutes=0, execution_id="e1"),
            fill("BUY", 50, "12", minutes=1, execution_id="e2", fees="1.5"),
            fill("SELL", 100, "13", minutes=61, execution_id="e3"),
            fill("SELL", 20, "300", minutes=5, symbol="TCS", execution_id="e4"),
        ],
        portfolio_id,
    ).trades


class TestTrades:
    @pytest.mark.asyncio
    async def test_save_and_get_by_ids(self, repo, processor):
        closed, open_ = _round_trips(processor)
        assert await repo.save_trades([closed, open_]) == 2

        loaded = await repo.get_trades_by_ids([closed.trade_id, open_.trade_id])
        assert [t.trade_id for t in loaded] == [closed.trade_id, open_.trade_id]

        restored = loaded[0]
        assert restored.status is TradeStatus.WIN
        assert restored.position_type is PositionType.LONG
        assert restored.entry_info == closed.entry_info
        assert restored.exit_info == closed.exit_info
        assert restored.metrics == closed.metrics
        assert restored.metrics.holding_time_hours == 1

        assert [e.execution_id for e in restored.executions] == ["e1", "e2", "e3"]
        assert restored.executions[1].fees == Decimal("1.5")
        assert restored.executions[2].side is Side.SELL
        assert restored.executions[0].portfolio_id == "pf"
        assert restored.executions[0].id is not None
        assert restored.instrument == closed.instrument
        assert restored.instrument.segment is MarketSegment.EQUITY

    @pytest.mark.asyncio
    async def test_open_trade_round_trip(self, repo, processor):
        _, open_ = _round_trips(processor)
        await repo.save_trade(open_)

        (restored,) = await repo.get_trades_by_ids([open_.trade_id])
        assert restored.exit_info is None
        assert restored.status is TradeStatus.OPEN
        assert restored.position_type is PositionType.SHORT
        assert restored.metrics.risk_amount is None

    @pytest.mark.asyncio
    async def test_unknown_ids_are_skipped(self, repo, processor):
        closed, _ = _round_trips(processor)
        await repo.save_trade(closed)

        loaded = await repo.get_trades_by_ids(["missing", closed.trade_id, closed.trade_id])
        assert [t.trade_id for t in loaded] == [closed.trade_id]
        assert await repo.get_trades_by_ids([]) == []

    @pytest.mark.asyncio
    async def test_resave_replaces_executions(self, repo, processor):
        closed, _ = _round_trips(processor)
        await repo.save_trade(closed)
        await repo.save_trade(closed)

        (restored,) = await repo.get_trades_by_ids([closed.trade_id])
        assert len(restored.executions) == 3

    @pytest.mark.asyncio
    async def test_get_by_portfolio_and_symbol(self, repo, processor):
        await repo.save_trades(_round_trips(processor, "pf"))
        await repo.save_trades(_round_trips(processor, "other"))

        assert len(await repo.get_trades_by_portfolio("pf")) == 2
        tcs = await repo.get_trades_by_portfolio("pf", "TCS")
        assert [t.symbol for t in tcs] == ["TCS"]
        assert await repo.get_trades_by_portfolio("nobody") == []

    @pytest.mark.asyncio
    async def test_get_open_trade(self, repo, processor):
        await repo.save_trades(_round_trips(processor))

        trade = await repo.get_open_trade("pf", "TCS")
        assert trade is not None
        assert trade.entry_info.quantity == 20
        assert await repo.get_open_trade("pf", "INFY") is None

    @pytest.mark.asyncio
    async def test_update_annotations(self, repo, processor):
        closed, _ = _round_trips(processor)
        await repo.save_trade(closed)

        assert await repo.update_trade_annotations(
            closed.trade_id, notes="chased the breakout", tags=["momentum", "gap"]
        )
        assert await repo.update_trade_annotations(closed.trade_id, strategy="orb")

        (restored,) = await repo.get_trades_by_ids([closed.trade_id])
        assert restored.notes == "chased the breakout"
        assert restored.tags == ["momentum", "gap"]
        assert restored.strategy == "orb"

    @pytest.mark.asyncio
    async def test_update_annotations_unknown_trade(self, repo):
        assert await repo.update_trade_annotations("missing", notes="x") is False

    @pytest.mark.asyncio
    async def test_derivative_instrument_round_trip(self, repo, processor):
        (trade,) = processor.process(
            [
                fill("BUY", 25, "120", minutes=0, symbol="BANKNIFTY20O0121000CE"),
                fill("SELL", 25, "150", minutes=30, symbol="BANKNIFTY20O0121000CE"),
            ],
            "pf",
        ).trades
        await repo.save_trade(trade)

        (restored,) = await repo.get_trades_by_ids([trade.trade_id])
        assert restored.instrument == trade.instrument
        assert restored.instrument.segment is MarketSegment.INDEX_OPTIONS
        assert restored.instrument.index_type is IndexType.BANKNIFTY
        assert restored.instrument.derivative.expiry_date == date(2020, 10, 1)
        assert restored.instrument.derivative.strike_price == Decimal("21000")
        assert restored.instrument.derivative.is_call is True

    @pytest.mark.asyncio
    async def test_trade_without_instrument_loads_as_none(self, repo, processor):
        closed, _ = _round_trips(processor)
        closed.instrument = None
        await repo.save_trade(closed)

        (restored,) = await repo.get_trades_by_ids([closed.trade_id])
        assert restored.instrument is None

    @pytest.mark.asyncio
    async def test_executions_loaded_across_chunks(self, repo, processor):
        symbols = ["INFY", "TCS", "WIPRO", "HDFC", "ITC"]
        batch = []
        for i, symbol in enumerate(symbols):
            batch.append(fill("BUY", 10, "100", i, symbol, execution_id=f"{symbol}-in"))
            batch.append(fill("SELL", 10, "110", 60 + i, symbol, execution_id=f"{symbol}-out"))
        trades = processor.process(batch, "pf").trades
        await repo.save_trades(trades)

        with patch("tradebook.data.repository._IN_CHUNK", 2):
            loaded = await repo.get_trades_by_portfolio("pf")
            by_ids = await repo.get_trades_by_ids([t.trade_id for t in trades])

        assert len(loaded) == len(by_ids) == 5
        for trade in loaded:
            assert [e.execution_id for e in trade.executions] == [
                f"{trade.symbol}-in",
                f"{trade.symbol}-out",
            ]


class TestPortfolios:
    @pytest.mark.asyncio
    async def test_save_and_get_portfolio(self, repo):
        created = datetime(2024, 1, 2, tzinfo=timezone.utc)
        portfolio = Portfolio(
            portfolio_id="pf",
            name="Swing book",
            description="Auto-generated portfolio from trades",
            owner_id="alice",
            created_at=created,
            updated_at=created,
            trade_ids=["a", "b"],
            winning_trade_ids=["a"],
            losing_trade_ids=["b"],
            metrics=PortfolioMetrics(
                total_trades=2,
                winning_trades=1,
                losing_trades=1,
                win_rate=Decimal("50.00"),
                profit_factor=Decimal("2.5"),
                net_profit_loss=Decimal("15"),
            ),
        )
        assert await repo.save_portfolio(portfolio) == "pf"

        loaded = await repo.get_portfolio("pf")
        assert loaded == portfolio

    @pytest.mark.asyncio
    async def test_upsert_keeps_created_at(self, repo):
        created = datetime(2024, 1, 2, tzinfo=timezone.utc)
        await repo.save_portfolio(Portfolio(portfolio_id="pf", created_at=created, trade_ids=["a"]))

        later = datetime(2024, 2, 1, tzinfo=timezone.utc)
        await repo.save_portfolio(
            Portfolio(portfolio_id="pf", created_at=later, updated_at=later, trade_ids=["a", "b"])
        )

        loaded = await repo.get_portfolio("pf")
        assert loaded.created_at == created
        assert loaded.updated_at == later
        assert loaded.trade_ids == ["a", "b"]

    @pytest.mark.asyncio
    async def test_get_missing_portfolio(self, repo):
        assert await repo.get_portfolio("nope") is None
