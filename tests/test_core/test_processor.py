"""Tests for round-trip reconstruction in the trade processor."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from unittest.mock import patch

import pytest

from tests.factories import fill
from tradebook.config.constants import MarketSegment, PositionType, TradeStatus
from tradebook.core.errors import NegativeHoldingTimeError
from tradebook.core.segmenter import Cycle, segment_cycles


class TestWorkedExamples:
    def test_long_round_trip(self, processor):
        result = processor.process(
            [fill("BUY", 100, "10.00"), fill("SELL", 100, "12.00", minutes=90)], "pf-1"
        )
        (trade,) = result.trades
        assert trade.position_type is PositionType.LONG
        assert trade.entry_info.price == Decimal("10.00")
        assert trade.exit_info.price == Decimal("12.00")
        assert trade.metrics.profit_loss == Decimal("200.00")
        assert trade.metrics.profit_loss_percentage == Decimal("20.00")
        assert trade.status is TradeStatus.WIN
        assert trade.portfolio_id == "pf-1"
        assert result.errors == []

    def test_short_round_trip(self, processor):
        result = processor.process(
            [fill("SELL", 50, "20.00"), fill("BUY", 50, "18.00", minutes=30)], "pf-1"
        )
        (trade,) = result.trades
        assert trade.position_type is PositionType.SHORT
        assert trade.metrics.profit_loss == Decimal("100.00")
        assert trade.status is TradeStatus.WIN

    def test_scale_in_scale_out(self, processor):
        result = processor.process(
            [
                fill("BUY", 50, "10", minutes=0),
                fill("BUY", 50, "12", minutes=1),
                fill("SELL", 100, "13", minutes=2),
            ],
            "pf-1",
        )
        (trade,) = result.trades
        assert trade.entry_info.price == Decimal("11.00")
        assert trade.metrics.profit_loss == Decimal("200.00")
        assert len(trade.executions) == 3

    def test_trade_carries_decoded_instrument(self, processor):
        result = processor.process(
            [
                fill("SELL", 250, "40", symbol="MARUTI20SEPFUT"),
                fill("BUY", 250, "35", minutes=45, symbol="MARUTI20SEPFUT"),
                fill("BUY", 10, "100"),
            ],
            "pf-1",
        )
        by_symbol = {t.symbol: t for t in result.trades}

        future = by_symbol["MARUTI20SEPFUT"].instrument
        assert future.segment is MarketSegment.EQUITY_FUTURES
        assert future.derivative.underlying_symbol == "MARUTI"
        assert by_symbol["INFY"].instrument.segment is MarketSegment.EQUITY

    def test_two_independent_cycles_same_symbol(self, processor):
        result = processor.process(
            [
                fill("BUY", 50, "10", minutes=0),
                fill("SELL", 50, "11", minutes=1),
                fill("BUY", 10, "9", minutes=2),
                fill("SELL", 10, "9", minutes=3),
            ],
            "pf-1",
        )
        first, second = result.trades
        assert second.entry_info.quantity < first.entry_info.quantity
        assert first.status is TradeStatus.WIN
        assert second.status is TradeStatus.BREAK_EVEN
        assert first.trade_id != second.trade_id

    def test_open_position_after_closed_cycle(self, processor):
        result = processor.process(
            [
                fill("BUY", 10, "10", minutes=0),
                fill("SELL", 10, "12", minutes=1),
                fill("BUY", 5, "11", minutes=2),
            ],
            "pf-1",
        )
        closed, open_ = result.trades
        assert closed.status is TradeStatus.WIN
        assert open_.status is TradeStatus.OPEN
        assert open_.exit_info is None
        assert open_.metrics.profit_loss == 0
        assert open_.metrics.holding_time_days is None

    def test_losing_short_with_fees(self, processor):
        result = processor.process(
            [
                fill("SELL", 10, "100", fees="2"),
                fill("BUY", 10, "101", minutes=5, fees="2"),
            ],
            "pf-1",
        )
        (trade,) = result.trades
        assert trade.metrics.profit_loss == Decimal("-14")
        assert trade.status is TradeStatus.LOSS


class TestQuantityConservation:
    def test_closed_trades_have_matching_quantities(self, processor):
        executions = [
            fill("BUY", 30, "10", minutes=0),
            fill("SELL", 10, "11", minutes=1),
            fill("BUY", 20, "10.5", minutes=2),
            fill("SELL", 40, "12", minutes=3),
            fill("SELL", 25, "12", minutes=4),
            fill("BUY", 5, "11", minutes=5),
        ]
        for trade in processor.process(executions, "pf").trades:
            if trade.status is not TradeStatus.OPEN:
                assert trade.entry_info.quantity == trade.exit_info.quantity

    def test_partial_close_is_open(self, processor):
        result = processor.process(
            [fill("BUY", 100, "10"), fill("SELL", 40, "12", minutes=1)], "pf"
        )
        (trade,) = result.trades
        assert trade.exit_info.quantity == 40
        assert trade.status is TradeStatus.OPEN


class TestBatchErrors:
    def test_malformed_execution_reported_other_symbols_processed(self, processor):
        bad = replace(fill("BUY", 10, "10", symbol="TCS", execution_id="bad-1"), price=Decimal("0"))
        result = processor.process(
            [bad, fill("BUY", 1, "10"), fill("SELL", 1, "11", minutes=1)], "pf"
        )
        assert len(result.trades) == 1
        assert result.trades[0].symbol == "INFY"
        assert result.errors[0].execution_ids == ["bad-1"]

    def test_negative_holding_time_raises(self, processor):
        cycle = Cycle(
            executions=[fill("BUY", 1, "10", minutes=10), fill("SELL", 1, "11", minutes=0)],
            position_type=PositionType.LONG,
        )
        with pytest.raises(NegativeHoldingTimeError):
            processor.process_cycle(cycle, "INFY", "pf")

    def test_uncomputable_cycle_skipped_without_blocking_others(self, processor):
        broken = Cycle(
            executions=[
                fill("SELL", 1, "11", minutes=0, symbol="TCS", execution_id="t1"),
                fill("BUY", 1, "10", minutes=5, symbol="TCS", execution_id="t2"),
            ],
            position_type=PositionType.LONG,
        )
        real_segment = segment_cycles

        def segment(executions):
            if executions[0].symbol == "TCS":
                return [broken]
            return real_segment(executions)

        executions = [
            fill("BUY", 1, "10", symbol="TCS"),
            fill("BUY", 1, "10", symbol="INFY"),
            fill("SELL", 1, "11", minutes=1, symbol="INFY"),
        ]
        with patch("tradebook.core.processor.segment_cycles", side_effect=segment):
            result = processor.process(executions, "pf")

        assert [t.symbol for t in result.trades] == ["INFY"]
        assert len(result.errors) == 1
        assert result.errors[0].symbol == "TCS"
        assert result.errors[0].execution_ids == ["t1", "t2"]

    def test_empty_batch(self, processor):
        result = processor.process([], "pf")
        assert result.trades == []
        assert result.errors == []


class TestCurrentPosition:
    def test_returns_latest_open_trade(self, processor):
        trades = processor.process(
            [
                fill("BUY", 10, "10", minutes=0),
                fill("SELL", 10, "11", minutes=1),
                fill("BUY", 3, "12", minutes=2),
                fill("SELL", 4, "50", minutes=0, symbol="TCS"),
            ],
            "pf",
        ).trades
        current = processor.current_position(trades, "INFY")
        assert current.entry_info.quantity == 3
        assert processor.current_position(trades, "TCS").position_type is PositionType.SHORT
        assert processor.current_position(trades, "WIPRO") is None


class TestUnusableValues:
    @pytest.mark.parametrize("price", ["NaN", "sNaN", "Infinity"])
    def test_non_finite_price_reported_other_symbols_processed(self, processor, price):
        bad = replace(fill("BUY", 10, "1", symbol="TCS", execution_id="bad"), price=Decimal(price))
        result = processor.process(
            [bad, fill("BUY", 1, "10"), fill("SELL", 1, "11", minutes=1)], "pf"
        )
        assert [t.symbol for t in result.trades] == ["INFY"]
        assert result.errors[0].execution_ids == ["bad"]

    def test_mixed_naive_and_aware_timestamps(self, processor):
        naive = replace(fill("BUY", 1, "10", symbol="TCS"), executed_at=datetime(2024, 1, 2, 9, 30))
        result = processor.process(
            [naive, fill("SELL", 1, "11", minutes=5, symbol="TCS"), fill("BUY", 1, "10")],
            "pf",
        )
        assert len(result.errors) == 1
        assert {t.symbol for t in result.trades} == {"TCS", "INFY"}
