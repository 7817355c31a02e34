"""Reconstruct round-trip trades from raw executions."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from tradebook.config.constants import TradeStatus
from tradebook.core.aggregator import build_entry_exit
from tradebook.core.errors import BatchError, TradeComputationError
from tradebook.core.instrument import parse_instrument
from tradebook.core.normalizer import group_by_symbol, partition_valid
from tradebook.core.segmenter import segment_cycles
from tradebook.core.status import resolve_status
from tradebook.data.models import TradeDetails

if TYPE_CHECKING:
    from tradebook.core.decimal_policy import DecimalPolicy
    from tradebook.core.metrics import TradeMetricsCalculator
    from tradebook.core.segmenter import Cycle
    from tradebook.data.models import Execution

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Trades reconstructed from one batch plus whatever was rejected."""

    trades: list[TradeDetails] = field(default_factory=list)
    errors: list[BatchError] = field(default_factory=list)

    @property
    def trade_ids(self) -> list[str]:
        return [t.trade_id for t in self.trades]


class TradeProcessor:
    """Turn executions into ``TradeDetails``, one per cycle.

    Data flow per batch::

        validate → group by symbol → sort → segment → aggregate
        → metrics → status

    Parameters
    ----------
    policy:
        Rounding policy for average prices.
    calculator:
        Metrics calculator sharing the same policy.
    """

    def __init__(
        self,
        policy: "DecimalPolicy",
        calculator: "TradeMetricsCalculator",
    ) -> None:
        self._policy = policy
        self._calculator = calculator

    def process(
        self,
        executions: Iterable["Execution"],
        portfolio_id: str,
    ) -> ProcessingResult:
        """Reconstruct every cycle in the batch.

        Malformed executions and uncomputable cycles are reported in
        ``ProcessingResult.errors``; they never block other cycles.
        """
        valid, errors = partition_valid(executions)
        result = ProcessingResult(errors=errors)

        for symbol, symbol_executions in group_by_symbol(valid).items():
            for cycle in segment_cycles(symbol_executions):
                try:
                    trade = self.process_cycle(cycle, symbol, portfolio_id)
                except TradeComputationError as exc:
                    logger.error("Skipping %s cycle: %s", symbol, exc)
                    result.errors.append(
                        BatchError(
                            reason=str(exc),
                            symbol=symbol,
                            execution_ids=[
                                e.execution_id for e in cycle.executions if e.execution_id
                            ],
                        )
                    )
                    continue
                result.trades.append(trade)

        logger.info(
            "Processed batch for portfolio %s: %d trades, %d errors",
            portfolio_id,
            len(result.trades),
            len(result.errors),
        )
        return result

    def process_cycle(
        self,
        cycle: "Cycle",
        symbol: str,
        portfolio_id: str,
    ) -> TradeDetails:
        """Build the ``TradeDetails`` for a single cycle."""
        entry, exit_ = build_entry_exit(cycle, self._policy)
        metrics = self._calculator.calculate(entry, exit_, cycle.position_type)
        status = resolve_status(entry, exit_, metrics)

        trade = TradeDetails(
            trade_id=str(uuid.uuid4()),
            portfolio_id=portfolio_id,
            symbol=symbol,
            position_type=cycle.position_type,
            status=status,
            entry_info=entry,
            exit_info=exit_,
            metrics=metrics,
            executions=list(cycle.executions),
            instrument=parse_instrument(symbol),
        )
        logger.debug(
            "Trade %s: %s %s %s P/L=%s",
            trade.trade_id,
            symbol,
            cycle.position_type.value,
            status.value,
            metrics.profit_loss,
        )
        return trade

    @staticmethod
    def current_position(
        trades: Iterable[TradeDetails],
        symbol: str,
    ) -> TradeDetails | None:
        """Return the most recently opened OPEN trade for *symbol*, if any."""
        open_trades = [
            t for t in trades if t.symbol == symbol and t.status is TradeStatus.OPEN
        ]
        if not open_trades:
            return None
        return max(open_trades, key=lambda t: t.entry_info.timestamp)
