"""Console and CSV reporting for trades and portfolios."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from rich.console import Console
from rich.table import Table

from tradebook.config.constants import PROFIT_FACTOR_CAP, TradeStatus

if TYPE_CHECKING:
    from tradebook.core.errors import BatchError
    from tradebook.data.models import Portfolio, TradeDetails

logger = logging.getLogger(__name__)

_STATUS_STYLE = {
    TradeStatus.WIN: "green",
    TradeStatus.LOSS: "red",
    TradeStatus.BREAK_EVEN: "yellow",
    TradeStatus.OPEN: "cyan",
}

CSV_FIELDS = [
    "trade_id",
    "portfolio_id",
    "symbol",
    "segment",
    "instrument",
    "position_type",
    "status",
    "entry_time",
    "entry_price",
    "entry_quantity",
    "entry_value",
    "entry_fees",
    "exit_time",
    "exit_price",
    "exit_quantity",
    "exit_value",
    "exit_fees",
    "profit_loss",
    "profit_loss_percentage",
    "holding_time_days",
    "holding_time_hours",
    "holding_time_minutes",
    "executions",
]


def _holding(trade: "TradeDetails") -> str:
    m = trade.metrics
    if m.holding_time_days is None:
        return "-"
    return f"{m.holding_time_days}d {m.holding_time_hours}h {m.holding_time_minutes}m"


class TradeReporter:
    """Format reconstructed trades and portfolio metrics."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def print_trades(self, trades: Sequence["TradeDetails"], title: str = "Trades") -> None:
        """Print one row per trade (Rich)."""
        table = Table(title=title, show_header=True)
        table.add_column("Symbol", style="cyan")
        table.add_column("Side")
        table.add_column("Status")
        table.add_column("Entry", justify="right")
        table.add_column("Exit", justify="right")
        table.add_column("Qty", justify="right")
        table.add_column("P/L", justify="right")
        table.add_column("P/L %", justify="right")
        table.add_column("Held", justify="right")
        table.add_column("Trade ID", style="dim")

        for trade in trades:
            style = _STATUS_STYLE.get(trade.status, "white")
            exit_ = trade.exit_info
            table.add_row(
                trade.symbol,
                trade.position_type.value,
                f"[{style}]{trade.status.value}[/]",
                f"{trade.entry_info.price:,.2f}",
                f"{exit_.price:,.2f}" if exit_ else "-",
                str(trade.entry_info.quantity),
                f"[{style}]{trade.metrics.profit_loss:,.2f}[/]",
                f"{trade.metrics.profit_loss_percentage:.2f}%",
                _holding(trade),
                trade.trade_id[:8],
            )

        self._console.print(table)

    def print_portfolio(self, portfolio: "Portfolio") -> None:
        """Print a portfolio metrics summary table (Rich)."""
        m = portfolio.metrics
        table = Table(title=f"Portfolio {portfolio.name or portfolio.portfolio_id}", show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green", justify="right")

        table.add_row("Owner", portfolio.owner_id or "-")
        table.add_row("Total Trades", str(m.total_trades))
        table.add_row(
            "Win / Loss / Even",
            f"{m.winning_trades} / {m.losing_trades} / {m.break_even_trades}",
        )
        table.add_row("Open Positions", str(m.open_positions))
        table.add_row("Win Rate", f"{m.win_rate:.2f}%")
        table.add_row("Loss Rate", f"{m.loss_rate:.2f}%")
        table.add_row(
            "Profit Factor",
            f"{m.profit_factor:.2f}" if m.profit_factor != PROFIT_FACTOR_CAP else "∞",
        )
        table.add_row("Expectancy", f"{m.expectancy:,.2f}")
        table.add_row("Total Value", f"{m.total_value:,.2f}")
        table.add_row("Total Profit", f"{m.total_profit:,.2f}")
        table.add_row("Total Loss", f"{m.total_loss:,.2f}")
        table.add_row("Net P/L", f"{m.net_profit_loss:,.2f}")
        table.add_row("Net P/L %", f"{m.net_profit_loss_percentage:.2f}%")

        self._console.print(table)

    def print_errors(self, errors: Sequence["BatchError"]) -> None:
        """List rejected executions and cycles."""
        if not errors:
            return
        table = Table(title="Rejected", show_header=True)
        table.add_column("Symbol", style="cyan")
        table.add_column("Reason", style="red")
        table.add_column("Executions", style="dim")
        for error in errors:
            table.add_row(error.symbol or "-", error.reason, ", ".join(error.execution_ids))
        self._console.print(table)

    def export_csv(self, trades: Sequence["TradeDetails"], path: str) -> None:
        """Export one row per trade to CSV."""
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
            writer.writeheader()
            for trade in trades:
                entry, exit_, m = trade.entry_info, trade.exit_info, trade.metrics
                writer.writerow(
                    {
                        "trade_id": trade.trade_id,
                        "portfolio_id": trade.portfolio_id,
                        "symbol": trade.symbol,
                        "segment": trade.instrument.segment.value if trade.instrument else "",
                        "instrument": trade.instrument.description if trade.instrument else "",
                        "position_type": trade.position_type.value,
                        "status": trade.status.value,
                        "entry_time": entry.timestamp.isoformat() if entry.timestamp else "",
                        "entry_price": entry.price,
                        "entry_quantity": entry.quantity,
                        "entry_value": entry.total_value,
                        "entry_fees": entry.fees,
                        "exit_time": exit_.timestamp.isoformat()
                        if exit_ and exit_.timestamp
                        else "",
                        "exit_price": exit_.price if exit_ else "",
                        "exit_quantity": exit_.quantity if exit_ else "",
                        "exit_value": exit_.total_value if exit_ else "",
                        "exit_fees": exit_.fees if exit_ else "",
                        "profit_loss": m.profit_loss,
                        "profit_loss_percentage": m.profit_loss_percentage,
                        "holding_time_days": m.holding_time_days
                        if m.holding_time_days is not None
                        else "",
                        "holding_time_hours": m.holding_time_hours
                        if m.holding_time_hours is not None
                        else "",
                        "holding_time_minutes": m.holding_time_minutes
                        if m.holding_time_minutes is not None
                        else "",
                        "executions": len(trade.executions),
                    }
                )

        logger.info("Exported %d trades to %s", len(trades), path)
