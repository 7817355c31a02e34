"""Trade status resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tradebook.config.constants import TradeStatus

if TYPE_CHECKING:
    from tradebook.data.models import EntryExitInfo, TradeMetrics


def resolve_status(
    entry: "EntryExitInfo",
    exit_: "EntryExitInfo | None",
    metrics: "TradeMetrics",
) -> TradeStatus:
    """OPEN without an exit or with mismatched quantities, else by P/L sign."""
    if exit_ is None:
        return TradeStatus.OPEN
    if entry.quantity != exit_.quantity:
        return TradeStatus.OPEN  # partially closed
    if metrics.profit_loss > 0:
        return TradeStatus.WIN
    if metrics.profit_loss < 0:
        return TradeStatus.LOSS
    return TradeStatus.BREAK_EVEN
