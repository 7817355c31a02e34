"""Entry/exit aggregation of a cycle's fills."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Sequence

from tradebook.core.errors import TradeComputationError
from tradebook.data.models import ZERO, EntryExitInfo

if TYPE_CHECKING:
    from tradebook.core.decimal_policy import DecimalPolicy
    from tradebook.core.segmenter import Cycle
    from tradebook.data.models import Execution

logger = logging.getLogger(__name__)


class Boundary(str, Enum):
    """Which timestamp of a fill set labels the aggregate."""

    FIRST = "first"
    LAST = "last"


def split_executions(cycle: "Cycle") -> tuple[list["Execution"], list["Execution"]]:
    """Return ``(opening, closing)`` fills relative to the cycle's direction."""
    opening_side = cycle.position_type.opening_side
    opening = [e for e in cycle.executions if e.side == opening_side]
    closing = [e for e in cycle.executions if e.side != opening_side]
    return opening, closing


def aggregate(
    executions: Sequence["Execution"],
    boundary: Boundary,
    policy: "DecimalPolicy",
) -> EntryExitInfo | None:
    """Collapse a set of fills into one quantity-weighted ``EntryExitInfo``.

    Returns ``None`` for an empty set.

    Formula::

        price = sum(price * quantity) / sum(quantity)   # rounded by policy
    """
    if not executions:
        return None

    total_quantity = 0
    total_value = ZERO
    total_fees = ZERO
    for execution in executions:
        total_quantity += execution.quantity
        total_value += execution.notional
        total_fees += execution.fees

    timestamps = [e.executed_at for e in executions]
    timestamp = min(timestamps) if boundary is Boundary.FIRST else max(timestamps)

    price = policy.divide(total_value, total_quantity) if total_quantity > 0 else ZERO

    return EntryExitInfo(
        timestamp=timestamp,
        price=price,
        quantity=total_quantity,
        total_value=total_value,
        fees=total_fees,
    )


def build_entry_exit(
    cycle: "Cycle",
    policy: "DecimalPolicy",
) -> tuple[EntryExitInfo, EntryExitInfo | None]:
    """Compute the entry and (optional) exit aggregates of a cycle.

    The opening fills are always the entry: buys for a LONG cycle, sells for
    a SHORT one. The direction is applied later in the P/L sign, not by
    relabelling the aggregates.
    """
    opening, closing = split_executions(cycle)
    entry = aggregate(opening, Boundary.FIRST, policy)
    if entry is None:
        # classify_position guarantees the first fill is an opening fill
        raise TradeComputationError(f"Cycle for {cycle.symbol} has no opening executions")

    exit_ = aggregate(closing, Boundary.LAST, policy)
    logger.debug(
        "%s %s entry=%s x%d exit=%s",
        cycle.symbol,
        cycle.position_type.value,
        entry.price,
        entry.quantity,
        f"{exit_.price} x{exit_.quantity}" if exit_ else "open",
    )
    return entry, exit_
