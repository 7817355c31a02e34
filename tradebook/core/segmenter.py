"""Cycle segmentation and long/short classification."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from tradebook.config.constants import PositionType, Side
from tradebook.data.models import Execution

logger = logging.getLogger(__name__)


@dataclass
class Cycle:
    """Executions for one symbol from a flat position until it is flat again.

    The last cycle of a symbol may be unterminated (``net_position != 0``).
    """

    executions: list[Execution] = field(default_factory=list)
    position_type: PositionType = PositionType.LONG
    net_position: int = 0

    @property
    def symbol(self) -> str:
        return self.executions[0].symbol if self.executions else ""

    @property
    def is_closed(self) -> bool:
        return bool(self.executions) and self.net_position == 0


def classify_position(executions: Sequence[Execution]) -> PositionType:
    """LONG if the first execution is a buy, SHORT if it is a sell."""
    if not executions:
        raise ValueError("Cannot classify an empty cycle")
    return PositionType.LONG if executions[0].side == Side.BUY else PositionType.SHORT


def signed_quantity(execution: Execution, position_type: PositionType) -> int:
    """Positive on the side that opens *position_type*, negative otherwise."""
    if execution.side == position_type.opening_side:
        return execution.quantity
    return -execution.quantity


def segment_cycles(executions: Sequence[Execution]) -> list[Cycle]:
    """Partition one symbol's chronologically sorted executions into cycles.

    A cycle is sealed the moment the running position returns to exactly
    zero. Whatever remains at the end becomes a final open cycle.
    """
    cycles: list[Cycle] = []
    current: Cycle | None = None

    for execution in executions:
        if current is None:
            current = Cycle(position_type=classify_position([execution]))

        current.executions.append(execution)
        before = current.net_position
        current.net_position += signed_quantity(execution, current.position_type)

        if before > 0 and current.net_position < 0:
            # over-close: the fill is not split, so the cycle stays open
            logger.warning(
                "%s position crossed zero (%d -> %d) on execution %s",
                execution.symbol,
                before,
                current.net_position,
                execution.execution_id or execution.executed_at,
            )

        if current.net_position == 0:
            cycles.append(current)
            current = None

    if current is not None:
        logger.debug(
            "%s has an open %s cycle with net position %d",
            current.symbol,
            current.position_type.value,
            current.net_position,
        )
        cycles.append(current)

    return cycles
