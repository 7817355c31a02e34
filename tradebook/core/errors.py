"""Errors raised while reconstructing trades."""

from __future__ import annotations

from dataclasses import dataclass, field


class TradeComputationError(ValueError):
    """A cycle or execution could not be turned into a trade."""


class MalformedExecutionError(TradeComputationError):
    """Execution fails basic sanity checks (quantity, price, fee, timestamp)."""

    def __init__(self, message: str, execution_id: str = "", symbol: str = "") -> None:
        super().__init__(message)
        self.execution_id = execution_id
        self.symbol = symbol


class NegativeHoldingTimeError(TradeComputationError):
    """Exit timestamp precedes entry timestamp."""


@dataclass
class BatchError:
    """One rejected execution or cycle, reported alongside the batch result."""

    reason: str
    symbol: str = ""
    execution_ids: list[str] = field(default_factory=list)
