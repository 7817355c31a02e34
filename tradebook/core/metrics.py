"""Per-trade profit/loss, return, holding time and risk/reward."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from tradebook.config.constants import PositionType
from tradebook.core.errors import NegativeHoldingTimeError
from tradebook.data.models import ZERO, TradeMetrics

if TYPE_CHECKING:
    from datetime import datetime

    from tradebook.config.settings import MetricsSettings
    from tradebook.core.decimal_policy import DecimalPolicy
    from tradebook.data.models import EntryExitInfo

logger = logging.getLogger(__name__)

_ONE = Decimal("1")


def holding_time(entry_at: "datetime", exit_at: "datetime") -> tuple[int, int, int]:
    """Split ``exit_at - entry_at`` into whole days, hours (0-23) and minutes (0-59)."""
    delta = exit_at - entry_at
    if delta.total_seconds() < 0:
        raise NegativeHoldingTimeError(
            f"exit at {exit_at.isoformat()} precedes entry at {entry_at.isoformat()}"
        )
    seconds = int(delta.total_seconds())
    return seconds // 86400, (seconds // 3600) % 24, (seconds // 60) % 60


class TradeMetricsCalculator:
    """Derive ``TradeMetrics`` from an entry/exit pair.

    Parameters
    ----------
    policy:
        Rounding policy for every division.
    risk_fraction:
        Fraction of the entry notional treated as the amount at risk.
    reward_multiple:
        Reward reported for non-profitable trades, as a multiple of risk.
    """

    def __init__(
        self,
        policy: "DecimalPolicy",
        risk_fraction: Decimal = Decimal("0.02"),
        reward_multiple: Decimal = Decimal("2"),
    ) -> None:
        if risk_fraction < 0:
            raise ValueError(f"risk_fraction must be non-negative, got {risk_fraction}")
        self._policy = policy
        self._risk_fraction = Decimal(risk_fraction)
        self._reward_multiple = Decimal(reward_multiple)

    @classmethod
    def from_settings(
        cls, policy: "DecimalPolicy", settings: "MetricsSettings"
    ) -> "TradeMetricsCalculator":
        return cls(
            policy,
            risk_fraction=settings.risk_fraction,
            reward_multiple=settings.reward_multiple,
        )

    def calculate(
        self,
        entry: "EntryExitInfo",
        exit_: "EntryExitInfo | None",
        position_type: PositionType,
    ) -> TradeMetrics:
        """Compute metrics; an open trade (no exit) reports zero P/L only.

        Raises
        ------
        NegativeHoldingTimeError
            When the exit timestamp precedes the entry timestamp.
        """
        if exit_ is None:
            return TradeMetrics()

        profit_loss = self.profit_loss(entry, exit_, position_type)
        notional = entry.total_value
        percentage = self._policy.percentage(profit_loss, notional)

        days = hours = minutes = None
        if entry.timestamp is not None and exit_.timestamp is not None:
            days, hours, minutes = holding_time(entry.timestamp, exit_.timestamp)

        risk_amount = notional * self._risk_fraction
        reward_amount = (
            profit_loss if profit_loss > 0 else risk_amount * self._reward_multiple
        )
        if risk_amount > 0 and reward_amount > 0:
            risk_reward_ratio = self._policy.divide(reward_amount, risk_amount)
        else:
            risk_reward_ratio = _ONE

        return TradeMetrics(
            profit_loss=profit_loss,
            profit_loss_percentage=percentage,
            return_on_equity=percentage,
            risk_amount=risk_amount,
            reward_amount=reward_amount,
            risk_reward_ratio=risk_reward_ratio,
            holding_time_days=days,
            holding_time_hours=hours,
            holding_time_minutes=minutes,
        )

    @staticmethod
    def profit_loss(
        entry: "EntryExitInfo",
        exit_: "EntryExitInfo",
        position_type: PositionType,
    ) -> Decimal:
        """Realized P/L net of entry and exit fees.

        Formula::

            LONG:  (exit - entry) * entry_quantity - fees
            SHORT: (entry - exit) * entry_quantity - fees
        """
        if position_type is PositionType.LONG:
            gross = (exit_.price - entry.price) * entry.quantity
        else:
            gross = (entry.price - exit_.price) * entry.quantity
        return gross - (entry.fees + exit_.fees)
