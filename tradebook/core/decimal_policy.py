"""Shared rounding policy for decimal arithmetic."""

from __future__ import annotations

import decimal
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tradebook.config.settings import DecimalSettings

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class DecimalPolicy:
    """Fixed scale and rounding mode applied to every division.

    Parameters
    ----------
    scale:
        Number of fractional digits kept after a division.
    rounding:
        Any ``decimal`` rounding constant name, e.g. ``"ROUND_HALF_UP"``.
    """

    scale: int = 4
    rounding: str = decimal.ROUND_HALF_UP

    def __post_init__(self) -> None:
        if self.scale < 0:
            raise ValueError(f"Decimal scale must be non-negative, got {self.scale}")
        if not hasattr(decimal, self.rounding) or not self.rounding.startswith("ROUND_"):
            raise ValueError(f"Unknown rounding mode: {self.rounding}")

    @classmethod
    def from_settings(cls, settings: "DecimalSettings") -> "DecimalPolicy":
        return cls(scale=settings.scale, rounding=settings.rounding)

    @property
    def exponent(self) -> Decimal:
        return Decimal(1).scaleb(-self.scale)

    def quantize(self, value: Decimal) -> Decimal:
        return value.quantize(self.exponent, rounding=self.rounding)

    def divide(self, numerator: Decimal | int, denominator: Decimal | int) -> Decimal:
        """Divide and round to the policy scale. Raises on a zero denominator."""
        if denominator == 0:
            raise ZeroDivisionError("DecimalPolicy.divide by zero")
        return self.quantize(Decimal(numerator) / Decimal(denominator))

    def percentage(self, part: Decimal | int, whole: Decimal | int) -> Decimal:
        """``part / whole`` rounded to scale, times 100; zero when *whole* <= 0."""
        if whole <= 0:
            return Decimal("0")
        return self.divide(part, whole) * _HUNDRED
