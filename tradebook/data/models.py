"""Dataclass models representing domain objects persisted to SQLite."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from tradebook.config.constants import (
    IndexType,
    MarketSegment,
    PositionType,
    Side,
    TradeStatus,
)

ZERO = Decimal("0")


@dataclass(frozen=True)
class Execution:
    """A single broker fill."""

    symbol: str
    side: Side
    quantity: int
    price: Decimal
    executed_at: datetime | None
    fees: Decimal = ZERO
    execution_id: str = ""
    portfolio_id: str = ""
    id: int | None = None

    @property
    def notional(self) -> Decimal:
        return self.price * self.quantity


@dataclass
class EntryExitInfo:
    """Aggregate of the fills on one side of a round trip."""

    timestamp: datetime | None
    price: Decimal
    quantity: int
    total_value: Decimal
    fees: Decimal = ZERO
    reason: str = ""


@dataclass
class TradeMetrics:
    """Financial metrics for one round trip.

    Only the P/L fields are populated for a trade without an exit.
    """

    profit_loss: Decimal = ZERO
    profit_loss_percentage: Decimal = ZERO
    return_on_equity: Decimal = ZERO
    risk_amount: Decimal | None = None
    reward_amount: Decimal | None = None
    risk_reward_ratio: Decimal | None = None
    holding_time_days: int | None = None
    holding_time_hours: int | None = None
    holding_time_minutes: int | None = None


@dataclass
class DerivativeInfo:
    """Contract terms decoded from a futures or options symbol."""

    underlying_symbol: str
    expiry_date: date | None = None
    strike_price: Decimal | None = None
    is_call: bool | None = None  # None for futures


@dataclass
class InstrumentInfo:
    """What a raw broker symbol refers to."""

    raw_symbol: str
    symbol: str
    segment: MarketSegment
    index_type: IndexType | None = None
    derivative: DerivativeInfo | None = None

    @classmethod
    def from_raw_symbol(cls, raw_symbol: str) -> "InstrumentInfo | None":
        from tradebook.core.instrument import parse_instrument

        return parse_instrument(raw_symbol)

    @property
    def is_index(self) -> bool:
        return self.index_type is not None

    @property
    def is_derivative(self) -> bool:
        return self.segment.is_derivative

    @property
    def description(self) -> str:
        """Human label, e.g. ``Bank Nifty CALL 21000 EXP: 2020-10-01``."""
        parts = [self.index_type.display_name if self.index_type else self.symbol]
        if self.derivative is not None:
            if self.segment.is_option:
                parts.append("CALL" if self.derivative.is_call else "PUT")
                if self.derivative.strike_price is not None:
                    parts.append(str(self.derivative.strike_price))
            else:
                parts.append("FUT")
            if self.derivative.expiry_date is not None:
                parts.append(f"EXP: {self.derivative.expiry_date.isoformat()}")
        return " ".join(parts)


@dataclass
class TradeDetails:
    """A reconstructed round-trip trade."""

    trade_id: str
    portfolio_id: str
    symbol: str
    position_type: PositionType
    status: TradeStatus
    entry_info: EntryExitInfo
    exit_info: EntryExitInfo | None
    metrics: TradeMetrics
    executions: list[Execution] = field(default_factory=list)
    strategy: str = ""
    notes: str = ""
    tags: list[str] = field(default_factory=list)
    instrument: InstrumentInfo | None = None


@dataclass
class PortfolioMetrics:
    """Aggregate statistics over every trade attributed to a portfolio."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    break_even_trades: int = 0
    open_positions: int = 0
    win_rate: Decimal = ZERO
    loss_rate: Decimal = ZERO
    profit_factor: Decimal = Decimal("1")
    expectancy: Decimal = ZERO
    total_value: Decimal = ZERO
    total_profit: Decimal = ZERO
    total_loss: Decimal = ZERO
    net_profit_loss: Decimal = ZERO
    net_profit_loss_percentage: Decimal = ZERO


@dataclass
class Portfolio:
    """A named set of trade ids with its latest metrics snapshot."""

    portfolio_id: str
    name: str = ""
    description: str = ""
    owner_id: str = ""
    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    trade_ids: list[str] = field(default_factory=list)
    winning_trade_ids: list[str] = field(default_factory=list)
    losing_trade_ids: list[str] = field(default_factory=list)
    metrics: PortfolioMetrics = field(default_factory=PortfolioMetrics)
