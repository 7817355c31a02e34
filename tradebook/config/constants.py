"""Enums and constants used throughout the trade book."""

from decimal import Decimal
from enum import Enum


class Side(str, Enum):
    """Execution direction reported by the broker."""

    BUY = "BUY"
    SELL = "SELL"


class PositionType(str, Enum):
    """Direction of a round-trip trade, fixed by its opening execution."""

    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def opening_side(self) -> Side:
        """Execution side that increases the position."""
        return Side.BUY if self is PositionType.LONG else Side.SELL


class TradeStatus(str, Enum):
    """Terminal outcome of a reconstructed trade."""

    OPEN = "OPEN"
    WIN = "WIN"
    LOSS = "LOSS"
    BREAK_EVEN = "BREAK_EVEN"



class MarketSegment(str, Enum):
    """Market segment of a traded instrument."""

    EQUITY = "EQUITY"
    INDEX = "INDEX"
    EQUITY_FUTURES = "EQUITY_FUTURES"
    EQUITY_OPTIONS = "EQUITY_OPTIONS"
    INDEX_FUTURES = "INDEX_FUTURES"
    INDEX_OPTIONS = "INDEX_OPTIONS"

    @property
    def is_derivative(self) -> bool:
        return self not in (MarketSegment.EQUITY, MarketSegment.INDEX)

    @property
    def is_option(self) -> bool:
        return self in (MarketSegment.EQUITY_OPTIONS, MarketSegment.INDEX_OPTIONS)


class IndexType(str, Enum):
    """Indian market indices recognised in raw symbols."""

    NIFTY = "NIFTY"
    BANKNIFTY = "BANKNIFTY"
    MIDCAPNIFTY = "MIDCAPNIFTY"
    FINNIFTY = "FINNIFTY"
    NIFTY_NEXT_50 = "NIFTY_NEXT_50"
    NIFTY_100 = "NIFTY_100"
    NIFTY_200 = "NIFTY_200"
    NIFTY_500 = "NIFTY_500"
    NIFTY_AUTO = "NIFTY_AUTO"
    NIFTY_FMCG = "NIFTY_FMCG"
    NIFTY_IT = "NIFTY_IT"
    NIFTY_METAL = "NIFTY_METAL"
    NIFTY_PHARMA = "NIFTY_PHARMA"
    NIFTY_REALTY = "NIFTY_REALTY"
    SENSEX = "SENSEX"
    BSE_100 = "BSE_100"
    BSE_200 = "BSE_200"
    BSE_500 = "BSE_500"
    INDIA_VIX = "INDIA_VIX"

    @property
    def display_name(self) -> str:
        return INDEX_DISPLAY_NAMES[self]

    @classmethod
    def from_symbol(cls, symbol: str) -> "IndexType | None":
        """Match by member name or display name, case-insensitively."""
        key = (symbol or "").strip().upper()
        for index in cls:
            if key in (index.value, index.display_name.upper()):
                return index
        return None


INDEX_DISPLAY_NAMES = {
    IndexType.NIFTY: "Nifty 50",
    IndexType.BANKNIFTY: "Bank Nifty",
    IndexType.MIDCAPNIFTY: "Midcap Nifty",
    IndexType.FINNIFTY: "Fin Nifty",
    IndexType.NIFTY_NEXT_50: "Nifty Next 50",
    IndexType.NIFTY_100: "Nifty 100",
    IndexType.NIFTY_200: "Nifty 200",
    IndexType.NIFTY_500: "Nifty 500",
    IndexType.NIFTY_AUTO: "Nifty Auto",
    IndexType.NIFTY_FMCG: "Nifty FMCG",
    IndexType.NIFTY_IT: "Nifty IT",
    IndexType.NIFTY_METAL: "Nifty Metal",
    IndexType.NIFTY_PHARMA: "Nifty Pharma",
    IndexType.NIFTY_REALTY: "Nifty Realty",
    IndexType.SENSEX: "Sensex",
    IndexType.BSE_100: "BSE 100",
    IndexType.BSE_200: "BSE 200",
    IndexType.BSE_500: "BSE 500",
    IndexType.INDIA_VIX: "India VIX",
}

# Reported profit factor when there are profits but no losses
PROFIT_FACTOR_CAP = Decimal("999")

# Columns expected in an executions CSV
EXECUTION_COLUMNS = ("symbol", "side", "quantity", "price", "executed_at", "fees")
