"""Decode broker trading symbols into instrument descriptions.

Recognised shapes (symbol matched upper-cased, without whitespace):

    MARUTI20SEPFUT          monthly future, expires last Thursday of the month
    BANKNIFTY2091722500CE   option with a full YYMMDD expiry
    HEROMOTOCO20SEP3000PE   monthly option, expires last Thursday
    BANKNIFTY20O0121000CE   weekly option, month as a single letter code

Everything else is a cash equity, or an index when the symbol names one.
"""

from __future__ import annotations

import calendar
import logging
import re
from datetime import date
from decimal import Decimal

from tradebook.config.constants import IndexType, MarketSegment
from tradebook.data.models import DerivativeInfo, InstrumentInfo

logger = logging.getLogger(__name__)

_FUTURES = re.compile(r"^([A-Z&-]+)(\d{2})([A-Z]{3})FUT$")
_OPTIONS_FULL = re.compile(r"^([A-Z&-]+)(\d{2})(\d{2})(\d{2})(\d+)([CP]E)$")
_OPTIONS_MONTH = re.compile(r"^([A-Z&-]+)(\d{2})([A-Z]{3})(\d+)([CP]E)$")
_OPTIONS_WEEKLY = re.compile(r"^([A-Z&-]+)(\d{2})([A-Z])(\d{2})(\d+)([CP]E)$")

_MONTHS = {name.upper(): number for number, name in enumerate(calendar.month_abbr) if name}

# NSE weekly letters O/N/D take precedence over the exchange futures codes
_WEEKLY_MONTH_CODES = {
    "O": 10, "N": 11, "D": 12,
    "F": 1, "G": 2, "H": 3, "J": 4, "K": 5, "M": 6,
    "Q": 8, "U": 9, "V": 10, "X": 11, "W": 11, "Z": 12,
}


def last_thursday(year: int, month: int) -> date:
    """Monthly derivative expiry for ``year``/``month``."""
    last_day = calendar.monthrange(year, month)[1]
    expiry = date(year, month, last_day)
    # Thursday is weekday 3
    offset = (expiry.weekday() - 3) % 7
    return expiry.replace(day=last_day - offset)


def _segment(index_type: IndexType | None, option: bool) -> MarketSegment:
    if index_type is not None:
        return MarketSegment.INDEX_OPTIONS if option else MarketSegment.INDEX_FUTURES
    return MarketSegment.EQUITY_OPTIONS if option else MarketSegment.EQUITY_FUTURES


def _monthly_expiry(raw: str, yy: str, mon: str) -> date | None:
    month = _MONTHS.get(mon)
    if month is None:
        logger.debug("Unknown month %r in symbol %s", mon, raw)
        return None
    return last_thursday(2000 + int(yy), month)


def _dated_expiry(raw: str, year: int, month: int | None, day: int) -> date | None:
    if month is None:
        logger.debug("Unknown month code in symbol %s", raw)
        return None
    try:
        return date(year, month, day)
    except ValueError:
        logger.debug("Invalid expiry date in symbol %s", raw)
        return None


def _derivative(
    raw: str, base: str, expiry: date | None, strike: str | None, option_type: str | None
) -> InstrumentInfo:
    index_type = IndexType.from_symbol(base)
    is_option = option_type is not None
    return InstrumentInfo(
        raw_symbol=raw,
        symbol=base,
        segment=_segment(index_type, is_option),
        index_type=index_type,
        derivative=DerivativeInfo(
            underlying_symbol=base,
            expiry_date=expiry,
            strike_price=Decimal(strike) if strike is not None else None,
            is_call=option_type.startswith("C") if is_option else None,
        ),
    )


def parse_instrument(raw_symbol: str) -> InstrumentInfo | None:
    """Describe ``raw_symbol``; ``None`` for a blank symbol."""
    if not raw_symbol or not raw_symbol.strip():
        return None
    symbol = "".join(raw_symbol.split()).upper()

    m = _FUTURES.match(symbol)
    if m:
        base, yy, mon = m.groups()
        return _derivative(raw_symbol, base, _monthly_expiry(raw_symbol, yy, mon), None, None)

    m = _OPTIONS_FULL.match(symbol)
    if m:
        base, yy, mm, dd, strike, opt = m.groups()
        expiry = _dated_expiry(raw_symbol, 2000 + int(yy), int(mm), int(dd))
        return _derivative(raw_symbol, base, expiry, strike, opt)

    m = _OPTIONS_MONTH.match(symbol)
    if m:
        base, yy, mon, strike, opt = m.groups()
        return _derivative(raw_symbol, base, _monthly_expiry(raw_symbol, yy, mon), strike, opt)

    m = _OPTIONS_WEEKLY.match(symbol)
    if m:
        base, yy, code, dd, strike, opt = m.groups()
        expiry = _dated_expiry(raw_symbol, 2000 + int(yy), _WEEKLY_MONTH_CODES.get(code), int(dd))
        return _derivative(raw_symbol, base, expiry, strike, opt)

    index_type = IndexType.from_symbol(symbol)
    return InstrumentInfo(
        raw_symbol=raw_symbol,
        symbol=symbol,
        segment=MarketSegment.INDEX if index_type is not None else MarketSegment.EQUITY,
        index_type=index_type,
    )
