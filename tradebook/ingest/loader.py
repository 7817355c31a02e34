"""Load broker executions from CSV exports."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from pathlib import Path

import pandas as pd

from tradebook.config.constants import EXECUTION_COLUMNS, Side
from tradebook.core.errors import BatchError
from tradebook.data.models import Execution

logger = logging.getLogger(__name__)


def _parse_decimal(row: dict[str, str], column: str, default: str | None = None) -> Decimal:
    raw = (row.get(column) or "").strip() or (default or "")
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"invalid {column} {row.get(column)!r}") from None
    if not value.is_finite():
        raise ValueError(f"{column} must be finite, got {raw}")
    return value


def _parse_row(row: dict[str, str], portfolio_id: str, default_tz: tzinfo) -> Execution:
    """Convert one CSV row; raises ``ValueError`` on unparseable fields.

    Naive timestamps are interpreted in *default_tz*.
    """
    side_raw = (row.get("side") or "").strip().upper()
    try:
        side = Side(side_raw)
    except ValueError:
        raise ValueError(f"unknown side {row.get('side')!r}") from None

    quantity = _parse_decimal(row, "quantity")
    if quantity != quantity.to_integral_value():
        raise ValueError(f"quantity must be a whole number, got {quantity}")

    price = _parse_decimal(row, "price")
    fees = _parse_decimal(row, "fees", default="0")

    executed_raw = (row.get("executed_at") or "").strip()
    executed_at = datetime.fromisoformat(executed_raw) if executed_raw else None
    if executed_at is not None and executed_at.tzinfo is None:
        executed_at = executed_at.replace(tzinfo=default_tz)

    return Execution(
        symbol=(row.get("symbol") or "").strip(),
        side=side,
        quantity=int(quantity),
        price=price,
        executed_at=executed_at,
        fees=fees,
        execution_id=(row.get("execution_id") or "").strip(),
        portfolio_id=portfolio_id,
    )


def load_executions_csv(
    path: str | Path,
    portfolio_id: str = "",
    default_tz: tzinfo = timezone.utc,
) -> tuple[list[Execution], list[BatchError]]:
    """Read executions from a CSV file.

    Expected columns: ``symbol, side, quantity, price, executed_at, fees``
    plus an optional ``execution_id``. Every column is read as text so that
    prices and fees keep their exact decimal value.

    Returns
    -------
    ``(executions, errors)``; rows that fail to parse are reported, not raised.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip().lower() for c in df.columns]

    missing = [c for c in EXECUTION_COLUMNS if c not in df.columns and c != "fees"]
    if missing:
        raise ValueError(f"{path}: missing required columns {missing}")

    executions: list[Execution] = []
    errors: list[BatchError] = []
    for line_no, row in enumerate(df.to_dict(orient="records"), start=2):
        try:
            executions.append(_parse_row(row, portfolio_id, default_tz))
        except ValueError as exc:
            ref = (row.get("execution_id") or "").strip()
            logger.warning("%s line %d: %s", path, line_no, exc)
            errors.append(
                BatchError(
                    reason=f"line {line_no}: {exc}",
                    symbol=(row.get("symbol") or "").strip(),
                    execution_ids=[ref] if ref else [],
                )
            )

    logger.info(
        "Loaded %d executions from %s (%d rejected)", len(executions), path, len(errors)
    )
    return executions, errors
