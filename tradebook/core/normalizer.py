"""Execution validation, grouping by symbol and chronological ordering."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from tradebook.config.constants import Side
from tradebook.core.errors import BatchError, MalformedExecutionError
from tradebook.data.models import Execution

logger = logging.getLogger(__name__)


def _is_finite_amount(value: object) -> bool:
    """Decimal or int (not bool) that is neither NaN nor infinite."""
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        return False
    return Decimal(value).is_finite()


def validate_execution(execution: Execution) -> Execution:
    """Return *execution* unchanged or raise ``MalformedExecutionError``.

    Checks performed:
    1. Symbol is non-blank.
    2. Side is a known ``Side``.
    3. Quantity is a positive integer.
    4. Price is a finite, strictly positive ``Decimal``.
    5. Fees are a finite, non-negative ``Decimal``.
    6. Execution timestamp is present and carries a UTC offset.
    """
    ref = execution.execution_id
    if not execution.symbol or not execution.symbol.strip():
        raise MalformedExecutionError("blank symbol", ref)
    if not isinstance(execution.side, Side):
        raise MalformedExecutionError(
            f"unknown side {execution.side!r}", ref, execution.symbol
        )
    if isinstance(execution.quantity, bool) or not isinstance(execution.quantity, int):
        raise MalformedExecutionError(
            f"quantity must be an integer, got {execution.quantity!r}",
            ref,
            execution.symbol,
        )
    if execution.quantity <= 0:
        raise MalformedExecutionError(
            f"quantity must be positive, got {execution.quantity}", ref, execution.symbol
        )
    if not _is_finite_amount(execution.price):
        raise MalformedExecutionError(
            f"price must be a finite decimal, got {execution.price!r}", ref, execution.symbol
        )
    if execution.price <= 0:
        raise MalformedExecutionError(
            f"price must be positive, got {execution.price}", ref, execution.symbol
        )
    if not _is_finite_amount(execution.fees):
        raise MalformedExecutionError(
            f"fees must be a finite decimal, got {execution.fees!r}", ref, execution.symbol
        )
    if execution.fees < 0:
        raise MalformedExecutionError(
            f"fees must be non-negative, got {execution.fees}", ref, execution.symbol
        )
    if not isinstance(execution.executed_at, datetime):
        raise MalformedExecutionError("missing execution timestamp", ref, execution.symbol)
    if execution.executed_at.utcoffset() is None:
        raise MalformedExecutionError(
            f"timestamp {execution.executed_at.isoformat()} has no UTC offset",
            ref,
            execution.symbol,
        )
    return execution


def partition_valid(
    executions: Iterable[Execution],
) -> tuple[list[Execution], list[BatchError]]:
    """Split executions into valid ones and per-execution errors."""
    valid: list[Execution] = []
    errors: list[BatchError] = []
    for execution in executions:
        try:
            valid.append(validate_execution(execution))
        except MalformedExecutionError as exc:
            logger.warning(
                "Rejected execution %s (%s): %s",
                exc.execution_id or "<no id>",
                exc.symbol or "?",
                exc,
            )
            errors.append(
                BatchError(
                    reason=str(exc),
                    symbol=exc.symbol,
                    execution_ids=[exc.execution_id] if exc.execution_id else [],
                )
            )
    return valid, errors


def group_by_symbol(executions: Iterable[Execution]) -> dict[str, list[Execution]]:
    """Group executions by symbol, each group sorted by execution time.

    Symbols keep first-seen order. The sort is stable, so fills sharing a
    timestamp stay in input order.
    """
    groups: dict[str, list[Execution]] = {}
    for execution in executions:
        groups.setdefault(execution.symbol, []).append(execution)

    for symbol, group in groups.items():
        group.sort(key=lambda e: e.executed_at)
        logger.debug("Normalized %d executions for %s", len(group), symbol)
    return groups
