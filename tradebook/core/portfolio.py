"""Portfolio roll-up: merge trade ids and recompute aggregate metrics."""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Sequence

from tradebook.config.constants import PROFIT_FACTOR_CAP, TradeStatus
from tradebook.data.models import ZERO, Portfolio, PortfolioMetrics

if TYPE_CHECKING:
    from tradebook.core.decimal_policy import DecimalPolicy
    from tradebook.data.models import TradeDetails
    from tradebook.data.repository import Repository

logger = logging.getLogger(__name__)

_ONE = Decimal("1")


def compute_portfolio_metrics(
    trades: Sequence["TradeDetails"],
    total_trades: int,
    policy: "DecimalPolicy",
) -> PortfolioMetrics:
    """Reduce a portfolio's trades into ``PortfolioMetrics``.

    Metrics:
    - **Win / loss rate**: percentage of closed (WIN, LOSS, BREAK_EVEN) trades
    - **Profit factor**: total profit / total loss; 999 with no losses but
      some profit, 1 when both are zero
    - **Expectancy**: net P/L per closed trade
    - **Net P/L %**: net P/L over the summed entry notional of all trades

    ``total_trades`` is the size of the portfolio's trade-id set, which can
    exceed ``len(trades)`` when some ids no longer resolve to a stored trade.
    """
    metrics = PortfolioMetrics(total_trades=total_trades)

    for trade in trades:
        profit_loss = trade.metrics.profit_loss if trade.metrics else None
        if trade.status is TradeStatus.WIN:
            metrics.winning_trades += 1
            if profit_loss is not None:
                metrics.total_profit += profit_loss
        elif trade.status is TradeStatus.LOSS:
            metrics.losing_trades += 1
            if profit_loss is not None:
                metrics.total_loss += abs(profit_loss)
        elif trade.status is TradeStatus.BREAK_EVEN:
            metrics.break_even_trades += 1
        else:
            metrics.open_positions += 1

        if trade.entry_info is not None:
            metrics.total_value += trade.entry_info.total_value

    closed = metrics.winning_trades + metrics.losing_trades + metrics.break_even_trades
    if closed > 0:
        metrics.win_rate = policy.percentage(metrics.winning_trades, closed)
        metrics.loss_rate = policy.percentage(metrics.losing_trades, closed)
        metrics.expectancy = policy.divide(
            metrics.total_profit - metrics.total_loss, closed
        )

    if metrics.total_loss > 0:
        metrics.profit_factor = policy.divide(metrics.total_profit, metrics.total_loss)
    elif metrics.total_profit > 0:
        metrics.profit_factor = PROFIT_FACTOR_CAP
    else:
        metrics.profit_factor = _ONE

    metrics.net_profit_loss = metrics.total_profit - metrics.total_loss
    metrics.net_profit_loss_percentage = policy.percentage(
        metrics.net_profit_loss, metrics.total_value
    )
    return metrics


def rank_winners(trades: Iterable["TradeDetails"]) -> list[str]:
    """Ids of winning trades, largest profit first."""
    winners = [t for t in trades if t.status is TradeStatus.WIN and t.metrics]
    winners.sort(key=lambda t: (-t.metrics.profit_loss, t.trade_id))
    return [t.trade_id for t in winners]


def rank_losers(trades: Iterable["TradeDetails"]) -> list[str]:
    """Ids of losing trades, largest loss first."""
    losers = [t for t in trades if t.status is TradeStatus.LOSS and t.metrics]
    losers.sort(key=lambda t: (t.metrics.profit_loss, t.trade_id))
    return [t.trade_id for t in losers]


class PortfolioRollUp:
    """Merge new trade ids into a portfolio and recompute its metrics.

    Roll-ups for the same portfolio are serialized with a per-portfolio
    ``asyncio.Lock``; different portfolios run independently.

    Parameters
    ----------
    repository:
        Data repository holding trades and portfolios.
    policy:
        Rounding policy for rates and ratios.
    """

    def __init__(self, repository: "Repository", policy: "DecimalPolicy") -> None:
        self._repo = repository
        self._policy = policy
        # entries disappear once no roll-up holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, portfolio_id: str) -> asyncio.Lock:
        lock = self._locks.get(portfolio_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[portfolio_id] = lock
        return lock

    async def roll_up(
        self,
        portfolio_id: str,
        trade_ids: Iterable[str],
        owner_id: str = "",
    ) -> Portfolio | None:
        """Union *trade_ids* with the stored set and persist fresh metrics.

        An empty batch is a no-op and returns the stored portfolio (or
        ``None`` when there is none). Re-submitting ids already in the set
        leaves the metrics unchanged.
        """
        new_ids = {trade_id for trade_id in trade_ids if trade_id}
        lock = self._lock_for(portfolio_id)
        async with lock:
            existing = await self._load_existing(portfolio_id)
            if not new_ids:
                logger.debug("Empty batch for portfolio %s, nothing to roll up", portfolio_id)
                return existing

            prior_ids = set(existing.trade_ids) if existing else set()
            if prior_ids:
                logger.info(
                    "Combining %d existing trades with %d new trades for portfolio %s",
                    len(prior_ids),
                    len(new_ids),
                    portfolio_id,
                )
            merged_ids = sorted(prior_ids | new_ids)
            logger.info(
                "After removing duplicates: %d unique trades for portfolio %s",
                len(merged_ids),
                portfolio_id,
            )

            trades = await self._repo.get_trades_by_ids(merged_ids)
            if len(trades) < len(merged_ids):
                logger.warning(
                    "Portfolio %s: %d of %d trade ids have no stored trade",
                    portfolio_id,
                    len(merged_ids) - len(trades),
                    len(merged_ids),
                )

            metrics = compute_portfolio_metrics(trades, len(merged_ids), self._policy)
            now = datetime.now(timezone.utc)

            if existing is None:
                logger.info("Creating new portfolio with ID: %s", portfolio_id)
                portfolio = Portfolio(
                    portfolio_id=portfolio_id,
                    name=portfolio_id,
                    description="Auto-generated portfolio from trades",
                    owner_id=owner_id,
                    active=True,
                    created_at=now,
                )
            else:
                logger.info("Updating existing portfolio with ID: %s", portfolio_id)
                portfolio = existing
                if owner_id and not portfolio.owner_id:
                    portfolio.owner_id = owner_id

            portfolio.trade_ids = merged_ids
            portfolio.winning_trade_ids = rank_winners(trades)
            portfolio.losing_trade_ids = rank_losers(trades)
            portfolio.metrics = metrics
            portfolio.updated_at = now

            await self._repo.save_portfolio(portfolio)
            return portfolio

    async def _load_existing(self, portfolio_id: str) -> Portfolio | None:
        """Fetch the stored portfolio; a failed read counts as a new portfolio."""
        try:
            return await self._repo.get_portfolio(portfolio_id)
        except Exception:
            logger.exception(
                "Failed to load portfolio %s, treating it as new", portfolio_id
            )
            return None
