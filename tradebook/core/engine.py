"""Ingestion engine — wires processing, persistence and portfolio roll-up."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from tradebook.core.decimal_policy import DecimalPolicy
from tradebook.core.metrics import TradeMetricsCalculator
from tradebook.core.portfolio import PortfolioRollUp
from tradebook.core.processor import TradeProcessor
from tradebook.data.database import Database
from tradebook.data.migrations import run_migrations
from tradebook.data.repository import Repository

if TYPE_CHECKING:
    from tradebook.config.settings import Settings
    from tradebook.core.errors import BatchError
    from tradebook.data.models import Execution, Portfolio, TradeDetails

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Everything produced by one ingestion batch."""

    trades: list["TradeDetails"] = field(default_factory=list)
    portfolio: "Portfolio | None" = None
    errors: list["BatchError"] = field(default_factory=list)


class IngestionEngine:
    """Orchestrates one batch of executions end to end.

    Data flow per batch::

        executions → processor → repository (trades) → roll-up → repository (portfolio)

    Parameters
    ----------
    settings:
        Full application settings.
    """

    def __init__(self, settings: "Settings") -> None:
        self._settings = settings
        self._policy = DecimalPolicy.from_settings(settings.decimal)
        self._processor = TradeProcessor(
            self._policy,
            TradeMetricsCalculator.from_settings(self._policy, settings.metrics),
        )

        # Components, initialized in start()
        self._db: Database | None = None
        self._repo: Repository | None = None
        self._rollup: PortfolioRollUp | None = None

    @property
    def processor(self) -> TradeProcessor:
        return self._processor

    @property
    def repository(self) -> Repository:
        if self._repo is None:
            raise RuntimeError("IngestionEngine not started. Call start() first.")
        return self._repo

    async def start(self) -> None:
        """Run migrations and open the database."""
        db_path = self._settings.database.path
        await run_migrations(db_path)
        self._db = Database(db_path, busy_timeout_ms=self._settings.database.busy_timeout_ms)
        await self._db.connect()
        self._repo = Repository(self._db)
        self._rollup = PortfolioRollUp(self._repo, self._policy)
        logger.info("Ingestion engine started")

    async def stop(self) -> None:
        """Close the database."""
        if self._db is not None:
            await self._db.disconnect()
            self._db = None
        self._repo = None
        self._rollup = None
        logger.info("Ingestion engine stopped")

    async def __aenter__(self) -> "IngestionEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    async def ingest(
        self,
        executions: Iterable["Execution"],
        portfolio_id: str,
        owner_id: str = "",
    ) -> IngestionResult:
        """Reconstruct, persist and roll up one batch of executions.

        Steps:
        1. Reconstruct trades (bad executions/cycles become errors)
        2. Persist each trade with its executions
        3. Merge the new trade ids into the portfolio and recompute metrics
        """
        repo = self.repository
        result = self._processor.process(executions, portfolio_id)

        await repo.save_trades(result.trades)
        portfolio = await self._rollup.roll_up(portfolio_id, result.trade_ids, owner_id)

        if result.errors:
            logger.warning(
                "Batch for portfolio %s finished with %d errors",
                portfolio_id,
                len(result.errors),
            )
        return IngestionResult(
            trades=result.trades,
            portfolio=portfolio,
            errors=result.errors,
        )

    async def portfolio(self, portfolio_id: str) -> "Portfolio | None":
        return await self.repository.get_portfolio(portfolio_id)

    async def trades(self, portfolio_id: str, symbol: str | None = None) -> list["TradeDetails"]:
        return await self.repository.get_trades_by_portfolio(portfolio_id, symbol)

    async def current_position(self, portfolio_id: str, symbol: str) -> "TradeDetails | None":
        """The open trade currently held for *symbol*, if any."""
        return await self.repository.get_open_trade(portfolio_id, symbol)

    async def annotate(
        self,
        trade_id: str,
        notes: str | None = None,
        tags: list[str] | None = None,
        strategy: str | None = None,
    ) -> bool:
        """Attach journal notes, tags or a strategy label to a stored trade."""
        updated = await self.repository.update_trade_annotations(
            trade_id, notes=notes, tags=tags, strategy=strategy
        )
        if not updated:
            logger.warning("Cannot annotate unknown trade %s", trade_id)
        return updated
