"""CLI interface for the trade book."""

from __future__ import annotations

import asyncio
import logging
from datetime import timezone, tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo

import typer
from rich.console import Console

app = typer.Typer(
    name="tradebook",
    help="Trade book — rebuild round-trip trades from broker executions and roll up portfolios.",
    add_completion=False,
)
console = Console()


def _configure_logging(settings, level: str | None = None) -> None:
    """Set up root logger; an explicit *level* overrides the profile's."""
    level = level or settings.logging.level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=settings.logging.format,
    )


def _resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


async def _run_ingest(
    settings,
    csv_path: str,
    portfolio_id: str,
    owner: str,
    export: str | None,
) -> int:
    """Load, reconstruct and persist one CSV batch. Returns the error count."""
    from tradebook.core.engine import IngestionEngine
    from tradebook.ingest.loader import load_executions_csv
    from tradebook.report.reporter import TradeReporter

    executions, load_errors = load_executions_csv(
        csv_path, portfolio_id, default_tz=_resolve_timezone(settings.ingest.timezone)
    )
    console.print(f"[dim]Loaded {len(executions)} executions from {csv_path}[/]")

    async with IngestionEngine(settings) as engine:
        result = await engine.ingest(executions, portfolio_id, owner)

    reporter = TradeReporter(console)
    reporter.print_trades(result.trades, title=f"Trades reconstructed for {portfolio_id}")
    if result.portfolio is not None:
        reporter.print_portfolio(result.portfolio)

    errors = load_errors + result.errors
    reporter.print_errors(errors)

    if export:
        reporter.export_csv(result.trades, export)
        console.print(f"[green]Trades exported to {export}[/]")

    return len(errors)


@app.command()
def ingest(
    csv_path: str = typer.Argument(..., help="CSV file of broker executions"),
    portfolio: str = typer.Option(..., "--portfolio", "-p", help="Portfolio ID"),
    owner: str = typer.Option("", help="Owner of a newly created portfolio"),
    export: Optional[str] = typer.Option(None, help="Export reconstructed trades to CSV path"),
    profile: str = typer.Option("default", help="Config profile (default/strict)"),
    log_level: Optional[str] = typer.Option(None, help="Log level (defaults to the profile's)"),
) -> None:
    """Reconstruct trades from executions and update the portfolio."""
    from tradebook.config.settings import load_settings

    settings = load_settings(profile)
    _configure_logging(settings, log_level)
    console.print(f"[bold green]Ingesting[/] {csv_path} into portfolio {portfolio}")

    error_count = asyncio.run(_run_ingest(settings, csv_path, portfolio, owner, export))
    if error_count:
        console.print(f"[yellow]{error_count} executions or cycles were rejected.[/]")


async def _run_portfolio(settings, portfolio_id: str) -> bool:
    from tradebook.core.engine import IngestionEngine
    from tradebook.report.reporter import TradeReporter

    async with IngestionEngine(settings) as engine:
        portfolio = await engine.portfolio(portfolio_id)

    if portfolio is None:
        return False
    TradeReporter(console).print_portfolio(portfolio)
    return True


@app.command()
def portfolio(
    portfolio_id: str = typer.Argument(..., help="Portfolio ID"),
    profile: str = typer.Option("default", help="Config profile"),
    log_level: Optional[str] = typer.Option(None, help="Log level (defaults to the profile's)"),
) -> None:
    """Show the stored metrics of a portfolio."""
    from tradebook.config.settings import load_settings

    settings = load_settings(profile)
    _configure_logging(settings, log_level)

    if not asyncio.run(_run_portfolio(settings, portfolio_id)):
        console.print(f"[red]Portfolio {portfolio_id} not found.[/]")
        raise typer.Exit(code=1)


async def _run_trades(settings, portfolio_id: str, symbol: str | None) -> int:
    from tradebook.core.engine import IngestionEngine
    from tradebook.report.reporter import TradeReporter

    async with IngestionEngine(settings) as engine:
        trades = await engine.trades(portfolio_id, symbol)

    TradeReporter(console).print_trades(trades, title=f"Trades in {portfolio_id}")
    return len(trades)


@app.command()
def trades(
    portfolio_id: str = typer.Argument(..., help="Portfolio ID"),
    symbol: Optional[str] = typer.Option(None, help="Only this symbol"),
    profile: str = typer.Option("default", help="Config profile"),
    log_level: Optional[str] = typer.Option(None, help="Log level (defaults to the profile's)"),
) -> None:
    """List the reconstructed trades of a portfolio."""
    from tradebook.config.settings import load_settings

    settings = load_settings(profile)
    _configure_logging(settings, log_level)
    asyncio.run(_run_trades(settings, portfolio_id, symbol))


async def _run_position(settings, portfolio_id: str, symbol: str) -> bool:
    from tradebook.core.engine import IngestionEngine
    from tradebook.report.reporter import TradeReporter

    async with IngestionEngine(settings) as engine:
        trade = await engine.current_position(portfolio_id, symbol)

    if trade is None:
        return False
    TradeReporter(console).print_trades([trade], title=f"Open {symbol} position")
    return True


@app.command()
def position(
    portfolio_id: str = typer.Argument(..., help="Portfolio ID"),
    symbol: str = typer.Argument(..., help="Instrument symbol"),
    profile: str = typer.Option("default", help="Config profile"),
    log_level: Optional[str] = typer.Option(None, help="Log level (defaults to the profile's)"),
) -> None:
    """Show the currently open position for a symbol."""
    from tradebook.config.settings import load_settings

    settings = load_settings(profile)
    _configure_logging(settings, log_level)

    if not asyncio.run(_run_position(settings, portfolio_id, symbol)):
        console.print(f"[yellow]No open {symbol} position in {portfolio_id}.[/]")


async def _run_annotate(
    settings,
    trade_id: str,
    notes: str | None,
    tags: list[str] | None,
    strategy: str | None,
) -> bool:
    from tradebook.core.engine import IngestionEngine

    async with IngestionEngine(settings) as engine:
        return await engine.annotate(trade_id, notes=notes, tags=tags, strategy=strategy)


@app.command()
def annotate(
    trade_id: str = typer.Argument(..., help="Trade ID"),
    notes: Optional[str] = typer.Option(None, help="Journal notes"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Tag (repeatable)"),
    strategy: Optional[str] = typer.Option(None, help="Strategy label"),
    profile: str = typer.Option("default", help="Config profile"),
    log_level: Optional[str] = typer.Option(None, help="Log level (defaults to the profile's)"),
) -> None:
    """Attach notes, tags or a strategy label to a stored trade."""
    from tradebook.config.settings import load_settings

    settings = load_settings(profile)
    _configure_logging(settings, log_level)

    if not asyncio.run(_run_annotate(settings, trade_id, notes, tag or None, strategy)):
        console.print(f"[red]Trade {trade_id} not found.[/]")
        raise typer.Exit(code=1)
    console.print(f"[green]Trade {trade_id} updated.[/]")


@app.command()
def migrate(
    profile: str = typer.Option("default", help="Config profile"),
    log_level: Optional[str] = typer.Option(None, help="Log level (defaults to the profile's)"),
) -> None:
    """Initialize or migrate the database schema."""
    from tradebook.config.settings import load_settings
    from tradebook.data.migrations import run_migrations

    settings = load_settings(profile)
    _configure_logging(settings, log_level)
    console.print(f"[bold]Running migrations[/] → {settings.database.path}")
    asyncio.run(run_migrations(settings.database.path))
    console.print("[green]Migrations complete.[/]")


if __name__ == "__main__":
    app()
