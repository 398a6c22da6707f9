"""Typer CLI: kalshi-paper run, signals, trades, bankroll, resolve, close, stats."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="kalshi-paper",
    help="Paper trading simulator for Kalshi prediction markets",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def run(
    ingest: Optional[bool] = typer.Option(
        None, "--ingest/--no-ingest",
        help="Fetch markets from Kalshi before running models (default: INGEST_ENABLED)",
    ),
) -> None:
    """Run one paper trading cycle: ingest, forecast, resolve, detect, trade."""
    from kalshi_paper.signals.formatters import format_bankroll, format_signal_table

    async def _run() -> None:
        from kalshi_paper.pipeline import run_cycle

        report = await run_cycle(ingest=ingest)
        format_signal_table(report.signals, console)
        if report.bankroll is not None:
            format_bankroll(report.bankroll, console)

    asyncio.run(_run())


@app.command()
def signals(
    output: str = typer.Option(
        "table", "--output", "-o",
        help="Output format: table, json, csv",
    ),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum signals to show"),
) -> None:
    """Show current mispricing signals without trading."""
    from kalshi_paper.signals.formatters import format_csv, format_json, format_signal_table

    async def _run() -> None:
        from kalshi_paper.config import get_settings
        from kalshi_paper.markets.store import MarketStore
        from kalshi_paper.signals.detector import detect_from_store, get_top_signals

        settings = get_settings()
        found = get_top_signals(
            await detect_from_store(MarketStore(settings.db_path), settings), limit,
        )

        if output == "json":
            console.print(format_json(found))
        elif output == "csv":
            console.print(format_csv(found))
        else:
            format_signal_table(found, console)

    asyncio.run(_run())


@app.command()
def trades(
    open_only: bool = typer.Option(False, "--open", help="Only show open positions"),
    limit: int = typer.Option(100, "--limit", "-n", help="Maximum trades to show"),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
) -> None:
    """List paper trades, newest first."""
    from kalshi_paper.signals.formatters import format_trade_table, format_trades_json

    async def _run() -> None:
        from kalshi_paper.trading.ledger import TradeLedger

        ledger = TradeLedger()
        if open_only:
            rows = await ledger.get_open_trades()
        else:
            rows = await ledger.get_all_trades(limit=limit)

        if output == "json":
            console.print(format_trades_json(rows))
        else:
            format_trade_table(rows, console)

    asyncio.run(_run())


@app.command()
def bankroll() -> None:
    """Show available, invested and realized bankroll."""
    from kalshi_paper.signals.formatters import format_bankroll

    async def _run() -> None:
        from kalshi_paper.config import get_settings
        from kalshi_paper.trading.ledger import TradeLedger

        settings = get_settings()
        result = await TradeLedger(settings.db_path).calculate_bankroll(settings.paper_bankroll)
        format_bankroll(result, console)

    asyncio.run(_run())


@app.command()
def resolve() -> None:
    """Resolve open trades whose markets have settled."""

    async def _run() -> None:
        from kalshi_paper.trading.ledger import TradeLedger

        summary = await TradeLedger().resolve_settled_trades()
        if not summary.resolved:
            console.print("[dim]No open trades on settled markets.[/dim]")
            return
        console.print(
            f"Resolved {summary.resolved} trade(s): "
            f"[green]{summary.wins} win(s)[/green], [red]{summary.losses} loss(es)[/red], "
            f"P&L ${summary.total_profit:+.2f}"
        )

    asyncio.run(_run())


@app.command()
def close(
    trade_id: int = typer.Argument(help="ID of the open trade to sell"),
    exit_price: float = typer.Argument(help="Exit price per contract (0-1)"),
) -> None:
    """Sell an open paper trade at a given price."""
    if not 0.0 <= exit_price <= 1.0:
        console.print(f"[red]Exit price must be between 0 and 1, got {exit_price}[/red]")
        raise typer.Exit(code=2)

    async def _run() -> None:
        from kalshi_paper.trading.ledger import TradeLedger

        closed = await TradeLedger().close_trade(trade_id, exit_price)
        if closed is None:
            console.print(f"[yellow]Trade {trade_id} is not open.[/yellow]")
            raise typer.Exit(code=1)
        console.print(
            f"Sold trade {trade_id}: P&L ${closed.profit:+.2f} ({closed.profit_percent:+.2f}%)"
        )

    asyncio.run(_run())


@app.command()
def stats() -> None:
    """Show paper trading performance statistics."""

    async def _run() -> None:
        from kalshi_paper.trading.ledger import TradeLedger
        from kalshi_paper.trading.stats import get_performance_stats

        summary = await get_performance_stats(TradeLedger())

        console.print("[bold]Paper Trading Performance[/bold]")
        console.print(f"  Total trades:    {summary['total_trades']}")
        console.print(f"  Open trades:     {summary['open_trades']}")
        console.print(f"  Resolved trades: {summary['resolved_trades']}")
        if summary["resolved_trades"]:
            console.print(f"  Win rate:        {summary['win_rate']:.1f}%")
        else:
            console.print("  Win rate:        N/A (no resolved trades)")
        console.print(f"  Realized P&L:    ${summary['total_pnl']:+.2f}")
        console.print(f"  Avg edge:        {summary['avg_edge']:+.1%}")

        if summary["by_category"]:
            table = Table(title="By Category")
            table.add_column("Category")
            table.add_column("Trades", justify="right")
            table.add_column("W/L", justify="right")
            table.add_column("Win %", justify="right")
            table.add_column("P&L", justify="right")
            for name, cat in sorted(summary["by_category"].items()):
                table.add_row(
                    name,
                    str(cat["total"]),
                    f"{cat['wins']}/{cat['losses']}",
                    f"{cat['win_rate']:.1f}",
                    f"${cat['pnl']:+.2f}",
                )
            console.print(table)

    asyncio.run(_run())


if __name__ == "__main__":
    app()
