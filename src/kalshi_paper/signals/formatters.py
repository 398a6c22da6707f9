"""Output formatters for signals, trades and bankroll: Rich table, JSON, CSV, Telegram."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from kalshi_paper.markets.models import Side
from kalshi_paper.signals.models import Signal
from kalshi_paper.trading.models import Bankroll, Resolution, Trade

if TYPE_CHECKING:
    from kalshi_paper.pipeline import CycleReport

_SIGNAL_FIELDS = [
    "ticker", "side", "edge", "absolute_edge", "score", "price",
    "probability", "confidence", "source_name", "category", "title",
]

_STATE_COLORS = {
    Resolution.OPEN: "cyan",
    Resolution.WIN: "green",
    Resolution.LOSS: "red",
    Resolution.SOLD: "yellow",
}


def signal_to_dict(signal: Signal) -> dict:
    d = {name: getattr(signal, name) for name in _SIGNAL_FIELDS}
    d["side"] = signal.side.value
    return d


def trade_to_dict(trade: Trade) -> dict:
    return {
        "id": trade.id,
        "ticker": trade.ticker,
        "side": trade.side.value,
        "entry_price": trade.entry_price,
        "exit_price": trade.exit_price,
        "contracts": trade.contracts,
        "cost_basis": trade.cost_basis,
        "revenue": trade.revenue,
        "profit": trade.profit,
        "profit_percent": trade.profit_percent,
        "edge_at_entry": trade.edge_at_entry,
        "category": trade.category,
        "state": trade.state.value,
        "opened_at": trade.opened_at.isoformat() if trade.opened_at else None,
        "closed_at": trade.closed_at.isoformat() if trade.closed_at else None,
    }


def format_signal_table(signals: list[Signal], console: Console | None = None) -> None:
    """Print signals as a Rich table in score order."""
    if console is None:
        console = Console()

    if not signals:
        console.print("[yellow]No signals (no markets with sufficient edge).[/yellow]")
        return

    table = Table(
        title="Mispricing Signals",
        caption=f"Generated at {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}",
        show_lines=True,
    )
    table.add_column("Side", style="bold", width=4)
    table.add_column("Edge", justify="right", width=7)
    table.add_column("Score", justify="right", width=6)
    table.add_column("Model P", justify="right", width=7)
    table.add_column("Price", justify="right", width=6)
    table.add_column("Conf", justify="right", width=5)
    table.add_column("Model", width=12)
    table.add_column("Ticker", width=24)
    table.add_column("Title", width=40, no_wrap=False)

    for s in signals:
        color = "green" if s.side is Side.YES else "red"
        table.add_row(
            f"[{color}]{s.side.value.upper()}[/{color}]",
            f"[{color}]{s.edge:+.1%}[/{color}]",
            f"{s.score:.3f}",
            f"{s.probability:.1%}",
            f"{s.price:.2f}",
            f"{s.confidence:.0%}",
            s.source_name,
            s.ticker,
            s.title[:80],
        )

    console.print(table)
    console.print(f"\n[dim]{len(signals)} signal(s) total[/dim]")


def format_trade_table(trades: list[Trade], console: Console | None = None) -> None:
    if console is None:
        console = Console()

    if not trades:
        console.print("[yellow]No paper trades.[/yellow]")
        return

    table = Table(title="Paper Trades", show_lines=False)
    table.add_column("ID", justify="right", width=5)
    table.add_column("Ticker", width=24)
    table.add_column("Side", width=4)
    table.add_column("Qty", justify="right", width=5)
    table.add_column("Entry", justify="right", width=6)
    table.add_column("Cost", justify="right", width=9)
    table.add_column("Exit", justify="right", width=6)
    table.add_column("P&L", justify="right", width=9)
    table.add_column("State", width=6)

    for t in trades:
        color = _STATE_COLORS[t.state]
        pnl = "" if t.profit is None else f"{t.profit:+.2f}"
        table.add_row(
            str(t.id),
            t.ticker,
            t.side.value.upper(),
            str(t.contracts),
            f"{t.entry_price:.2f}",
            f"${t.cost_basis:,.2f}",
            "" if t.exit_price is None else f"{t.exit_price:.2f}",
            pnl,
            f"[{color}]{t.state.value}[/{color}]",
        )

    console.print(table)


def format_bankroll(bankroll: Bankroll, console: Console | None = None) -> None:
    if console is None:
        console = Console()
    pnl_color = "green" if bankroll.realized_pnl >= 0 else "red"
    console.print("[bold]Paper Bankroll[/bold]")
    console.print(f"  Available:    ${bankroll.available:,.2f}")
    console.print(f"  Invested:     ${bankroll.invested:,.2f}")
    console.print(f"  Realized P&L: [{pnl_color}]${bankroll.realized_pnl:+,.2f}[/{pnl_color}]")
    console.print(f"  Total value:  ${bankroll.total_value:,.2f}")


def format_json(signals: list[Signal]) -> str:
    """Format signals as a JSON string."""
    return json.dumps([signal_to_dict(s) for s in signals], indent=2)


def format_trades_json(trades: list[Trade]) -> str:
    return json.dumps([trade_to_dict(t) for t in trades], indent=2)


def format_csv(signals: list[Signal]) -> str:
    """Format signals as CSV."""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=_SIGNAL_FIELDS)
    writer.writeheader()
    for s in signals:
        writer.writerow(signal_to_dict(s))
    return output.getvalue()


def format_telegram_cycle(report: CycleReport) -> str:
    """Format a cycle summary for Telegram (Markdown)."""
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    lines = [
        "\U0001f4ca *Paper Trading Cycle*",
        "",
        f"\U0001f550 {now}",
        f"\U0001f4c8 {len(report.signals)} signal(s), "
        f"{report.batch.opened} opened, {report.batch.skipped} skipped",
    ]

    res = report.resolution
    if res.resolved:
        lines.append(
            f"✅ Resolved {res.resolved}: {res.wins}W / {res.losses}L, "
            f"P&L ${res.total_profit:+.2f}"
        )

    if report.bankroll is not None:
        b = report.bankroll
        lines.append("")
        lines.append(
            f"\U0001f4b0 Available ${b.available:,.2f} | Invested ${b.invested:,.2f} | "
            f"Realized ${b.realized_pnl:+,.2f}"
        )

    if report.signals:
        lines.append("")
        lines.append("| Side | Edge | Score | Ticker |")
        for s in report.signals[:5]:
            lines.append(
                f"| {s.side.value.upper()} | {s.edge:+.1%} | {s.score:.3f} | {s.ticker} |"
            )

    return "\n".join(lines)
