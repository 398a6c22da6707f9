"""Performance statistics over the paper trade ledger."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date as date_type
from datetime import datetime, timezone

from kalshi_paper.markets.store import MarketStore
from kalshi_paper.trading.ledger import TradeLedger
from kalshi_paper.trading.models import Resolution, Trade


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _win_rate(wins: int, losses: int) -> float:
    decided = wins + losses
    return round(wins / decided * 100, 2) if decided else 0.0


def performance_stats(trades: Iterable[Trade]) -> dict:
    """Summarise trade outcomes overall and per category.

    Win rate counts settled trades only (wins / (wins + losses)); sold
    trades contribute to P&L but not to the win rate.
    """
    trades = list(trades)
    wins = sum(1 for t in trades if t.state is Resolution.WIN)
    losses = sum(1 for t in trades if t.state is Resolution.LOSS)
    open_count = sum(1 for t in trades if t.state is Resolution.OPEN)
    total_pnl = sum(t.profit or 0.0 for t in trades if t.state.is_terminal)
    edges = [t.edge_at_entry for t in trades if t.edge_at_entry is not None]

    grouped: dict[str, list[Trade]] = defaultdict(list)
    for t in trades:
        if t.category is not None:
            grouped[t.category].append(t)

    by_category = {}
    for category, group in grouped.items():
        cat_wins = sum(1 for t in group if t.state is Resolution.WIN)
        cat_losses = sum(1 for t in group if t.state is Resolution.LOSS)
        cat_edges = [t.edge_at_entry for t in group if t.edge_at_entry is not None]
        by_category[category] = {
            "total": len(group),
            "wins": cat_wins,
            "losses": cat_losses,
            "pnl": round(sum(t.profit or 0.0 for t in group), 2),
            "win_rate": _win_rate(cat_wins, cat_losses),
            "avg_edge": round(_mean(cat_edges), 3),
        }

    return {
        "total_trades": len(trades),
        "open_trades": open_count,
        "resolved_trades": wins + losses,
        "wins": wins,
        "losses": losses,
        "win_rate": _win_rate(wins, losses),
        "total_pnl": round(total_pnl, 2),
        "avg_edge": round(_mean(edges), 3),
        "by_category": by_category,
    }


def find_best_category(by_category: dict[str, dict]) -> str | None:
    """Category with the highest P&L, or None when there are none."""
    best = None
    best_pnl = float("-inf")
    for name, data in by_category.items():
        if data["pnl"] > best_pnl:
            best_pnl = data["pnl"]
            best = name
    return best


def _on_date(ts: datetime | None, day: date_type) -> bool:
    return ts is not None and ts.astimezone(timezone.utc).date() == day


async def get_performance_stats(ledger: TradeLedger) -> dict:
    return performance_stats(await ledger.get_all_trades(limit=None))


async def update_daily_stats(
    ledger: TradeLedger,
    store: MarketStore,
    day: date_type | None = None,
    signals_generated: int = 0,
) -> dict:
    """Recompute and upsert the daily stats row for ``day`` (UTC, default today)."""
    if day is None:
        day = datetime.now(timezone.utc).date()

    trades = await ledger.get_all_trades(limit=None)
    stats = performance_stats(trades)

    row = {
        "date": day.isoformat(),
        "markets_tracked": await store.count_active_markets(),
        "signals_generated": signals_generated,
        "trades_opened": sum(1 for t in trades if _on_date(t.opened_at, day)),
        "trades_resolved": sum(
            1 for t in trades
            if t.state in (Resolution.WIN, Resolution.LOSS) and _on_date(t.closed_at, day)
        ),
        "daily_pnl": round(
            sum(t.profit or 0.0 for t in trades
                if t.state.is_terminal and _on_date(t.closed_at, day)),
            2,
        ),
        "cumulative_pnl": stats["total_pnl"],
        "win_rate": stats["win_rate"],
        "avg_edge": stats["avg_edge"],
        "best_category": find_best_category(stats["by_category"]),
    }
    await ledger.save_daily_stats(row)
    return row
