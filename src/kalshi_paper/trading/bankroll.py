"""Bankroll accounting: a read model over the trade ledger."""

from __future__ import annotations

from collections.abc import Iterable

from kalshi_paper.trading.models import Bankroll, Resolution, Trade


def compute_bankroll(
    starting_bankroll: float, open_cost: float, realized_pnl: float,
) -> Bankroll:
    """Derive the bankroll from committed capital and realized P&L.

    available = starting - open cost + realized P&L; capital in open
    positions is reported as ``invested``. The components are rounded to
    cents before the totals are derived, so ``available + invested`` and
    ``total_value`` agree with ``starting + realized_pnl`` to the cent.
    """
    invested = round(open_cost, 2)
    realized = round(realized_pnl, 2)
    return Bankroll(
        available=round(starting_bankroll - invested + realized, 2),
        invested=invested,
        realized_pnl=realized,
        total_value=round(starting_bankroll + realized, 2),
    )


def bankroll_from_trades(trades: Iterable[Trade], starting_bankroll: float) -> Bankroll:
    """Same read model over in-memory trades."""
    open_cost = 0.0
    realized_pnl = 0.0
    for trade in trades:
        if trade.state is Resolution.OPEN:
            open_cost += trade.cost_basis
        elif trade.profit is not None:
            realized_pnl += trade.profit
    return compute_bankroll(starting_bankroll, open_cost, realized_pnl)
