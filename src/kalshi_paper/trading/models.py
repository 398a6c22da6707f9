"""Paper trade, sizing and bankroll data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from kalshi_paper.markets.models import Side


class Resolution(Enum):
    """Trade state. OPEN is initial; the other three are terminal."""

    OPEN = "open"
    WIN = "win"
    LOSS = "loss"
    SOLD = "sold"

    @property
    def is_terminal(self) -> bool:
        return self is not Resolution.OPEN


@dataclass
class SizingPolicy:
    """Bankroll and Kelly parameters used to size a new position."""

    bankroll: float
    kelly_multiplier: float = 0.25
    max_position_pct: float = 5.0


@dataclass
class PositionSize:
    """Result of Kelly sizing.

    A zero ``contracts`` value means no trade; the Kelly figures are kept
    for diagnostics either way.
    """

    contracts: int
    cost_basis: float
    kelly_full: float
    kelly_adjusted: float
    fraction: float
    side: Side | None = None
    entry_price: float | None = None


@dataclass
class Trade:
    """A simulated position in the paper trade ledger."""

    id: int
    ticker: str
    side: Side
    entry_price: float
    contracts: int
    cost_basis: float
    state: Resolution
    opened_at: datetime
    edge_at_entry: float | None = None
    category: str | None = None
    exit_price: float | None = None
    revenue: float | None = None
    profit: float | None = None
    profit_percent: float | None = None
    closed_at: datetime | None = None


@dataclass
class OpenedTrade:
    trade_id: int
    ticker: str
    side: Side
    contracts: int
    cost_basis: float
    entry_price: float


@dataclass
class ClosedTrade:
    trade_id: int
    profit: float
    profit_percent: float


@dataclass
class ResolutionSummary:
    resolved: int = 0
    wins: int = 0
    losses: int = 0
    total_profit: float = 0.0


@dataclass
class BatchResult:
    opened: int = 0
    skipped: int = 0


@dataclass(frozen=True)
class Bankroll:
    """Derived bankroll snapshot, rounded to cents.

    ``available + invested == starting bankroll + realized_pnl``.
    """

    available: float
    invested: float
    realized_pnl: float
    total_value: float
