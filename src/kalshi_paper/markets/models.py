"""Market data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class MarketStatus(Enum):
    """Trading status of a market."""

    ACTIVE = "active"
    CLOSED = "closed"
    SETTLED = "settled"


class Side(Enum):
    """Contract side, also used for a settled market's result."""

    YES = "yes"
    NO = "no"


@dataclass
class Market:
    """A Kalshi binary market as stored by ingestion.

    Read-only to the trading engine: ``status`` drives eligibility for new
    positions and ``result`` drives resolution of open ones.
    """

    ticker: str
    title: str = ""
    category: str | None = None
    status: MarketStatus = MarketStatus.ACTIVE
    price: float | None = None  # last YES price (0-1)
    result: Side | None = None
    event_ticker: str | None = None
    series_ticker: str | None = None
    close_time: datetime | None = None

    @property
    def is_tradeable(self) -> bool:
        return self.status is MarketStatus.ACTIVE and self.price is not None
