"""Forecast model interface and estimate types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from kalshi_paper.markets.models import Market


@dataclass
class ProbabilityEstimate:
    """Probability estimate produced by a forecast model for one market.

    Attributes:
        ticker: market the estimate applies to
        probability: estimated P(yes) (0-1)
        confidence: model confidence in its estimate (0-1)
        data_sources: which data sources contributed
        reasoning: human-readable explanation of the estimate
    """

    ticker: str
    probability: float
    confidence: float
    data_sources: list[str] = field(default_factory=list)
    reasoning: str = ""


@dataclass
class Estimate:
    """A stored estimate, tagged with the model that produced it."""

    ticker: str
    source_name: str
    probability: float
    confidence: float
    timestamp: datetime
    data_sources: list[str] = field(default_factory=list)
    reasoning: str = ""
    id: int | None = None


class ForecastModel(ABC):
    """Base class for probability models registered with the model runner.

    Subclasses set ``name`` and ``categories``; an empty ``categories``
    tuple means the model applies to every market category.
    """

    name: str = ""
    categories: tuple[str, ...] = ()

    def applies_to(self, market: Market) -> bool:
        return not self.categories or market.category in self.categories

    @abstractmethod
    async def estimate(self, market: Market) -> ProbabilityEstimate | None:
        """Produce a probability estimate for the market, or None to abstain."""


def validate_estimate(estimate: ProbabilityEstimate | None) -> bool:
    """Check an estimate is well-formed before it is stored."""
    if estimate is None:
        return False
    if not isinstance(estimate.ticker, str) or not estimate.ticker:
        return False
    if not 0.0 <= estimate.probability <= 1.0:
        return False
    if not 0.0 <= estimate.confidence <= 1.0:
        return False
    return isinstance(estimate.data_sources, list) and isinstance(estimate.reasoning, str)
