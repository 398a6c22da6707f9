"""Historical base-rate model for recurring market series."""

from __future__ import annotations

from dataclasses import dataclass

from kalshi_paper.common.cache import TTLCache
from kalshi_paper.forecasting.base import ForecastModel, ProbabilityEstimate
from kalshi_paper.markets.models import Market, Side
from kalshi_paper.markets.store import MarketStore

_RATES_KEY = "series_rates"


@dataclass(frozen=True)
class BaseRate:
    yes_rate: float
    total_resolved: int


def compute_base_rates(
    results_by_series: dict[str, list[Side]], min_samples: int = 10,
) -> dict[str, BaseRate]:
    """Yes-rate per series, for series with at least ``min_samples`` settled markets."""
    rates: dict[str, BaseRate] = {}
    for series, results in results_by_series.items():
        if len(results) < min_samples:
            continue
        yes_count = sum(1 for r in results if r is Side.YES)
        rates[series] = BaseRate(
            yes_rate=round(yes_count / len(results), 3),
            total_resolved=len(results),
        )
    return rates


class BaseRateModel(ForecastModel):
    """Estimate P(yes) from how often earlier markets in the same series settled yes.

    Applies to every category. Series rates are recomputed at most once per
    cache lifetime.
    """

    name = "base_rate"
    categories = ()

    def __init__(self, store: MarketStore, cache: TTLCache, min_samples: int = 10) -> None:
        self._store = store
        self._cache = cache
        self._min_samples = min_samples

    async def _rates(self) -> dict[str, BaseRate]:
        rates = self._cache.get(_RATES_KEY)
        if rates is None:
            results = await self._store.get_settled_results_by_series()
            rates = compute_base_rates(results, self._min_samples)
            self._cache.set(_RATES_KEY, rates)
        return rates

    async def estimate(self, market: Market) -> ProbabilityEstimate | None:
        if not market.series_ticker:
            return None

        rate = (await self._rates()).get(market.series_ticker)
        if rate is None:
            return None

        # Confidence grows with sample size
        confidence = min(0.85, 0.3 + rate.total_resolved * 0.005)

        return ProbabilityEstimate(
            ticker=market.ticker,
            probability=rate.yes_rate,
            confidence=round(confidence, 2),
            data_sources=[f"kalshi:{market.series_ticker}"],
            reasoning=(
                f"Historical base rate: {rate.yes_rate:.1%} yes from "
                f"{rate.total_resolved} resolved markets in series {market.series_ticker}"
            ),
        )
