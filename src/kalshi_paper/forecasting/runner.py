"""Runs every registered forecast model against active markets."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from kalshi_paper.forecasting.base import ForecastModel, validate_estimate
from kalshi_paper.markets.models import MarketStatus
from kalshi_paper.markets.store import MarketStore

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    estimates: int = 0
    errors: int = 0


class ModelRunner:
    """Explicit registry of forecast models.

    Models are registered one by one; ``run`` dispatches each active market
    to every model whose categories cover it and stores valid estimates
    under the model's name.
    """

    def __init__(self, store: MarketStore) -> None:
        self._store = store
        self._models: list[ForecastModel] = []

    def register(self, model: ForecastModel) -> None:
        if not model.name:
            raise ValueError(f"{type(model).__name__} has no name")
        if any(m.name == model.name for m in self._models):
            raise ValueError(f"A model named {model.name!r} is already registered")
        self._models.append(model)

    @property
    def models(self) -> list[ForecastModel]:
        return list(self._models)

    async def run(self) -> RunSummary:
        summary = RunSummary()
        markets = await self._store.get_markets(MarketStatus.ACTIVE)

        for market in markets:
            for model in self._models:
                if not model.applies_to(market):
                    continue
                try:
                    estimate = await model.estimate(market)
                except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
                    summary.errors += 1
                    logger.warning(
                        "Model %s failed on %s: %s", model.name, market.ticker, exc,
                    )
                    continue

                if estimate is None:
                    continue
                if not validate_estimate(estimate):
                    logger.info(
                        "Discarding invalid estimate from %s for %s", model.name, market.ticker,
                    )
                    continue

                await self._store.store_estimate(model.name, estimate)
                summary.estimates += 1

        logger.info(
            "Model run: %d estimate(s), %d error(s) across %d market(s)",
            summary.estimates, summary.errors, len(markets),
        )
        return summary
