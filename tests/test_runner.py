"""Tests for the model runner and the base-rate model."""

from __future__ import annotations

import pytest

from kalshi_paper.common.cache import TTLCache
from kalshi_paper.forecasting.base import ForecastModel, ProbabilityEstimate, validate_estimate
from kalshi_paper.forecasting.base_rate import BaseRateModel, compute_base_rates
from kalshi_paper.forecasting.runner import ModelRunner
from kalshi_paper.markets.models import Market, MarketStatus, Side


class FixedModel(ForecastModel):
    """Returns the same probability for every market."""

    def __init__(self, name="fixed", probability=0.6, confidence=0.8, categories=()):
        self.name = name
        self.categories = categories
        self.probability = probability
        self.confidence = confidence
        self.calls: list[str] = []

    async def estimate(self, market):
        self.calls.append(market.ticker)
        return ProbabilityEstimate(
            ticker=market.ticker, probability=self.probability, confidence=self.confidence,
        )


class BrokenModel(ForecastModel):
    name = "broken"

    async def estimate(self, market):
        raise ValueError("no data")


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


def _market(ticker, category="weather", status=MarketStatus.ACTIVE, series=None, result=None):
    return Market(ticker=ticker, category=category, status=status, price=0.5,
                  series_ticker=series, result=result)


class TestValidateEstimate:
    def test_valid(self):
        assert validate_estimate(ProbabilityEstimate(ticker="A", probability=0.5, confidence=0.5))

    @pytest.mark.parametrize("prob,conf", [(1.2, 0.5), (-0.1, 0.5), (0.5, 1.5)])
    def test_out_of_range(self, prob, conf):
        assert not validate_estimate(ProbabilityEstimate(ticker="A", probability=prob, confidence=conf))

    def test_none_and_empty_ticker(self):
        assert not validate_estimate(None)
        assert not validate_estimate(ProbabilityEstimate(ticker="", probability=0.5, confidence=0.5))


class TestModelRunner:
    def test_register_rejects_duplicates(self, store):
        runner = ModelRunner(store)
        runner.register(FixedModel())
        with pytest.raises(ValueError):
            runner.register(FixedModel())

    def test_register_rejects_nameless(self, store):
        with pytest.raises(ValueError):
            ModelRunner(store).register(FixedModel(name=""))

    @pytest.mark.asyncio
    async def test_run_stores_estimates_for_active_markets(self, store):
        await store.upsert_markets([
            _market("A"), _market("B"), _market("C", status=MarketStatus.CLOSED),
        ])
        model = FixedModel()
        runner = ModelRunner(store)
        runner.register(model)

        summary = await runner.run()

        assert summary.estimates == 2
        assert summary.errors == 0
        assert sorted(model.calls) == ["A", "B"]
        stored = await store.get_estimates()
        assert {e.source_name for e in stored} == {"fixed"}
        assert {e.ticker for e in stored} == {"A", "B"}

    @pytest.mark.asyncio
    async def test_category_filter(self, store):
        await store.upsert_markets([_market("A"), _market("B", category="economics")])
        model = FixedModel(categories=("economics",))
        runner = ModelRunner(store)
        runner.register(model)

        await runner.run()

        assert model.calls == ["B"]

    @pytest.mark.asyncio
    async def test_model_errors_are_contained(self, store):
        await store.upsert_markets([_market("A")])
        runner = ModelRunner(store)
        runner.register(BrokenModel())
        runner.register(FixedModel())

        summary = await runner.run()

        assert summary.errors == 1
        assert summary.estimates == 1

    @pytest.mark.asyncio
    async def test_invalid_estimates_discarded(self, store):
        await store.upsert_markets([_market("A")])
        runner = ModelRunner(store)
        runner.register(FixedModel(probability=1.5))

        summary = await runner.run()

        assert summary.estimates == 0
        assert await store.get_estimates() == []


class TestComputeBaseRates:
    def test_min_samples(self):
        rates = compute_base_rates(
            {"S1": [Side.YES] * 3 + [Side.NO] * 7, "S2": [Side.YES] * 5}, min_samples=10,
        )
        assert set(rates) == {"S1"}
        assert rates["S1"].yes_rate == 0.3
        assert rates["S1"].total_resolved == 10


class TestBaseRateModel:
    async def _seed(self, store, yes, no, series="KXHIGHNY"):
        settled = [
            _market(f"{series}-{i}", status=MarketStatus.SETTLED, series=series,
                    result=Side.YES if i < yes else Side.NO)
            for i in range(yes + no)
        ]
        await store.upsert_markets(settled)

    @pytest.mark.asyncio
    async def test_estimate_from_series_history(self, store):
        await self._seed(store, yes=12, no=8)
        model = BaseRateModel(store, TTLCache(300), min_samples=10)

        est = await model.estimate(_market("KXHIGHNY-NEW", series="KXHIGHNY"))

        assert est.probability == 0.6
        assert est.confidence == 0.4
        assert est.data_sources == ["kalshi:KXHIGHNY"]
        assert "20 resolved markets" in est.reasoning

    @pytest.mark.asyncio
    async def test_confidence_capped(self, store):
        await self._seed(store, yes=60, no=60)
        model = BaseRateModel(store, TTLCache(300))

        est = await model.estimate(_market("KXHIGHNY-NEW", series="KXHIGHNY"))

        assert est.confidence == 0.85

    @pytest.mark.asyncio
    async def test_abstains_without_history(self, store):
        await self._seed(store, yes=2, no=2)
        model = BaseRateModel(store, TTLCache(300))

        assert await model.estimate(_market("X", series="KXHIGHNY")) is None
        assert await model.estimate(_market("Y", series=None)) is None

    @pytest.mark.asyncio
    async def test_rates_cached_until_expiry(self, store):
        clock = FakeClock()
        await self._seed(store, yes=10, no=10)
        model = BaseRateModel(store, TTLCache(60, clock=clock))
        market = _market("KXHIGHNY-NEW", series="KXHIGHNY")

        assert (await model.estimate(market)).probability == 0.5

        await self._seed(store, yes=20, no=0, series="KXHIGHNY")
        assert (await model.estimate(market)).probability == 0.5

        clock.t = 61
        assert (await model.estimate(market)).probability == 1.0
