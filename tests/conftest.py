"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from kalshi_paper.forecasting.base import Estimate
from kalshi_paper.markets.models import Market, MarketStatus, Side
from kalshi_paper.markets.store import MarketStore
from kalshi_paper.signals.models import Signal
from kalshi_paper.trading.ledger import TradeLedger


@pytest.fixture
def db_path(tmp_path):
    """Temporary database file shared by the store and ledger fixtures."""
    return tmp_path / "paper.db"


@pytest.fixture
def store(db_path):
    return MarketStore(db_path)


@pytest.fixture
def ledger(db_path):
    return TradeLedger(db_path)


@pytest.fixture
def sample_market():
    """Active weather market priced at 40 cents."""
    return Market(
        ticker="KXHIGHNY-25JUL04-T90",
        title="Will NYC hit 90F on July 4?",
        category="weather",
        status=MarketStatus.ACTIVE,
        price=0.40,
        event_ticker="KXHIGHNY-25JUL04",
        series_ticker="KXHIGHNY",
    )


@pytest.fixture
def sample_estimate():
    """Weather model estimate of 55% for the sample market."""
    return Estimate(
        ticker="KXHIGHNY-25JUL04-T90",
        source_name="weather",
        probability=0.55,
        confidence=0.80,
        timestamp=datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc),
        data_sources=["NOAA Weather API"],
        reasoning="NOAA forecast for nyc: 7 periods",
    )


@pytest.fixture
def sample_signal():
    """YES signal: model 55% vs price 40%, confidence 0.8."""
    return Signal(
        ticker="KXHIGHNY-25JUL04-T90",
        side=Side.YES,
        edge=0.15,
        absolute_edge=0.15,
        score=0.12,
        price=0.40,
        probability=0.55,
        confidence=0.80,
        source_name="weather",
        category="weather",
        title="Will NYC hit 90F on July 4?",
    )
