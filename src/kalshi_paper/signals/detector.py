"""Mispricing detection: compares model estimates to market prices."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from kalshi_paper.config import Settings
from kalshi_paper.forecasting.base import Estimate
from kalshi_paper.markets.models import Market, MarketStatus, Side
from kalshi_paper.markets.store import MarketStore
from kalshi_paper.signals.models import Signal

logger = logging.getLogger(__name__)


def latest_per_source(estimates: Iterable[Estimate]) -> list[Estimate]:
    """Keep the most recent estimate for each (ticker, source) pair.

    ``estimates`` must be in insertion order; when two estimates share a
    timestamp the later one wins.
    """
    latest: dict[tuple[str, str], Estimate] = {}
    for est in estimates:
        key = (est.ticker, est.source_name)
        current = latest.get(key)
        if current is None or est.timestamp >= current.timestamp:
            latest[key] = est
    return list(latest.values())


def detect_mispricings(
    markets: Iterable[Market],
    estimates: Iterable[Estimate],
    *,
    min_edge_pct: float = 5.0,
    min_confidence: float = 0.6,
    band_min: float = 0.30,
    band_max: float = 0.70,
) -> list[Signal]:
    """Detect mispricings for active markets inside the coin-flip band.

    Args:
        markets: Candidate markets; only active, priced markets with
            ``band_min <= price <= band_max`` are considered.
        estimates: Stored estimates in insertion order.
        min_edge_pct: Minimum |edge| in percentage points.
        min_confidence: Minimum model confidence.
        band_min: Lower bound of the coin-flip band (inclusive).
        band_max: Upper bound of the coin-flip band (inclusive).

    Returns:
        Signals sorted by score, best first.
    """
    eligible = {
        m.ticker: m
        for m in markets
        if m.status is MarketStatus.ACTIVE
        and m.price is not None
        and band_min <= m.price <= band_max
    }

    by_ticker: dict[str, list[Estimate]] = {}
    for est in latest_per_source(estimates):
        if est.ticker in eligible:
            by_ticker.setdefault(est.ticker, []).append(est)

    signals: list[Signal] = []
    for ticker, market in eligible.items():
        for est in by_ticker.get(ticker, []):
            if est.confidence < min_confidence:
                continue

            edge = est.probability - market.price
            abs_edge = abs(edge)
            # Threshold is on the percentage scale
            if abs_edge * 100 < min_edge_pct:
                continue

            signals.append(Signal(
                ticker=ticker,
                side=Side.YES if edge > 0 else Side.NO,
                edge=round(edge, 3),
                absolute_edge=round(abs_edge, 3),
                score=round(abs_edge * est.confidence, 3),
                price=market.price,
                probability=est.probability,
                confidence=est.confidence,
                source_name=est.source_name,
                category=market.category,
                title=market.title,
            ))

    signals.sort(key=lambda s: s.score, reverse=True)
    return signals


def get_top_signals(signals: list[Signal], limit: int = 10) -> list[Signal]:
    return signals[:limit]


async def detect_from_store(store: MarketStore, settings: Settings) -> list[Signal]:
    """Load current markets and estimates and detect mispricings."""
    markets = await store.get_markets(MarketStatus.ACTIVE)
    estimates = await store.get_estimates()
    signals = detect_mispricings(
        markets,
        estimates,
        min_edge_pct=settings.min_edge_pct,
        min_confidence=settings.min_confidence,
        band_min=settings.coin_flip_min,
        band_max=settings.coin_flip_max,
    )
    logger.info(
        "Detected %d signal(s) from %d active market(s) and %d estimate(s)",
        len(signals), len(markets), len(estimates),
    )
    return signals
