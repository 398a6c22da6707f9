"""Signal data models."""

from __future__ import annotations

from dataclasses import dataclass

from kalshi_paper.markets.models import Side


@dataclass
class Signal:
    """A ranked mispricing between a model estimate and a market price.

    Attributes:
        ticker: Kalshi market ticker
        side: YES if the model thinks yes is underpriced, else NO
        edge: probability - price (positive = underpriced YES)
        absolute_edge: |edge|
        score: absolute_edge * confidence, the ranking key
        price: market YES price at detection time
        probability: model's estimated P(yes)
        confidence: model confidence (0-1)
        source_name: model that produced the estimate
        category: market category
        title: market title
    """

    ticker: str
    side: Side
    edge: float
    absolute_edge: float
    score: float
    price: float
    probability: float
    confidence: float
    source_name: str
    category: str | None = None
    title: str = ""
