"""Position sizing with fractional Kelly and a hard position cap.

Full Kelly for a binary contract bought at ``price`` that pays 1.0:

    b = (1 - price) / price      net odds
    f* = (p * b - q) / b         q = 1 - p

The full fraction is scaled by a Kelly multiplier (0.25 = quarter-Kelly)
because model estimates are noisy, then capped at ``max_position_pct``
of the bankroll.
"""

from __future__ import annotations

import math

from kalshi_paper.markets.models import Side
from kalshi_paper.signals.models import Signal
from kalshi_paper.trading.models import PositionSize


def kelly_fraction(prob: float, price: float) -> float:
    """Full Kelly fraction for buying a contract at ``price``.

    Returns 0 when either input is outside the open interval (0, 1).
    The result is negative when there is no edge; callers treat anything
    <= 0 as no trade.
    """
    if price <= 0 or price >= 1:
        return 0.0
    if prob <= 0 or prob >= 1:
        return 0.0

    b = (1.0 - price) / price
    return (prob * b - (1.0 - prob)) / b


def size_position(
    prob: float,
    price: float,
    bankroll: float,
    kelly_multiplier: float = 0.25,
    max_position_pct: float = 5.0,
) -> PositionSize:
    """Size a position in whole contracts.

    Args:
        prob: Model probability that the purchased side wins
        price: Cost per contract of that side (0-1)
        bankroll: Capital available for this trade
        kelly_multiplier: Fraction of full Kelly to bet
        max_position_pct: Cap on the bet as a percent of bankroll

    Returns:
        PositionSize; ``contracts == 0`` when Kelly finds no edge or the
        capped stake can't buy a single contract.
    """
    kelly_full = kelly_fraction(prob, price)

    if kelly_full <= 0:
        return PositionSize(
            contracts=0,
            cost_basis=0.0,
            kelly_full=round(kelly_full, 4),
            kelly_adjusted=0.0,
            fraction=0.0,
        )

    kelly_adjusted = kelly_full * kelly_multiplier
    fraction = min(kelly_adjusted, max_position_pct / 100.0)

    dollar_amount = bankroll * fraction
    contracts = math.floor(dollar_amount / price)

    if contracts <= 0:
        return PositionSize(
            contracts=0,
            cost_basis=0.0,
            kelly_full=round(kelly_full, 4),
            kelly_adjusted=round(kelly_adjusted, 4),
            fraction=round(fraction, 4),
        )

    return PositionSize(
        contracts=contracts,
        cost_basis=round(contracts * price, 2),
        kelly_full=round(kelly_full, 4),
        kelly_adjusted=round(kelly_adjusted, 4),
        fraction=round(fraction, 4),
    )


def size_from_signal(
    signal: Signal,
    bankroll: float,
    kelly_multiplier: float = 0.25,
    max_position_pct: float = 5.0,
) -> PositionSize:
    """Size a position for a signal, pricing the side the signal buys.

    Buying NO costs ``1 - yes_price`` and wins with probability
    ``1 - model_prob``.
    """
    if signal.side is Side.YES:
        entry_price = signal.price
        prob = signal.probability
    else:
        entry_price = 1.0 - signal.price
        prob = 1.0 - signal.probability

    # Strip float noise from the complement (1 - 0.6 -> 0.4)
    entry_price = round(entry_price, 4)

    sizing = size_position(prob, entry_price, bankroll, kelly_multiplier, max_position_pct)
    sizing.side = signal.side
    sizing.entry_price = entry_price
    return sizing
