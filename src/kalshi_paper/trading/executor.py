"""Batch execution of ranked signals against the paper trade ledger."""

from __future__ import annotations

import logging

from kalshi_paper.signals.models import Signal
from kalshi_paper.trading.ledger import TradeLedger
from kalshi_paper.trading.models import BatchResult, SizingPolicy

logger = logging.getLogger(__name__)


async def execute_paper_trades(
    ledger: TradeLedger,
    signals: list[Signal],
    *,
    starting_bankroll: float,
    kelly_multiplier: float = 0.25,
    max_position_pct: float = 5.0,
) -> BatchResult:
    """Open paper trades for signals in order, best first.

    Available bankroll is recomputed before every attempt, so each opened
    trade shrinks the capital the next signal is sized against. Once the
    available bankroll reaches zero the remaining signals are all counted
    as skipped and the batch stops. Must run sequentially.

    Returns:
        BatchResult with ``opened + skipped == len(signals)``.
    """
    result = BatchResult()

    for index, signal in enumerate(signals):
        bankroll = await ledger.calculate_bankroll(starting_bankroll)

        if bankroll.available <= 0:
            remaining = len(signals) - index
            result.skipped += remaining
            logger.info(
                "Bankroll exhausted (available $%.2f); skipping %d remaining signal(s)",
                bankroll.available, remaining,
            )
            break

        opened = await ledger.open_trade(
            signal,
            SizingPolicy(
                bankroll=bankroll.available,
                kelly_multiplier=kelly_multiplier,
                max_position_pct=max_position_pct,
            ),
        )
        if opened is None:
            result.skipped += 1
        else:
            result.opened += 1

    logger.info("Batch: opened %d, skipped %d", result.opened, result.skipped)
    return result
