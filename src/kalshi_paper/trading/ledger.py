"""Paper trade ledger: opens, closes and resolves simulated positions.

The ledger is the single writer of the ``paper_trades`` table. Opening a
trade checks for an existing open position and inserts the new one inside
one ``BEGIN IMMEDIATE`` transaction; a partial unique index on open
tickers backs the same guarantee at the storage layer.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from kalshi_paper.common.db import connect, ensure_schema
from kalshi_paper.common.types import from_epoch_ms, to_epoch_ms, utc_now
from kalshi_paper.config import get_settings
from kalshi_paper.markets.models import Side
from kalshi_paper.signals.models import Signal
from kalshi_paper.trading.bankroll import compute_bankroll
from kalshi_paper.trading.models import (
    Bankroll,
    ClosedTrade,
    OpenedTrade,
    PositionSize,
    Resolution,
    ResolutionSummary,
    SizingPolicy,
    Trade,
)
from kalshi_paper.trading.sizer import size_from_signal

logger = logging.getLogger(__name__)

_TERMINAL = ("win", "loss", "sold")


def _row_to_trade(row: aiosqlite.Row) -> Trade:
    return Trade(
        id=row["id"],
        ticker=row["ticker"],
        side=Side(row["side"]),
        entry_price=row["entry_price"],
        contracts=row["contracts"],
        cost_basis=row["cost_basis"],
        state=Resolution(row["resolution"]),
        opened_at=from_epoch_ms(row["opened_at"]),
        edge_at_entry=row["model_edge"],
        category=row["category"],
        exit_price=row["exit_price"],
        revenue=row["revenue"],
        profit=row["profit"],
        profit_percent=row["profit_pct"],
        closed_at=from_epoch_ms(row["closed_at"]),
    )


def _settle(contracts: int, cost_basis: float, exit_price: float) -> tuple[float, float, float]:
    """Revenue, profit and profit percent for exiting at ``exit_price``."""
    revenue = contracts * exit_price
    profit = revenue - cost_basis
    profit_pct = profit / cost_basis * 100 if cost_basis > 0 else 0.0
    return revenue, profit, profit_pct


class TradeLedger:
    """SQLite-backed paper trade ledger."""

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or get_settings().db_path
        self._ready = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def _ensure_db(self) -> None:
        if not self._ready:
            await ensure_schema(self._db_path)
            self._ready = True

    # --- lifecycle ---

    async def open_trade(self, signal: Signal, policy: SizingPolicy) -> OpenedTrade | None:
        """Open a paper trade for a signal.

        Returns None, creating nothing, when the ticker already has an open
        trade, when its market is known and no longer active, or when
        sizing yields zero contracts.
        """
        await self._ensure_db()
        async with connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                opened = await self._open_in_transaction(db, signal, policy)
            except Exception:
                await db.rollback()
                raise
            if opened is None:
                await db.rollback()
            else:
                await db.commit()

        if opened is not None:
            logger.info(
                "Opened trade %d: %s %s x%d @ %.2f (cost $%.2f)",
                opened.trade_id, opened.ticker, opened.side.value,
                opened.contracts, opened.entry_price, opened.cost_basis,
            )
        return opened

    async def _open_in_transaction(
        self, db: aiosqlite.Connection, signal: Signal, policy: SizingPolicy,
    ) -> OpenedTrade | None:
        cursor = await db.execute(
            "SELECT id FROM paper_trades WHERE ticker = ? AND resolution = 'open'",
            (signal.ticker,),
        )
        if await cursor.fetchone() is not None:
            logger.debug("Skipping %s: position already open", signal.ticker)
            return None

        cursor = await db.execute(
            "SELECT status FROM markets WHERE ticker = ?", (signal.ticker,),
        )
        market = await cursor.fetchone()
        if market is not None and market["status"] != "active":
            logger.debug("Skipping %s: market is %s", signal.ticker, market["status"])
            return None

        sizing: PositionSize = size_from_signal(
            signal,
            bankroll=policy.bankroll,
            kelly_multiplier=policy.kelly_multiplier,
            max_position_pct=policy.max_position_pct,
        )
        if sizing.contracts <= 0:
            logger.debug(
                "Skipping %s: zero contracts (kelly=%.4f, bankroll=%.2f)",
                signal.ticker, sizing.kelly_full, policy.bankroll,
            )
            return None

        cursor = await db.execute(
            """INSERT OR IGNORE INTO paper_trades
               (ticker, opened_at, side, entry_price, contracts, cost_basis,
                model_edge, category, resolution)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'open')""",
            (
                signal.ticker,
                to_epoch_ms(utc_now()),
                sizing.side.value,
                sizing.entry_price,
                sizing.contracts,
                sizing.cost_basis,
                signal.edge,
                signal.category,
            ),
        )
        if cursor.rowcount == 0:
            # Lost a race with another writer; the unique open index held.
            return None

        return OpenedTrade(
            trade_id=cursor.lastrowid,
            ticker=signal.ticker,
            side=sizing.side,
            contracts=sizing.contracts,
            cost_basis=sizing.cost_basis,
            entry_price=sizing.entry_price,
        )

    async def close_trade(self, trade_id: int, exit_price: float) -> ClosedTrade | None:
        """Sell an open trade at ``exit_price``. Returns None unless the trade is open."""
        await self._ensure_db()
        async with connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")
            cursor = await db.execute(
                "SELECT * FROM paper_trades WHERE id = ? AND resolution = 'open'",
                (trade_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                await db.rollback()
                return None

            revenue, profit, profit_pct = _settle(row["contracts"], row["cost_basis"], exit_price)
            await db.execute(
                """UPDATE paper_trades
                   SET closed_at = ?, exit_price = ?, revenue = ?, profit = ?,
                       profit_pct = ?, resolution = 'sold'
                   WHERE id = ? AND resolution = 'open'""",
                (to_epoch_ms(utc_now()), exit_price, revenue, profit, profit_pct, trade_id),
            )
            await db.commit()

        logger.info("Sold trade %d @ %.2f: profit $%.2f", trade_id, exit_price, profit)
        return ClosedTrade(
            trade_id=trade_id,
            profit=round(profit, 2),
            profit_percent=round(profit_pct, 2),
        )

    async def resolve_settled_trades(self) -> ResolutionSummary:
        """Resolve every open trade whose market has a result.

        A trade wins iff its side matches the result and exits at exactly
        1.0, otherwise at 0.0. Updates are guarded on the open state, so
        re-running finds nothing to resolve.
        """
        await self._ensure_db()
        summary = ResolutionSummary()
        total_profit = 0.0

        async with connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")
            cursor = await db.execute(
                """SELECT pt.id, pt.ticker, pt.side, pt.contracts, pt.cost_basis, m.result
                   FROM paper_trades pt
                   JOIN markets m ON pt.ticker = m.ticker
                   WHERE pt.resolution = 'open'
                     AND m.result IS NOT NULL AND m.result != ''"""
            )
            rows = await cursor.fetchall()
            now = to_epoch_ms(utc_now())

            for row in rows:
                won = row["side"] == row["result"]
                exit_price = 1.0 if won else 0.0
                revenue, profit, profit_pct = _settle(
                    row["contracts"], row["cost_basis"], exit_price,
                )
                state = Resolution.WIN if won else Resolution.LOSS
                update = await db.execute(
                    """UPDATE paper_trades
                       SET closed_at = ?, exit_price = ?, revenue = ?, profit = ?,
                           profit_pct = ?, resolution = ?
                       WHERE id = ? AND resolution = 'open'""",
                    (now, exit_price, revenue, profit, profit_pct, state.value, row["id"]),
                )
                if update.rowcount == 0:
                    continue

                summary.resolved += 1
                if won:
                    summary.wins += 1
                else:
                    summary.losses += 1
                total_profit += profit
                logger.info(
                    "Resolved trade %d (%s %s): %s, profit $%.2f",
                    row["id"], row["ticker"], row["side"], state.value, profit,
                )

            await db.commit()

        summary.total_profit = round(total_profit, 2)
        return summary

    # --- queries ---

    async def get_trade(self, trade_id: int) -> Trade | None:
        await self._ensure_db()
        async with connect(self._db_path) as db:
            cursor = await db.execute("SELECT * FROM paper_trades WHERE id = ?", (trade_id,))
            row = await cursor.fetchone()
            return _row_to_trade(row) if row else None

    async def get_open_trades(self) -> list[Trade]:
        await self._ensure_db()
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT * FROM paper_trades WHERE resolution = 'open' "
                "ORDER BY opened_at DESC, id DESC"
            )
            rows = await cursor.fetchall()
            return [_row_to_trade(row) for row in rows]

    async def get_all_trades(self, limit: int | None = 100) -> list[Trade]:
        """Open and closed trades, newest first. ``limit=None`` returns all."""
        await self._ensure_db()
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT * FROM paper_trades ORDER BY opened_at DESC, id DESC LIMIT ?",
                (-1 if limit is None else limit,),
            )
            rows = await cursor.fetchall()
            return [_row_to_trade(row) for row in rows]

    async def calculate_bankroll(self, starting_bankroll: float) -> Bankroll:
        await self._ensure_db()
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT COALESCE(SUM(cost_basis), 0) AS total "
                "FROM paper_trades WHERE resolution = 'open'"
            )
            open_cost = (await cursor.fetchone())["total"]
            cursor = await db.execute(
                "SELECT COALESCE(SUM(profit), 0) AS total "
                "FROM paper_trades WHERE resolution IN (?, ?, ?)",
                _TERMINAL,
            )
            realized_pnl = (await cursor.fetchone())["total"]
        return compute_bankroll(starting_bankroll, open_cost, realized_pnl)

    # --- daily stats ---

    async def save_daily_stats(self, stats: dict) -> None:
        """Upsert one ``daily_stats`` row keyed by ``stats['date']``.

        ``signals_generated`` accumulates across cycles on the same date;
        every other column is overwritten.
        """
        await self._ensure_db()
        async with connect(self._db_path) as db:
            await db.execute(
                """INSERT INTO daily_stats
                   (date, markets_tracked, signals_generated, trades_opened,
                    trades_resolved, daily_pnl, cumulative_pnl, win_rate,
                    avg_edge, best_category)
                   VALUES (:date, :markets_tracked, :signals_generated, :trades_opened,
                           :trades_resolved, :daily_pnl, :cumulative_pnl, :win_rate,
                           :avg_edge, :best_category)
                   ON CONFLICT(date) DO UPDATE SET
                       markets_tracked = excluded.markets_tracked,
                       signals_generated = daily_stats.signals_generated
                                           + excluded.signals_generated,
                       trades_opened = excluded.trades_opened,
                       trades_resolved = excluded.trades_resolved,
                       daily_pnl = excluded.daily_pnl,
                       cumulative_pnl = excluded.cumulative_pnl,
                       win_rate = excluded.win_rate,
                       avg_edge = excluded.avg_edge,
                       best_category = excluded.best_category""",
                stats,
            )
            await db.commit()

    async def get_daily_stats(self, date: str) -> dict | None:
        await self._ensure_db()
        async with connect(self._db_path) as db:
            cursor = await db.execute("SELECT * FROM daily_stats WHERE date = ?", (date,))
            row = await cursor.fetchone()
            return dict(row) if row else None
