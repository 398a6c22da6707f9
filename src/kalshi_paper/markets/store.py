"""SQLite store for markets, model estimates and price snapshots."""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from pathlib import Path

import aiosqlite

from kalshi_paper.common.db import connect, ensure_schema
from kalshi_paper.common.types import from_epoch_ms, to_epoch_ms, utc_now
from kalshi_paper.config import get_settings
from kalshi_paper.forecasting.base import Estimate, ProbabilityEstimate
from kalshi_paper.markets.models import Market, MarketStatus, Side

logger = logging.getLogger(__name__)

_UPSERT_MARKET = """
INSERT INTO markets (ticker, event_ticker, series_ticker, category, title,
                     status, close_time, result, last_yes_price, last_updated)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(ticker) DO UPDATE SET
    event_ticker = COALESCE(excluded.event_ticker, markets.event_ticker),
    series_ticker = COALESCE(excluded.series_ticker, markets.series_ticker),
    category = COALESCE(excluded.category, markets.category),
    title = excluded.title,
    status = excluded.status,
    close_time = excluded.close_time,
    result = COALESCE(excluded.result, markets.result),
    last_yes_price = excluded.last_yes_price,
    last_updated = excluded.last_updated
"""


def _row_to_market(row: aiosqlite.Row) -> Market:
    result = row["result"]
    return Market(
        ticker=row["ticker"],
        title=row["title"] or "",
        category=row["category"],
        status=MarketStatus(row["status"]),
        price=row["last_yes_price"],
        result=Side(result) if result else None,
        event_ticker=row["event_ticker"],
        series_ticker=row["series_ticker"],
        close_time=from_epoch_ms(row["close_time"]),
    )


def _row_to_estimate(row: aiosqlite.Row) -> Estimate:
    return Estimate(
        id=row["id"],
        ticker=row["ticker"],
        source_name=row["model_name"],
        probability=row["estimated_prob"],
        confidence=row["confidence"],
        timestamp=from_epoch_ms(row["timestamp"]),
        data_sources=json.loads(row["data_sources"] or "[]"),
        reasoning=row["reasoning"] or "",
    )


class MarketStore:
    """Markets and estimates written by ingestion and models, read by the detector."""

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

    # --- markets ---

    async def upsert_markets(self, markets: list[Market]) -> int:
        """Insert or update markets.

        A stored result, category, event ticker or series ticker is never
        cleared by a payload that lacks it.
        """
        await self._ensure_db()
        now = to_epoch_ms(utc_now())
        rows = [
            (
                m.ticker,
                m.event_ticker,
                m.series_ticker,
                m.category,
                m.title,
                m.status.value,
                to_epoch_ms(m.close_time) if m.close_time else None,
                m.result.value if m.result else None,
                m.price,
                now,
            )
            for m in markets
        ]
        async with connect(self._db_path) as db:
            await db.executemany(_UPSERT_MARKET, rows)
            await db.commit()
        return len(rows)

    async def get_market(self, ticker: str) -> Market | None:
        await self._ensure_db()
        async with connect(self._db_path) as db:
            cursor = await db.execute("SELECT * FROM markets WHERE ticker = ?", (ticker,))
            row = await cursor.fetchone()
            return _row_to_market(row) if row else None

    async def get_markets(self, status: MarketStatus | None = None) -> list[Market]:
        await self._ensure_db()
        async with connect(self._db_path) as db:
            if status is None:
                cursor = await db.execute("SELECT * FROM markets ORDER BY ticker")
            else:
                cursor = await db.execute(
                    "SELECT * FROM markets WHERE status = ? ORDER BY ticker",
                    (status.value,),
                )
            rows = await cursor.fetchall()
            return [_row_to_market(row) for row in rows]

    async def count_active_markets(self) -> int:
        await self._ensure_db()
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) AS cnt FROM markets WHERE status = 'active'"
            )
            return (await cursor.fetchone())["cnt"]

    async def get_settled_results_by_series(self) -> dict[str, list[Side]]:
        """Map each series ticker to the results of its settled markets."""
        await self._ensure_db()
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                """SELECT series_ticker, result FROM markets
                   WHERE series_ticker IS NOT NULL
                     AND result IS NOT NULL AND result != ''"""
            )
            rows = await cursor.fetchall()
        by_series: dict[str, list[Side]] = defaultdict(list)
        for row in rows:
            by_series[row["series_ticker"]].append(Side(row["result"]))
        return dict(by_series)

    # --- estimates ---

    async def store_estimate(
        self,
        model_name: str,
        estimate: ProbabilityEstimate,
        timestamp: datetime | None = None,
    ) -> int:
        """Store a model estimate. Returns the row ID."""
        await self._ensure_db()
        ts = timestamp or utc_now()
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                """INSERT INTO model_estimates
                   (ticker, timestamp, model_name, estimated_prob, confidence,
                    data_sources, reasoning)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    estimate.ticker,
                    to_epoch_ms(ts),
                    model_name,
                    estimate.probability,
                    estimate.confidence,
                    json.dumps(estimate.data_sources),
                    estimate.reasoning,
                ),
            )
            await db.commit()
            return cursor.lastrowid

    async def get_estimates(self, ticker: str | None = None) -> list[Estimate]:
        """All stored estimates in insertion order."""
        await self._ensure_db()
        async with connect(self._db_path) as db:
            if ticker is None:
                cursor = await db.execute("SELECT * FROM model_estimates ORDER BY id")
            else:
                cursor = await db.execute(
                    "SELECT * FROM model_estimates WHERE ticker = ? ORDER BY id",
                    (ticker,),
                )
            rows = await cursor.fetchall()
            return [_row_to_estimate(row) for row in rows]

    async def get_latest_estimate(
        self, ticker: str, model_name: str | None = None,
    ) -> Estimate | None:
        await self._ensure_db()
        query = "SELECT * FROM model_estimates WHERE ticker = ?"
        params: tuple = (ticker,)
        if model_name:
            query += " AND model_name = ?"
            params = (ticker, model_name)
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                query + " ORDER BY timestamp DESC, id DESC LIMIT 1", params,
            )
            row = await cursor.fetchone()
            return _row_to_estimate(row) if row else None

    # --- snapshots ---

    async def record_snapshot(
        self,
        ticker: str,
        *,
        yes_bid: float | None = None,
        yes_ask: float | None = None,
        last_price: float | None = None,
        volume: int | None = None,
        open_interest: int | None = None,
        timestamp: datetime | None = None,
    ) -> int:
        await self._ensure_db()
        ts = timestamp or utc_now()
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                """INSERT INTO price_snapshots
                   (ticker, timestamp, yes_bid, yes_ask, last_price, volume, open_interest)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (ticker, to_epoch_ms(ts), yes_bid, yes_ask, last_price, volume, open_interest),
            )
            await db.commit()
            return cursor.lastrowid

    async def snapshot_all_active(self) -> int:
        """Record the current price of every priced active market."""
        await self._ensure_db()
        now = to_epoch_ms(utc_now())
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                """INSERT INTO price_snapshots (ticker, timestamp, last_price)
                   SELECT ticker, ?, last_yes_price FROM markets
                   WHERE status = 'active' AND last_yes_price IS NOT NULL""",
                (now,),
            )
            await db.commit()
            return cursor.rowcount

    async def get_snapshots(
        self, ticker: str, limit: int = 100, since: datetime | None = None,
    ) -> list[dict]:
        """Price history for a market, newest first."""
        await self._ensure_db()
        since_ms = to_epoch_ms(since) if since else 0
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                """SELECT * FROM price_snapshots
                   WHERE ticker = ? AND timestamp >= ?
                   ORDER BY timestamp DESC, id DESC LIMIT ?""",
                (ticker, since_ms, limit),
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def prune_old_data(self, retention: timedelta) -> dict[str, int]:
        """Delete snapshots and estimates older than the retention window."""
        await self._ensure_db()
        cutoff = to_epoch_ms(utc_now() - retention)
        async with connect(self._db_path) as db:
            snaps = await db.execute(
                "DELETE FROM price_snapshots WHERE timestamp < ?", (cutoff,),
            )
            ests = await db.execute(
                "DELETE FROM model_estimates WHERE timestamp < ?", (cutoff,),
            )
            await db.commit()
            result = {
                "snapshots_deleted": snaps.rowcount,
                "estimates_deleted": ests.rowcount,
            }
        logger.debug("Pruned %(snapshots_deleted)d snapshot(s), %(estimates_deleted)d estimate(s)", result)
        return result
