"""SQLite schema and connection helper shared by the market store and trade ledger."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

_CREATE_MARKETS = """
CREATE TABLE IF NOT EXISTS markets (
    ticker TEXT PRIMARY KEY,
    event_ticker TEXT,
    series_ticker TEXT,
    category TEXT,
    title TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    close_time INTEGER,
    result TEXT,
    last_yes_price REAL,
    last_updated INTEGER
);
"""

_CREATE_ESTIMATES = """
CREATE TABLE IF NOT EXISTS model_estimates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ticker TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    model_name TEXT NOT NULL,
    estimated_prob REAL NOT NULL,
    confidence REAL NOT NULL,
    data_sources TEXT,
    reasoning TEXT
);
"""

_CREATE_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS price_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ticker TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    yes_bid REAL,
    yes_ask REAL,
    last_price REAL,
    volume INTEGER,
    open_interest INTEGER
);
"""

_CREATE_TRADES = """
CREATE TABLE IF NOT EXISTS paper_trades (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ticker TEXT NOT NULL,
    opened_at INTEGER NOT NULL,
    closed_at INTEGER,
    side TEXT NOT NULL CHECK(side IN ('yes', 'no')),
    entry_price REAL NOT NULL,
    exit_price REAL,
    contracts INTEGER NOT NULL CHECK(contracts > 0),
    cost_basis REAL NOT NULL,
    revenue REAL,
    profit REAL,
    profit_pct REAL,
    model_edge REAL,
    category TEXT,
    resolution TEXT NOT NULL DEFAULT 'open'
        CHECK(resolution IN ('open', 'win', 'loss', 'sold'))
);
"""

_CREATE_DAILY_STATS = """
CREATE TABLE IF NOT EXISTS daily_stats (
    date TEXT PRIMARY KEY,
    markets_tracked INTEGER DEFAULT 0,
    signals_generated INTEGER DEFAULT 0,
    trades_opened INTEGER DEFAULT 0,
    trades_resolved INTEGER DEFAULT 0,
    daily_pnl REAL DEFAULT 0,
    cumulative_pnl REAL DEFAULT 0,
    win_rate REAL DEFAULT 0,
    avg_edge REAL DEFAULT 0,
    best_category TEXT
);
"""

# At most one open trade per ticker, enforced by storage as well as by the ledger.
_CREATE_INDEXES = (
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_paper_trades_one_open "
    "ON paper_trades(ticker) WHERE resolution = 'open'",
    "CREATE INDEX IF NOT EXISTS idx_paper_trades_resolution ON paper_trades(resolution)",
    "CREATE INDEX IF NOT EXISTS idx_model_estimates_ticker_ts ON model_estimates(ticker, timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_price_snapshots_ticker_ts ON price_snapshots(ticker, timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_markets_category_status ON markets(category, status)",
)


@asynccontextmanager
async def connect(db_path: Path) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection with name-addressable rows."""
    async with aiosqlite.connect(str(db_path)) as db:
        db.row_factory = aiosqlite.Row
        yield db


async def ensure_schema(db_path: Path) -> None:
    """Create the database file, tables and indexes if they don't exist."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(str(db_path)) as db:
        await db.execute("PRAGMA journal_mode = WAL")
        for ddl in (
            _CREATE_MARKETS,
            _CREATE_ESTIMATES,
            _CREATE_SNAPSHOTS,
            _CREATE_TRADES,
            _CREATE_DAILY_STATS,
            *_CREATE_INDEXES,
        ):
            await db.execute(ddl)
        await db.commit()
