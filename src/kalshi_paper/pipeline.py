"""Top-level cycle orchestrator.

Wires together: market ingestion → model run → open-position refresh
and resolution → signal detection → paper trade execution → daily
stats. One call is one scheduled cycle; storage failures propagate and
the caller retries on the next schedule.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta

import httpx
from rich.console import Console

from kalshi_paper.common.cache import TTLCache
from kalshi_paper.config import Settings, get_settings
from kalshi_paper.forecasting.base_rate import BaseRateModel
from kalshi_paper.forecasting.runner import ModelRunner, RunSummary
from kalshi_paper.markets.client import (
    fetch_events,
    fetch_market,
    markets_from_events,
    raw_to_market,
)
from kalshi_paper.markets.models import Market
from kalshi_paper.markets.store import MarketStore
from kalshi_paper.notifications.telegram import TelegramNotifier
from kalshi_paper.signals.detector import detect_from_store
from kalshi_paper.signals.models import Signal
from kalshi_paper.trading.executor import execute_paper_trades
from kalshi_paper.trading.ledger import TradeLedger
from kalshi_paper.trading.models import Bankroll, BatchResult, ResolutionSummary
from kalshi_paper.trading.stats import update_daily_stats

logger = logging.getLogger(__name__)
console = Console()


@dataclass
class CycleReport:
    markets_ingested: int = 0
    markets_refreshed: int = 0
    model_run: RunSummary = field(default_factory=RunSummary)
    resolution: ResolutionSummary = field(default_factory=ResolutionSummary)
    signals: list[Signal] = field(default_factory=list)
    batch: BatchResult = field(default_factory=BatchResult)
    bankroll: Bankroll | None = None


def build_runner(store: MarketStore, settings: Settings) -> ModelRunner:
    """Model runner with every bundled model registered."""
    runner = ModelRunner(store)
    runner.register(
        BaseRateModel(
            store,
            TTLCache(settings.model_cache_ttl),
            min_samples=settings.base_rate_min_samples,
        )
    )
    return runner


async def ingest_markets(store: MarketStore, settings: Settings | None = None) -> int:
    """Fetch open events with nested markets from Kalshi and upsert them.

    Only markets in the configured categories, with activity and closing
    within the horizon are kept. Network failures are logged and the cycle
    continues on stored data.
    """
    settings = settings or get_settings()
    console.print("[bold]Fetching open Kalshi events...[/bold]")
    try:
        events = await fetch_events(status="open", with_nested_markets=True)
    except httpx.HTTPStatusError as exc:
        logger.warning("Kalshi HTTP %d while fetching events", exc.response.status_code)
        console.print(f"  [yellow]Kalshi HTTP {exc.response.status_code}, using stored markets[/yellow]")
        return 0
    except httpx.HTTPError as exc:
        logger.warning("Kalshi request failed: %s", exc)
        console.print("  [yellow]Kalshi unavailable, using stored markets[/yellow]")
        return 0

    raw_markets = markets_from_events(
        events,
        categories=settings.ingest_categories,
        min_volume=settings.ingest_min_volume,
        max_close_days=settings.ingest_max_close_days,
    )
    markets = [raw_to_market(raw) for raw in raw_markets if raw.get("ticker")]
    upserted = await store.upsert_markets(markets)
    console.print(f"  Upserted [green]{upserted}[/green] market(s) from {len(events)} event(s)")
    return upserted


async def refresh_open_positions(store: MarketStore, ledger: TradeLedger) -> int:
    """Re-fetch the markets behind open trades so settlements reach the store.

    Open-status ingestion never sees a market after it settles; this is
    where results come from. A failed fetch leaves that market as stored.
    """
    tickers = sorted({t.ticker for t in await ledger.get_open_trades()})
    refreshed: list[Market] = []
    for ticker in tickers:
        try:
            raw = await fetch_market(ticker)
        except (httpx.HTTPError, KeyError) as exc:
            logger.warning("Could not refresh market %s: %s", ticker, exc)
            continue
        refreshed.append(raw_to_market(raw))

    if refreshed:
        await store.upsert_markets(refreshed)
        logger.info("Refreshed %d of %d open-position market(s)", len(refreshed), len(tickers))
    return len(refreshed)


async def run_cycle(
    settings: Settings | None = None,
    store: MarketStore | None = None,
    ledger: TradeLedger | None = None,
    runner: ModelRunner | None = None,
    ingest: bool | None = None,
) -> CycleReport:
    """Run one full paper trading cycle and return what it did."""
    settings = settings or get_settings()
    store = store or MarketStore(settings.db_path)
    ledger = ledger or TradeLedger(settings.db_path)
    runner = runner or build_runner(store, settings)
    if ingest is None:
        ingest = settings.ingest_enabled

    report = CycleReport()

    # Step 1: Ingest markets and snapshot prices
    if ingest:
        report.markets_ingested = await ingest_markets(store, settings)
    await store.snapshot_all_active()

    # Step 2: Run forecast models
    console.print("[bold]Running forecast models...[/bold]")
    report.model_run = await runner.run()
    console.print(
        f"  {report.model_run.estimates} estimate(s), {report.model_run.errors} error(s)"
    )

    # Step 3: Refresh markets behind open trades, then resolve settled ones
    if ingest:
        report.markets_refreshed = await refresh_open_positions(store, ledger)
    report.resolution = await ledger.resolve_settled_trades()
    if report.resolution.resolved:
        console.print(
            f"[bold]Resolved {report.resolution.resolved} trade(s):[/bold] "
            f"{report.resolution.wins}W / {report.resolution.losses}L, "
            f"P&L ${report.resolution.total_profit:+.2f}"
        )

    # Step 4: Detect mispricings
    report.signals = await detect_from_store(store, settings)
    console.print(f"[bold]Detected [green]{len(report.signals)}[/green] signal(s)[/bold]")

    # Step 5: Execute paper trades, best signal first
    if report.signals:
        report.batch = await execute_paper_trades(
            ledger,
            report.signals,
            starting_bankroll=settings.paper_bankroll,
            kelly_multiplier=settings.kelly_fraction,
            max_position_pct=settings.max_position_pct,
        )
        console.print(
            f"  Opened [green]{report.batch.opened}[/green], skipped {report.batch.skipped}"
        )

    # Step 6: Bookkeeping
    report.bankroll = await ledger.calculate_bankroll(settings.paper_bankroll)
    await update_daily_stats(ledger, store, signals_generated=len(report.signals))
    await store.prune_old_data(timedelta(days=settings.retention_days))

    # Step 7: Telegram summary
    if settings.telegram_enabled:
        notifier = TelegramNotifier()
        await notifier.notify_cycle(report)
        await notifier.close()

    return report
