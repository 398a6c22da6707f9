"""Kalshi trade API client (read-only)."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

from kalshi_paper.common.http import HttpClient
from kalshi_paper.common.types import JsonDict
from kalshi_paper.config import get_settings
from kalshi_paper.markets.models import Market, MarketStatus, Side

logger = logging.getLogger(__name__)


def _parse_iso(s: str | None) -> datetime | None:
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def map_status(api_status: str | None) -> MarketStatus:
    """Map a Kalshi status string to a MarketStatus.

    Kalshi reports open markets as ``open`` (newer API) or ``active``;
    unknown statuses are treated as closed so they are never traded.
    """
    s = (api_status or "").lower()
    if s in ("open", "active", ""):
        return MarketStatus.ACTIVE
    if s == "settled" or s == "finalized":
        return MarketStatus.SETTLED
    return MarketStatus.CLOSED


def _cents_to_price(value: object) -> float | None:
    if value is None:
        return None
    try:
        price = float(value) / 100.0
    except (TypeError, ValueError):
        return None
    if not 0.0 <= price <= 1.0:
        return None
    return price


async def _paginate(
    client: HttpClient, path: str, key: str, params: dict[str, object], max_pages: int,
) -> list[JsonDict]:
    """Collect ``key`` items across pages, following the response cursor."""
    items: list[JsonDict] = []
    cursor = ""
    for _ in range(max_pages):
        page_params = dict(params)
        if cursor:
            page_params["cursor"] = cursor
        resp = await client.get(path, params=page_params)
        data = resp.json()
        items.extend(data.get(key) or [])
        cursor = data.get("cursor") or ""
        if not cursor:
            break
    else:
        logger.warning("Stopped paging Kalshi %s after %d pages", path, max_pages)
    return items


async def fetch_events(
    status: str = "open",
    with_nested_markets: bool = True,
    limit: int = 200,
    max_pages: int = 50,
) -> list[JsonDict]:
    """Fetch events from the Kalshi API, optionally with their markets nested.

    There are far fewer open events than open markets, so ingestion pages
    events and reads markets from the nested payload.
    """
    settings = get_settings()
    params: dict[str, object] = {"status": status, "limit": limit}
    if with_nested_markets:
        params["with_nested_markets"] = "true"

    async with HttpClient(base_url=settings.kalshi_api_url) as client:
        return await _paginate(client, "/events", "events", params, max_pages)


async def fetch_market(ticker: str) -> JsonDict:
    """Fetch a single market by ticker, including its settlement result."""
    settings = get_settings()
    async with HttpClient(base_url=settings.kalshi_api_url) as client:
        resp = await client.get(f"/markets/{quote(ticker, safe='')}")
        return resp.json()["market"]


def closes_within(raw: JsonDict, horizon: timedelta, now: datetime | None = None) -> bool:
    """True if the market closes after ``now`` and no later than ``now + horizon``."""
    close_time = _parse_iso(
        raw.get("close_time") or raw.get("expected_expiration_time") or raw.get("expiration_time")
    )
    if close_time is None:
        return False
    now = now or datetime.now(timezone.utc)
    return now < close_time <= now + horizon


def markets_from_events(
    events: list[JsonDict],
    categories: list[str] | None = None,
    min_volume: int = 1,
    max_close_days: float = 7.0,
    now: datetime | None = None,
) -> list[JsonDict]:
    """Flatten nested event markets into raw market dicts worth ingesting.

    Events outside ``categories`` are dropped (an empty or missing list keeps
    all). Each market inherits ``category``, ``event_ticker`` and
    ``series_ticker`` from its event when it lacks them, then must show
    activity (volume or open interest >= ``min_volume``) and close within
    ``max_close_days``.
    """
    wanted = {c.lower() for c in categories or []}
    horizon = timedelta(days=max_close_days)
    selected: list[JsonDict] = []
    total = 0

    for event in events:
        category = event.get("category")
        if wanted and str(category or "").lower() not in wanted:
            continue
        for nested in event.get("markets") or []:
            total += 1
            raw = dict(nested)
            raw["category"] = raw.get("category") or category
            raw["event_ticker"] = raw.get("event_ticker") or event.get("event_ticker")
            raw["series_ticker"] = raw.get("series_ticker") or event.get("series_ticker")

            active = (raw.get("volume") or 0) >= min_volume or (
                raw.get("open_interest") or 0
            ) >= min_volume
            if active and closes_within(raw, horizon, now):
                selected.append(raw)

    logger.info(
        "%d event(s), %d nested market(s), %d closing within %gd with activity",
        len(events), total, len(selected), max_close_days,
    )
    return selected


def raw_to_market(raw: JsonDict, category: str | None = None) -> Market:
    """Convert a raw Kalshi market dict to a Market.

    Prices arrive in cents; the last trade price is preferred over the
    best yes bid.
    """
    ticker = str(raw.get("ticker", ""))
    price = _cents_to_price(raw.get("last_price"))
    if price is None:
        price = _cents_to_price(raw.get("yes_bid"))

    result_raw = str(raw.get("result") or "").lower()
    result = Side(result_raw) if result_raw in ("yes", "no") else None
    if raw.get("result") and result is None:
        logger.debug("Ignoring non-binary result %r for market %s", raw.get("result"), ticker)

    return Market(
        ticker=ticker,
        title=str(raw.get("title") or ""),
        category=category or raw.get("category") or None,
        status=map_status(raw.get("status")),
        price=price,
        result=result,
        event_ticker=raw.get("event_ticker") or None,
        series_ticker=raw.get("series_ticker") or None,
        close_time=_parse_iso(raw.get("close_time")),
    )
