"""Shared type aliases."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TypeAlias

# JSON-like dict as returned by the Kalshi API
JsonDict: TypeAlias = dict[str, object]

# Epoch milliseconds, the storage format for every timestamp column
EpochMs: TypeAlias = int


def to_epoch_ms(dt: datetime) -> EpochMs:
    """Convert an aware datetime to epoch milliseconds."""
    return int(dt.timestamp() * 1000)


def from_epoch_ms(ms: EpochMs | None) -> datetime | None:
    """Convert epoch milliseconds to a UTC datetime."""
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
