"""Application configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Starting paper bankroll in dollars
    paper_bankroll: float = 500.0

    # Minimum |edge| in percentage points to generate a signal
    min_edge_pct: float = 5.0

    # Minimum model confidence to generate a signal
    min_confidence: float = 0.6

    # Coin-flip band: only markets priced inside [min, max] are considered
    coin_flip_min: float = 0.30
    coin_flip_max: float = 0.70

    # Kelly multiplier (0.25 = quarter-Kelly)
    kelly_fraction: float = 0.25

    # Hard cap on a single position, percent of available bankroll
    max_position_pct: float = 5.0

    # SQLite database path for markets, estimates and paper trades
    db_path: Path = Path.home() / ".kalshi-paper" / "paper.db"

    # Kalshi trade API base URL
    kalshi_api_url: str = "https://api.elections.kalshi.com/trade-api/v2"

    # Fetch markets from Kalshi at the start of each cycle
    ingest_enabled: bool = True

    # Event categories to ingest (matched case-insensitively)
    ingest_categories: list[str] = [
        "Climate and Weather",
        "Economics",
        "Financials",
        "Politics",
        "Science and Technology",
        "World",
        "Health",
        "Elections",
        "Companies",
        "Sports",
        "Entertainment",
        "Social",
        "Transportation",
    ]

    # Ingest only markets with at least this volume or open interest
    ingest_min_volume: int = 1

    # Ingest only markets closing within this many days
    ingest_max_close_days: float = 7.0

    # HTTP request timeout seconds
    http_timeout: float = 30.0

    # Retry policy for Kalshi and Telegram requests (429, 5xx, timeouts)
    http_max_attempts: int = 4
    http_backoff_initial: float = 2.0
    http_backoff_max: float = 30.0

    # Base-rate model cache lifetime in seconds
    model_cache_ttl: float = 300.0

    # Minimum settled markets in a series before its base rate is used
    base_rate_min_samples: int = 10

    # Snapshots and estimates older than this are pruned
    retention_days: int = 7

    # Telegram notifications
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_enabled: bool = False

    @field_validator("coin_flip_min", "coin_flip_max", "min_confidence")
    @classmethod
    def _unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"value must be in [0, 1], got {v}")
        return v

    @field_validator("kelly_fraction")
    @classmethod
    def _kelly_fraction_in_range(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError(f"kelly_fraction must be in (0, 1], got {v}")
        return v

    @field_validator("max_position_pct")
    @classmethod
    def _max_position_pct_in_range(cls, v: float) -> float:
        if not 0.0 < v <= 100.0:
            raise ValueError(f"max_position_pct must be in (0, 100], got {v}")
        return v

    @field_validator("http_max_attempts")
    @classmethod
    def _at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"http_max_attempts must be >= 1, got {v}")
        return v

    @field_validator(
        "min_edge_pct", "paper_bankroll", "http_backoff_initial", "http_backoff_max",
        "ingest_min_volume", "ingest_max_close_days",
    )
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"value must be >= 0, got {v}")
        return v

    @model_validator(mode="after")
    def _band_ordered(self) -> Settings:
        if self.coin_flip_min > self.coin_flip_max:
            raise ValueError(
                f"coin_flip_min ({self.coin_flip_min}) must not exceed "
                f"coin_flip_max ({self.coin_flip_max})"
            )
        return self


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
