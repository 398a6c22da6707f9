"""Tests for settings validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from kalshi_paper.config import Settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.paper_bankroll == 500.0
    assert settings.min_edge_pct == 5.0
    assert settings.min_confidence == 0.6
    assert (settings.coin_flip_min, settings.coin_flip_max) == (0.30, 0.70)
    assert settings.kelly_fraction == 0.25
    assert settings.max_position_pct == 5.0


def test_env_override(monkeypatch):
    monkeypatch.setenv("PAPER_BANKROLL", "1000")
    monkeypatch.setenv("KELLY_FRACTION", "0.5")
    settings = Settings(_env_file=None)
    assert settings.paper_bankroll == 1000.0
    assert settings.kelly_fraction == 0.5


@pytest.mark.parametrize("field,value", [
    ("min_confidence", 1.5),
    ("coin_flip_min", -0.1),
    ("kelly_fraction", 0.0),
    ("kelly_fraction", 1.5),
    ("max_position_pct", 0.0),
    ("max_position_pct", 150.0),
    ("min_edge_pct", -1.0),
    ("paper_bankroll", -10.0),
])
def test_rejects_out_of_range(field, value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_rejects_inverted_band():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, coin_flip_min=0.8, coin_flip_max=0.2)


@pytest.mark.parametrize("field,value", [
    ("http_max_attempts", 0),
    ("http_backoff_initial", -1.0),
    ("ingest_max_close_days", -1.0),
])
def test_rejects_bad_ingest_and_http_settings(field, value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_ingest_categories_from_env(monkeypatch):
    monkeypatch.setenv("INGEST_CATEGORIES", '["Economics", "Politics"]')
    assert Settings(_env_file=None).ingest_categories == ["Economics", "Politics"]
