"""Tests for CLI commands."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from kalshi_paper.cli import app
from kalshi_paper.forecasting.base import ProbabilityEstimate
from kalshi_paper.markets.models import Market, MarketStatus, Side
from kalshi_paper.pipeline import CycleReport
from kalshi_paper.signals.models import Signal
from kalshi_paper.trading.models import Bankroll, BatchResult, SizingPolicy

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_db(db_path, monkeypatch):
    monkeypatch.setenv("DB_PATH", str(db_path))
    monkeypatch.setenv("TELEGRAM_ENABLED", "false")
    return db_path


def _make_signal(ticker="A"):
    return Signal(
        ticker=ticker, side=Side.YES, edge=0.15, absolute_edge=0.15, score=0.12,
        price=0.40, probability=0.55, confidence=0.8, source_name="weather",
        category="weather", title="Will it?",
    )


def _open_trade(ledger, ticker="A"):
    return asyncio.run(ledger.open_trade(_make_signal(ticker), SizingPolicy(bankroll=500.0)))


class TestRunCommand:
    def test_run_prints_signals_and_bankroll(self):
        report = CycleReport(
            signals=[_make_signal()],
            batch=BatchResult(opened=1),
            bankroll=Bankroll(available=475.2, invested=24.8, realized_pnl=0.0, total_value=500.0),
        )
        with patch("kalshi_paper.pipeline.run_cycle", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = report
            result = runner.invoke(app, ["run", "--no-ingest"])

        assert result.exit_code == 0
        assert "Paper Bankroll" in result.output
        assert "$475.20" in result.output
        mock_run.assert_awaited_once_with(ingest=False)

    def test_run_defers_ingest_choice_to_settings(self):
        with patch("kalshi_paper.pipeline.run_cycle", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = CycleReport()
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 0
        mock_run.assert_awaited_once_with(ingest=None)

    def test_run_forces_ingest(self):
        with patch("kalshi_paper.pipeline.run_cycle", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = CycleReport()
            runner.invoke(app, ["run", "--ingest"])

        mock_run.assert_awaited_once_with(ingest=True)


class TestSignalsCommand:
    def test_json_output(self, store):
        asyncio.run(store.upsert_markets([
            Market(ticker="A", title="Will it?", status=MarketStatus.ACTIVE, price=0.40),
        ]))
        asyncio.run(store.store_estimate("weather", ProbabilityEstimate("A", 0.55, 0.8)))

        result = runner.invoke(app, ["signals", "--output", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[0]["ticker"] == "A"
        assert data[0]["side"] == "yes"

    def test_no_signals(self):
        result = runner.invoke(app, ["signals"])
        assert result.exit_code == 0
        assert "No signals" in result.output


class TestTradesCommand:
    def test_lists_trades(self, ledger):
        _open_trade(ledger)

        result = runner.invoke(app, ["trades", "--output", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[0]["ticker"] == "A"
        assert data[0]["state"] == "open"
        assert data[0]["contracts"] == 62

    def test_empty(self):
        result = runner.invoke(app, ["trades", "--open"])
        assert result.exit_code == 0
        assert "No paper trades" in result.output


class TestBankrollCommand:
    def test_reflects_open_positions(self, ledger):
        _open_trade(ledger)

        result = runner.invoke(app, ["bankroll"])

        assert result.exit_code == 0
        assert "$475.20" in result.output
        assert "$24.80" in result.output


class TestCloseCommand:
    def test_sells_open_trade(self, ledger):
        opened = _open_trade(ledger)

        result = runner.invoke(app, ["close", str(opened.trade_id), "0.5"])

        assert result.exit_code == 0
        assert "+6.20" in result.output
        assert "+25.00%" in result.output

    def test_rejects_bad_price(self):
        result = runner.invoke(app, ["close", "1", "1.5"])
        assert result.exit_code == 2

    def test_unknown_trade(self):
        result = runner.invoke(app, ["close", "99", "0.5"])
        assert result.exit_code == 1
        assert "not open" in result.output


class TestResolveAndStats:
    def test_resolve_and_stats(self, store, ledger):
        asyncio.run(store.upsert_markets([Market(ticker="A", status=MarketStatus.ACTIVE, price=0.4)]))
        _open_trade(ledger)
        asyncio.run(store.upsert_markets([
            Market(ticker="A", status=MarketStatus.SETTLED, price=0.99, result=Side.YES),
        ]))

        resolved = runner.invoke(app, ["resolve"])
        assert resolved.exit_code == 0
        assert "1 win(s)" in resolved.output

        stats = runner.invoke(app, ["stats"])
        assert stats.exit_code == 0
        assert "Win rate:        100.0%" in stats.output
        assert "weather" in stats.output

    def test_resolve_nothing(self):
        result = runner.invoke(app, ["resolve"])
        assert result.exit_code == 0
        assert "No open trades" in result.output
