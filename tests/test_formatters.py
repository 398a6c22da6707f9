"""Tests for signal, trade and bankroll formatters."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone

from rich.console import Console

from kalshi_paper.markets.models import Side
from kalshi_paper.pipeline import CycleReport
from kalshi_paper.signals.formatters import (
    format_bankroll,
    format_csv,
    format_json,
    format_signal_table,
    format_telegram_cycle,
    format_trade_table,
    format_trades_json,
)
from kalshi_paper.signals.models import Signal
from kalshi_paper.trading.models import Bankroll, BatchResult, Resolution, ResolutionSummary, Trade


def _make_signal(ticker="KXHIGHNY-25JUL04-T90", side=Side.YES, edge=0.15):
    return Signal(
        ticker=ticker, side=side, edge=edge, absolute_edge=abs(edge), score=0.12,
        price=0.40, probability=0.55, confidence=0.8, source_name="weather",
        category="weather", title="Will NYC hit 90F on July 4?",
    )


def _make_trade(state=Resolution.OPEN, profit=None):
    return Trade(
        id=7, ticker="KXHIGHNY-25JUL04-T90", side=Side.YES, entry_price=0.4,
        contracts=62, cost_basis=24.8, state=state,
        opened_at=datetime(2025, 7, 1, 12, tzinfo=timezone.utc),
        edge_at_entry=0.15, category="weather", profit=profit,
    )


def _console():
    return Console(file=io.StringIO(), width=200)


class TestSignalOutput:
    def test_json(self):
        data = json.loads(format_json([_make_signal(), _make_signal("B", Side.NO, -0.2)]))
        assert len(data) == 2
        assert data[0]["side"] == "yes"
        assert data[1]["side"] == "no"
        assert data[1]["edge"] == -0.2
        assert data[0]["source_name"] == "weather"

    def test_csv(self):
        rows = list(csv.DictReader(io.StringIO(format_csv([_make_signal()]))))
        assert len(rows) == 1
        assert rows[0]["ticker"] == "KXHIGHNY-25JUL04-T90"
        assert rows[0]["side"] == "yes"
        assert float(rows[0]["score"]) == 0.12

    def test_table(self):
        console = _console()
        format_signal_table([_make_signal()], console)
        out = console.file.getvalue()
        assert "KXHIGHNY-25JUL04-T90" in out
        assert "YES" in out
        assert "+15.0%" in out

    def test_empty_table(self):
        console = _console()
        format_signal_table([], console)
        assert "No signals" in console.file.getvalue()


class TestTradeOutput:
    def test_trades_json(self):
        data = json.loads(format_trades_json([_make_trade(Resolution.WIN, profit=6.0)]))
        assert data[0]["state"] == "win"
        assert data[0]["profit"] == 6.0
        assert data[0]["opened_at"].startswith("2025-07-01T12:00")
        assert data[0]["closed_at"] is None

    def test_trade_table(self):
        console = _console()
        format_trade_table([_make_trade(Resolution.LOSS, profit=-24.8)], console)
        out = console.file.getvalue()
        assert "loss" in out
        assert "-24.80" in out

    def test_empty_trade_table(self):
        console = _console()
        format_trade_table([], console)
        assert "No paper trades" in console.file.getvalue()


def test_bankroll():
    console = _console()
    format_bankroll(Bankroll(available=481.4, invested=24.8, realized_pnl=6.2, total_value=506.2), console)
    out = console.file.getvalue()
    assert "$481.40" in out
    assert "$24.80" in out
    assert "+6.20" in out


class TestTelegramCycle:
    def test_summary(self):
        report = CycleReport(
            signals=[_make_signal()],
            batch=BatchResult(opened=1, skipped=0),
            resolution=ResolutionSummary(resolved=2, wins=1, losses=1, total_profit=2.0),
            bankroll=Bankroll(available=475.2, invested=24.8, realized_pnl=2.0, total_value=500.0),
        )

        text = format_telegram_cycle(report)

        assert "*Paper Trading Cycle*" in text
        assert "1 signal(s), 1 opened, 0 skipped" in text
        assert "1W / 1L" in text
        assert "Available $475.20" in text
        assert "| YES | +15.0% | 0.120 | KXHIGHNY-25JUL04-T90 |" in text

    def test_quiet_cycle(self):
        text = format_telegram_cycle(CycleReport())
        assert "0 signal(s)" in text
        assert "Resolved" not in text
        assert "|" not in text
