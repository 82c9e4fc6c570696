"""Tests for app.analytics.stats — journal performance aggregation."""

from datetime import datetime, timedelta, timezone

import pytest

from app.analytics.stats import (
    calculate_stats,
    current_streak,
    derive_account_balance,
    pair_performance,
    starting_balance,
)
from app.models.settings import AccountSettings
from app.models.trade import Direction, RiskPlan, Trade

UTC = timezone.utc
MONDAY = datetime(2025, 3, 3, 10, 0, tzinfo=UTC)


def _closed(symbol: str, pips: float, lots: float, closed_at: datetime, trade_id: int) -> Trade:
    """USD-quoted long; PnL = pips × $10 × lots."""
    trade = Trade(
        id=trade_id,
        symbol=symbol,
        direction=Direction.LONG,
        opened_at=closed_at - timedelta(hours=1),
        risk_plan=RiskPlan(risk_percentage=1.0, entry_price=1.0, position_size_lots=lots),
    )
    return trade.close(1.0 + pips / 10_000, None, closed_at)


def _journal() -> list[Trade]:
    return [
        _closed("EURUSD", 10, 1.0, MONDAY, 1),                          # +100 Mon
        _closed("GBPUSD", 20, 1.0, MONDAY + timedelta(days=1), 2),      # +200 Tue
        _closed("EURUSD", -5, 1.0, MONDAY + timedelta(days=1, hours=2), 3),  # -50 Tue
    ]


class TestCalculateStats:
    def test_summary(self):
        stats = calculate_stats(_journal(), 10_000.0)
        assert stats["total_trades"] == 3
        assert stats["winning_trades"] == 2
        assert stats["losing_trades"] == 1
        assert stats["win_rate"] == pytest.approx(0.6667)
        assert stats["gross_profit"] == pytest.approx(300.0)
        assert stats["gross_loss"] == pytest.approx(-50.0)
        assert stats["profit_factor"] == pytest.approx(6.0)
        assert stats["net_pnl"] == pytest.approx(250.0)
        assert stats["best_trade"] == pytest.approx(200.0)
        assert stats["worst_trade"] == pytest.approx(-50.0)
        assert stats["max_consecutive_wins"] == 2
        assert stats["max_consecutive_losses"] == 1

    def test_equity_curve_and_drawdown(self):
        stats = calculate_stats(_journal(), 10_000.0)
        assert [p["balance"] for p in stats["equity_curve"]] == pytest.approx(
            [10_100.0, 10_300.0, 10_250.0]
        )
        assert stats["max_drawdown_pct"] == pytest.approx(50 / 10_300 * 100, abs=1e-4)

    def test_breakdowns(self):
        stats = calculate_stats(_journal(), 10_000.0)
        assert stats["by_symbol"] == pytest.approx({"EURUSD": 50.0, "GBPUSD": 200.0})
        assert stats["by_direction"]["long"] == pytest.approx(250.0)
        assert stats["by_direction"]["short"] == 0.0
        assert stats["by_weekday"] == pytest.approx({"Monday": 100.0, "Tuesday": 150.0})
        assert stats["monthly"] == pytest.approx({"2025 Mar": 250.0})

    def test_empty_journal(self):
        stats = calculate_stats([], 10_000.0)
        assert stats["total_trades"] == 0
        assert stats["win_rate"] == 0.0
        assert stats["profit_factor"] == 0.0
        assert stats["best_trade"] == 0.0
        assert stats["worst_trade"] == 0.0
        assert stats["equity_curve"] == []

    def test_open_trades_are_ignored(self):
        open_trade = Trade(
            id=9, symbol="EURUSD", direction=Direction.LONG, opened_at=MONDAY,
            risk_plan=RiskPlan(entry_price=1.0, position_size_lots=1.0),
        )
        assert calculate_stats([open_trade], 10_000.0)["total_trades"] == 0


class TestStreakAndPairs:
    def test_current_streak_is_latest_run(self):
        assert current_streak(_journal()) == {"type": "loss", "count": 1}
        assert current_streak(_journal()[:2]) == {"type": "win", "count": 2}
        assert current_streak([]) == {"type": "none", "count": 0}

    def test_pair_performance_merges_baseline_after_cutoff(self):
        performance = pair_performance(
            _journal(),
            baseline={"EURUSD": 1_000.0, "USDCHF": -20.0},
            since=MONDAY,
        )
        # trade 1 closed exactly at the cutoff and is already in the baseline
        assert performance == pytest.approx({
            "EURUSD": 950.0, "USDCHF": -20.0, "GBPUSD": 200.0,
        })


class TestDerivedBalance:
    def test_configured_balance_plus_pnl(self):
        assert derive_account_balance(AccountSettings(), _journal()) == pytest.approx(10_250.0)

    def test_report_baseline_only_adds_later_trades(self):
        settings = AccountSettings(
            report_balance=12_000.0,
            report_as_of=MONDAY + timedelta(hours=12),
        )
        assert derive_account_balance(settings, _journal()) == pytest.approx(12_150.0)
    def test_starting_balance_replays_to_derived_balance(self):
        settings = AccountSettings(
            report_balance=12_000.0,
            report_as_of=MONDAY + timedelta(hours=12),
        )
        start = starting_balance(settings, _journal())
        assert start == pytest.approx(11_900.0)
        curve = calculate_stats(_journal(), start)["equity_curve"]
        assert curve[-1]["balance"] == pytest.approx(derive_account_balance(settings, _journal()))

    def test_starting_balance_without_report_is_configured_balance(self):
        assert starting_balance(AccountSettings(), _journal()) == pytest.approx(10_000.0)

