"""Tests for app.risk.challenge — funded-account challenge monitor."""

from datetime import datetime, timedelta, timezone

import pytest

from app.models.settings import ChallengeSettings
from app.models.trade import Direction, RiskPlan, Trade
from app.risk.challenge import ChallengeStatus, compute_challenge_metrics

UTC = timezone.utc
MONDAY = datetime(2025, 3, 3, tzinfo=UTC)
NOW = MONDAY + timedelta(days=2, hours=14)  # Wednesday afternoon


def _closed(pips: float, lots: float, closed_at: datetime, trade_id: int = 1) -> Trade:
    """EURUSD long; PnL = pips × $10 × lots."""
    trade = Trade(
        id=trade_id,
        symbol="EURUSD",
        direction=Direction.LONG,
        opened_at=closed_at - timedelta(minutes=30),
        risk_plan=RiskPlan(risk_percentage=1.0, entry_price=1.1000, position_size_lots=lots),
    )
    return trade.close(1.1000 + pips / 10_000, None, closed_at)


def _settings(**overrides) -> ChallengeSettings:
    values = dict(is_active=True, start_date=MONDAY, account_size=10_000.0)
    values.update(overrides)
    return ChallengeSettings(**values)


def _profit_over_three_days() -> list[Trade]:
    """+$850 spread over Monday, Tuesday and Wednesday."""
    return [
        _closed(10, 3.0, MONDAY + timedelta(hours=10), trade_id=1),
        _closed(10, 3.0, MONDAY + timedelta(days=1, hours=10), trade_id=2),
        _closed(10, 2.5, MONDAY + timedelta(days=2, hours=10), trade_id=3),
    ]


class TestChallengeStatus:
    def test_target_before_min_days_stays_passing(self):
        metrics = compute_challenge_metrics(
            _profit_over_three_days(), _settings(min_trading_days=5), NOW,
        )
        assert metrics.net_profit == pytest.approx(850.0)
        assert metrics.profit_target_amount == pytest.approx(800.0)
        assert metrics.profit_target_progress == pytest.approx(100.0)
        assert metrics.trading_days_count == 3
        assert metrics.status is ChallengeStatus.PASSING

    def test_complete_once_min_days_met(self):
        metrics = compute_challenge_metrics(
            _profit_over_three_days(), _settings(min_trading_days=3), NOW,
        )
        assert metrics.status is ChallengeStatus.COMPLETE

    def test_daily_breach_fails_even_with_target_met(self):
        trades = [
            _closed(10, 15.0, MONDAY + timedelta(hours=10), trade_id=1),  # +1,500
            _closed(-30, 2.0, NOW - timedelta(hours=1), trade_id=2),      # -600 today
        ]
        metrics = compute_challenge_metrics(trades, _settings(min_trading_days=1), NOW)
        assert metrics.net_profit == pytest.approx(900.0)
        assert metrics.current_daily_loss == pytest.approx(600.0)
        assert metrics.status is ChallengeStatus.FAILED

    def test_total_drawdown_breach_fails(self):
        trades = [
            _closed(50, 2.0, MONDAY + timedelta(hours=10), trade_id=1),   # +1,000 peak
            _closed(-60, 1.0, MONDAY + timedelta(hours=11), trade_id=2),  # -600
            _closed(-50, 1.0, MONDAY + timedelta(hours=12), trade_id=3),  # -500
        ]
        metrics = compute_challenge_metrics(trades, _settings(), NOW)
        assert metrics.current_total_drawdown == pytest.approx(1_100.0)
        assert metrics.status is ChallengeStatus.FAILED

    def test_expired_after_time_limit(self):
        settings = _settings(start_date=NOW - timedelta(days=31))
        metrics = compute_challenge_metrics([], settings, NOW)
        assert metrics.days_remaining == 0
        assert metrics.status is ChallengeStatus.EXPIRED

    def test_caution_above_eighty_percent_of_drawdown(self):
        trades = [_closed(-85, 1.0, MONDAY + timedelta(days=1, hours=10))]
        metrics = compute_challenge_metrics(trades, _settings(), NOW)
        assert metrics.total_drawdown_progress == pytest.approx(85.0)
        assert metrics.daily_loss_progress == 0.0
        assert metrics.status is ChallengeStatus.CAUTION

    def test_zero_limits_are_disabled(self):
        trades = [_closed(-200, 1.0, NOW - timedelta(hours=1))]
        settings = _settings(daily_loss_limit_pct=0.0, max_total_drawdown_pct=0.0)
        metrics = compute_challenge_metrics(trades, settings, NOW)
        assert metrics.status is ChallengeStatus.PASSING
        assert metrics.total_drawdown_progress == 0.0


class TestChallengeWindow:
    def test_trades_before_start_are_ignored(self):
        trades = [_closed(-500, 1.0, MONDAY - timedelta(days=1))]
        metrics = compute_challenge_metrics(trades, _settings(), NOW)
        assert metrics.net_profit == 0.0
        assert metrics.trading_days_count == 0

    def test_days_active_and_remaining(self):
        metrics = compute_challenge_metrics([], _settings(), NOW)
        assert metrics.days_active == 3
        assert metrics.days_remaining == 27

    def test_no_challenge(self):
        assert compute_challenge_metrics([], None, NOW) is None
        assert compute_challenge_metrics([], _settings(is_active=False), NOW) is None
