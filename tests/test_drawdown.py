"""Tests for app.risk.drawdown — peak and max drawdown tracking."""

import pytest

from app.risk.drawdown import DrawdownTracker


class TestDrawdownTracker:
    def test_initial_state(self):
        tracker = DrawdownTracker(10_000.0)
        assert tracker.peak_equity == 10_000.0
        assert tracker.drawdown == 0.0
        assert tracker.max_drawdown_pct == 0.0

    def test_peak_rises_with_equity(self):
        tracker = DrawdownTracker(10_000.0)
        tracker.update(10_500.0)
        assert tracker.peak_equity == 10_500.0
        assert tracker.drawdown == 0.0

    def test_max_drawdown_survives_recovery(self):
        tracker = DrawdownTracker(10_000.0)
        tracker.apply_pnl(500.0)    # 10,500 peak
        tracker.apply_pnl(-1_050.0)  # 9,450 trough
        tracker.apply_pnl(2_000.0)  # 11,450 new peak
        assert tracker.drawdown == 0.0
        assert tracker.max_drawdown == pytest.approx(1_050.0)
        assert tracker.max_drawdown_pct == pytest.approx(10.0)

    def test_zero_peak_reports_zero_pct(self):
        tracker = DrawdownTracker(0.0)
        tracker.update(-100.0)
        assert tracker.drawdown_pct == 0.0
