"""Tests for the CLI dashboard output and the calc/status modes."""

import pytest

from app.cli.dashboard import print_plan, print_status
from app.main import _run_cli
from app.rates.provider import ExchangeRateProvider
from app.risk.currency import ExchangeRateTable


class TestDashboard:
    def test_plan_output(self, capsys):
        result = {
            "plan": {
                "risk_percentage": 1.0,
                "risk_reward_ratio": 2.0,
                "position_size_lots": 1.0,
            },
            "error": None,
            "warnings": {"risk": "Risk above 3% is aggressive."},
            "money_to_risk": 100.0,
            "potential_profit": 200.0,
            "pip_value": 10.0,
            "stop_distance_pips": 10.0,
            "can_commit": True,
        }
        output = print_plan("eurusd", "long", result)
        assert "EURUSD LONG" in output
        assert "1:2.00" in output
        assert "$100.00" in output
        assert "aggressive" in output
        assert capsys.readouterr().out.strip() == output.strip()

    def test_plan_error(self):
        output = print_plan("EURUSD", "short", {"plan": None, "error": "Stop loss must be above the entry."})
        assert "Stop loss must be above" in output

    def test_status_locked(self):
        output = print_status({
            "account_balance": 9_850.0,
            "dynamic_risk_percentage": 0.25,
            "cooldown_remaining_seconds": 125,
            "locked": True,
            "lock_reason": "Daily loss limit (1%) reached. Trading resumes tomorrow.",
            "daily_pnl": -150.0,
            "weekly_pnl": -150.0,
            "challenge_status": None,
        })
        assert "LOCKED" in output
        assert "2m 5s" in output
        assert "Trading resumes tomorrow" in output
        assert "Challenge" not in output


class TestCliModes:
    @pytest.fixture(autouse=True)
    def _env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("EXCHANGERATE_API_KEY", "test-key")
        monkeypatch.setenv("DB_PATH", str(tmp_path / "cli.db"))

        async def _rates(self):
            return ExchangeRateTable(rates={"USD": 1.0, "JPY": 150.0})

        monkeypatch.setattr(ExchangeRateProvider, "get_latest_rates", _rates)

    def test_calc_with_overrides(self, capsys):
        _run_cli([
            "calc", "USDJPY", "short",
            "--entry", "150.00", "--stop", "150.10", "--target", "149.50",
            "--balance", "10000", "--risk", "1",
        ])
        out = capsys.readouterr().out
        assert "USDJPY SHORT" in out
        assert "1:5.00" in out
        assert "1.50" in out

    def test_calc_uses_dynamic_risk(self, capsys):
        _run_cli([
            "calc", "EURUSD", "long",
            "--entry", "1.1000", "--stop", "1.0990", "--target", "1.1020",
        ])
        out = capsys.readouterr().out
        assert "0.25%" in out
        assert "$25.00" in out

    def test_status(self, capsys):
        _run_cli(["status"])
        out = capsys.readouterr().out
        assert "TradeCoach Status" in out
        assert "$10,000.00" in out
        assert "open" in out
