"""Tests for app.risk.pnl — the single realized-PnL formula."""

from datetime import datetime, timezone

import pytest

from app.models.trade import Direction, RiskPlan, Trade, TradeStatus
from app.risk.currency import ExchangeRateTable
from app.risk.pnl import compute_pips, compute_pnl, pip_value_per_lot

_OPENED = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)
_CLOSED = datetime(2025, 3, 3, 11, 0, tzinfo=timezone.utc)


def _trade(symbol="EURUSD", direction=Direction.LONG, entry=1.1000, lots=1.0) -> Trade:
    return Trade(
        id=1,
        symbol=symbol,
        direction=direction,
        opened_at=_OPENED,
        risk_plan=RiskPlan(risk_percentage=1.0, entry_price=entry, position_size_lots=lots),
    )


class TestComputePnl:
    def test_long_win(self):
        """Closing EURUSD long +10 pips on 1 lot → +$100."""
        trade = _trade().close(1.1010, "Target hit (TP)", _CLOSED)
        assert compute_pips(trade) == pytest.approx(10.0)
        assert compute_pnl(trade) == pytest.approx(100.0)

    def test_short_mirrors_long(self):
        long_trade = _trade().close(1.1025, None, _CLOSED)
        short_trade = _trade(direction=Direction.SHORT).close(1.1025, None, _CLOSED)
        assert compute_pnl(short_trade) == pytest.approx(-compute_pnl(long_trade))

    def test_usd_base_pair_uses_exit_price(self):
        trade = _trade("USDJPY", Direction.SHORT, entry=150.00, lots=1.5).close(149.50, None, _CLOSED)
        # 50 pips × (1000 JPY / 149.5) × 1.5 lots
        assert compute_pnl(trade) == pytest.approx(50 * 1000 / 149.5 * 1.5)

    def test_cross_pair_with_rates(self):
        rates = ExchangeRateTable(rates={"USD": 1.0, "GBP": 0.8})
        trade = _trade("EURGBP", entry=0.8600).close(0.8610, None, _CLOSED)
        # 10 pips × (10 GBP / 0.8) × 1 lot
        assert compute_pnl(trade, rates) == pytest.approx(125.0)

    def test_cross_pair_without_rates_falls_back_one_to_one(self):
        trade = _trade("EURGBP", entry=0.8600).close(0.8610, None, _CLOSED)
        assert compute_pnl(trade) == pytest.approx(100.0)

    def test_open_trade_has_no_pnl(self):
        assert compute_pnl(_trade()) is None

    def test_missing_lots_has_no_pnl(self):
        trade = _trade(lots=None).close(1.1010, None, _CLOSED)
        assert compute_pnl(trade) is None

    def test_missing_entry_has_no_pnl(self):
        trade = _trade(entry=None).close(1.1010, None, _CLOSED)
        assert compute_pips(trade) is None
        assert compute_pnl(trade) is None

    def test_bad_symbol_never_raises(self):
        trade = Trade(
            id=1, symbol="???", direction=Direction.LONG, opened_at=_OPENED,
            risk_plan=RiskPlan(entry_price=1.0, position_size_lots=1.0),
            status=TradeStatus.CLOSED, closed_at=_CLOSED, exit_price=1.1,
        )
        assert compute_pnl(trade) is None


class TestDirectionSymmetry:
    @pytest.mark.parametrize(
        "symbol, entry, exit_price, rates",
        [
            ("EURUSD", 1.1000, 1.1035, None),
            ("GBPUSD", 1.2700, 1.2650, None),
            ("EURGBP", 0.8600, 0.8625, ExchangeRateTable(rates={"USD": 1.0, "GBP": 0.8})),
            ("EURJPY", 162.00, 161.40, ExchangeRateTable(rates={"USD": 1.0, "JPY": 150.0})),
        ],
    )
    def test_swapping_direction_and_prices_keeps_pnl(self, symbol, entry, exit_price, rates):
        long_trade = _trade(symbol, Direction.LONG, entry=entry).close(exit_price, None, _CLOSED)
        short_trade = _trade(symbol, Direction.SHORT, entry=exit_price).close(entry, None, _CLOSED)
        assert compute_pnl(short_trade, rates) == pytest.approx(compute_pnl(long_trade, rates))

    def test_usd_base_pair_converts_at_exit_so_swap_differs(self):
        """USDJPY converts with the exit price, so the mirrored trade is not equal."""
        long_trade = _trade("USDJPY", Direction.LONG, entry=150.0).close(150.5, None, _CLOSED)
        short_trade = _trade("USDJPY", Direction.SHORT, entry=150.5).close(150.0, None, _CLOSED)
        assert compute_pnl(long_trade) == pytest.approx(332.2259, abs=1e-4)
        assert compute_pnl(short_trade) == pytest.approx(333.3333, abs=1e-4)


class TestPipValue:
    def test_eurusd(self):
        assert pip_value_per_lot("EURUSD", 1.1) == pytest.approx(10.0)

    def test_usdjpy(self):
        assert pip_value_per_lot("USDJPY", 100.0) == pytest.approx(10.0)
