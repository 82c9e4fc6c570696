"""Tests for app.repos — SQLite trade journal and session state."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from app.journal.checklist import PairState
from app.models.checklist import DEFAULT_CHECKLISTS, DEFAULT_SHORT_CHECKLIST
from app.models.settings import AccountSettings, ChallengeSettings
from app.models.trade import Direction, OptionSelection, RiskPlan, Trade, TradeStatus
from app.repos.db import get_connection, init_db
from app.repos.state_repo import StateRepo
from app.repos.trade_repo import TradeRepo
from app.risk.discipline import DisciplineState

OPENED = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "nested" / "journal.db")
    init_db(path)
    return path


def _trade(symbol: str = "EURUSD") -> Trade:
    return Trade(
        id=None,
        symbol=symbol,
        direction=Direction.SHORT,
        opened_at=OPENED,
        risk_plan=RiskPlan(
            risk_percentage=0.5,
            entry_price=1.1000,
            stop_loss_price=1.1010,
            take_profit_price=1.0970,
            risk_reward_ratio=3.0,
            position_size_lots=0.5,
        ),
    )


class TestTradeRepo:
    def test_insert_and_get_round_trip(self, db_path):
        repo = TradeRepo(db_path)
        trade_id = repo.insert_trade(_trade())
        stored = repo.get_trade(trade_id)
        assert stored.id == trade_id
        assert stored.direction is Direction.SHORT
        assert stored.status is TradeStatus.OPEN
        assert stored.opened_at == OPENED
        assert stored.risk_plan.position_size_lots == pytest.approx(0.5)
        assert stored.notes == ()

    def test_close_is_written_once(self, db_path):
        repo = TradeRepo(db_path)
        trade_id = repo.insert_trade(_trade())
        trade = repo.get_trade(trade_id)

        closed = trade.close(1.0970, "Target hit (TP)", OPENED + timedelta(hours=2))
        assert repo.close_trade(closed) is True
        assert repo.close_trade(closed) is False

        stored = repo.get_trade(trade_id)
        assert stored.status is TradeStatus.CLOSED
        assert stored.exit_price == pytest.approx(1.0970)
        assert stored.exit_reason == "Target hit (TP)"

    def test_notes_append(self, db_path):
        repo = TradeRepo(db_path)
        trade_id = repo.insert_trade(_trade())
        assert repo.add_note(trade_id, "Entered early") is True
        assert repo.add_note(trade_id, "Moved stop") is True
        assert repo.get_trade(trade_id).notes == ("Entered early", "Moved stop")
        assert repo.add_note(999, "nope") is False

    def test_list_filters_and_limits(self, db_path):
        repo = TradeRepo(db_path)
        ids = [repo.insert_trade(_trade(s)) for s in ("EURUSD", "GBPUSD", "USDJPY")]
        first = repo.get_trade(ids[0])
        repo.close_trade(first.close(1.1005, None, OPENED + timedelta(hours=1)))

        assert [t.symbol for t in repo.list_trades()] == ["EURUSD", "GBPUSD", "USDJPY"]
        assert [t.symbol for t in repo.list_trades(limit=2)] == ["GBPUSD", "USDJPY"]
        assert [t.id for t in repo.list_trades(status_filter=TradeStatus.CLOSED)] == [ids[0]]
        assert len(repo.list_trades(status_filter=TradeStatus.OPEN)) == 2

    def test_option_selections_round_trip(self, db_path):
        repo = TradeRepo(db_path)
        selections = (OptionSelection("ds-h-3", "Bearish reversal candle closed?", "Shooting Star"),)
        trade_id = repo.insert_trade(replace(_trade(), option_selections=selections))
        assert repo.get_trade(trade_id).option_selections == selections

    def test_unknown_trade(self, db_path):
        assert TradeRepo(db_path).get_trade(42) is None


class TestStateRepo:
    def test_discipline_defaults_and_round_trip(self, db_path):
        repo = StateRepo(db_path)
        assert repo.load_discipline() == DisciplineState()

        until = OPENED + timedelta(minutes=15)
        repo.save_discipline(DisciplineState(0.75, until))
        assert repo.load_discipline() == DisciplineState(0.75, until)

    def test_discipline_snaps_stored_risk(self, db_path):
        repo = StateRepo(db_path)
        repo.save_discipline(DisciplineState(dynamic_risk_percentage=2.3))
        assert repo.load_discipline().dynamic_risk_percentage == pytest.approx(1.0)

    def test_account_settings(self, db_path):
        repo = StateRepo(db_path)
        default = AccountSettings(account_balance=25_000.0)
        assert repo.load_account_settings(default) is default

        saved = AccountSettings(
            account_balance=5_000.0,
            daily_loss_limit_pct=2.0,
            weekly_loss_limit_pct=4.0,
            report_balance=5_250.0,
            report_as_of=OPENED,
        )
        repo.save_account_settings(saved)
        assert repo.load_account_settings(default) == saved

    def test_challenge(self, db_path):
        repo = StateRepo(db_path)
        assert repo.load_challenge() is None
        challenge = ChallengeSettings(
            is_active=True, start_date=OPENED, account_size=50_000.0, min_trading_days=5,
        )
        repo.save_challenge(challenge)
        assert repo.load_challenge() == challenge

    def test_checklists_default_until_saved(self, db_path):
        repo = StateRepo(db_path)
        assert repo.load_checklists(DEFAULT_CHECKLISTS) == DEFAULT_CHECKLISTS

        swapped = {Direction.LONG: DEFAULT_SHORT_CHECKLIST, Direction.SHORT: DEFAULT_SHORT_CHECKLIST}
        repo.save_checklists(swapped)
        assert repo.load_checklists(DEFAULT_CHECKLISTS) == swapped

    def test_pairs_round_trip(self, db_path):
        repo = StateRepo(db_path)
        assert repo.load_pairs() == {}
        pairs = {
            "EURUSD": PairState(
                symbol="EURUSD",
                direction=Direction.LONG,
                answers={"dl-h-1": True, "dl-h-2": None},
                option_selections={"dl-h-3": "Hammer"},
            ),
            "USDJPY": PairState(symbol="USDJPY"),
        }
        repo.save_pairs(pairs)
        assert repo.load_pairs() == pairs

    def test_init_db_is_idempotent(self, db_path):
        TradeRepo(db_path).insert_trade(_trade())
        init_db(db_path)
        assert len(TradeRepo(db_path).list_trades()) == 1

        conn = get_connection(db_path)
        try:
            assert conn.execute("PRAGMA user_version").fetchone()[0] == 2
        finally:
            conn.close()
