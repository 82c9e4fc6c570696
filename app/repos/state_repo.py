"""Session state repository — single-row JSON documents in ``app_state``.

Holds the discipline state, the account settings, the challenge
settings, the active entry checklists and the analyses in progress.  Each is stored under its own key and replaced whole.
"""

import json
from datetime import datetime, timezone
from typing import Optional

from app.journal.checklist import PairState
from app.models.checklist import Checklist
from app.models.settings import AccountSettings, ChallengeSettings
from app.models.trade import Direction
from app.repos.db import get_connection
from app.risk.discipline import DisciplineState, snap_risk_percentage

_DISCIPLINE_KEY = "discipline"
_ACCOUNT_KEY = "account_settings"
_CHALLENGE_KEY = "challenge"
_CHECKLISTS_KEY = "checklists"
_PAIRS_KEY = "pairs"


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class StateRepo:
    """Data access layer for persisted session state.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _get(self, key: str) -> Optional[dict]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT value FROM app_state WHERE key = ?", (key,)
            ).fetchone()
            return json.loads(row["value"]) if row else None
        finally:
            conn.close()

    def _put(self, key: str, value: dict) -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO app_state (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE
                    SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, json.dumps(value), datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        finally:
            conn.close()

    # ── Discipline ───────────────────────────────────────────────────────

    def load_discipline(self) -> DisciplineState:
        """Return the stored state, or the initial state when none exists."""
        data = self._get(_DISCIPLINE_KEY)
        if data is None:
            return DisciplineState()
        return DisciplineState(
            dynamic_risk_percentage=snap_risk_percentage(
                data.get("dynamic_risk_percentage")
            ),
            cooldown_until=_parse_ts(data.get("cooldown_until")),
        )

    def save_discipline(self, state: DisciplineState) -> None:
        self._put(_DISCIPLINE_KEY, {
            "dynamic_risk_percentage": state.dynamic_risk_percentage,
            "cooldown_until": _ts(state.cooldown_until),
        })

    # ── Account settings ─────────────────────────────────────────────────

    def load_account_settings(self, default: AccountSettings) -> AccountSettings:
        data = self._get(_ACCOUNT_KEY)
        if data is None:
            return default
        return AccountSettings(
            account_balance=data["account_balance"],
            daily_loss_limit_pct=data["daily_loss_limit_pct"],
            weekly_loss_limit_pct=data["weekly_loss_limit_pct"],
            report_balance=data.get("report_balance"),
            report_as_of=_parse_ts(data.get("report_as_of")),
        )

    def save_account_settings(self, settings: AccountSettings) -> None:
        self._put(_ACCOUNT_KEY, {
            "account_balance": settings.account_balance,
            "daily_loss_limit_pct": settings.daily_loss_limit_pct,
            "weekly_loss_limit_pct": settings.weekly_loss_limit_pct,
            "report_balance": settings.report_balance,
            "report_as_of": _ts(settings.report_as_of),
        })

    # ── Challenge ────────────────────────────────────────────────────────

    def load_challenge(self) -> Optional[ChallengeSettings]:
        data = self._get(_CHALLENGE_KEY)
        if data is None:
            return None
        return ChallengeSettings(
            is_active=data["is_active"],
            start_date=_parse_ts(data["start_date"]),
            account_size=data["account_size"],
            daily_loss_limit_pct=data["daily_loss_limit_pct"],
            max_total_drawdown_pct=data["max_total_drawdown_pct"],
            profit_target_pct=data["profit_target_pct"],
            time_limit_days=data["time_limit_days"],
            min_trading_days=data["min_trading_days"],
        )

    def save_challenge(self, settings: ChallengeSettings) -> None:
        self._put(_CHALLENGE_KEY, {
            "is_active": settings.is_active,
            "start_date": _ts(settings.start_date),
            "account_size": settings.account_size,
            "daily_loss_limit_pct": settings.daily_loss_limit_pct,
            "max_total_drawdown_pct": settings.max_total_drawdown_pct,
            "profit_target_pct": settings.profit_target_pct,
            "time_limit_days": settings.time_limit_days,
            "min_trading_days": settings.min_trading_days,
        })

    # ── Checklists ───────────────────────────────────────────────────────

    def load_checklists(self, defaults: dict[Direction, Checklist]) -> dict[Direction, Checklist]:
        """Active checklist per direction; *defaults* fill the gaps."""
        stored = self._get(_CHECKLISTS_KEY) or {}
        checklists = dict(defaults)
        for direction in Direction:
            if direction.value in stored:
                checklists[direction] = Checklist.from_dict(stored[direction.value])
        return checklists

    def save_checklists(self, checklists: dict[Direction, Checklist]) -> None:
        self._put(_CHECKLISTS_KEY, {
            direction.value: checklist.to_dict()
            for direction, checklist in checklists.items()
        })

    # ── Pairs under analysis ─────────────────────────────────────────────

    def load_pairs(self) -> dict[str, PairState]:
        stored = self._get(_PAIRS_KEY) or {}
        return {
            symbol: PairState(
                symbol=symbol,
                direction=Direction(data["direction"]) if data.get("direction") else None,
                answers=dict(data.get("answers") or {}),
                option_selections=dict(data.get("option_selections") or {}),
            )
            for symbol, data in stored.items()
        }

    def save_pairs(self, pairs: dict[str, PairState]) -> None:
        self._put(_PAIRS_KEY, {
            symbol: {
                "direction": state.direction.value if state.direction else None,
                "answers": state.answers,
                "option_selections": state.option_selections,
            }
            for symbol, state in pairs.items()
        })
