"""Trade repository — SQLite CRUD for the trades table."""

import json
import sqlite3
from dataclasses import asdict
from datetime import datetime
from typing import Optional

from app.models.trade import Direction, OptionSelection, RiskPlan, Trade, TradeStatus
from app.repos.db import get_connection


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_trade(row: sqlite3.Row) -> Trade:
    return Trade(
        id=row["id"],
        symbol=row["symbol"],
        direction=Direction(row["direction"]),
        status=TradeStatus(row["status"]),
        opened_at=_parse_ts(row["opened_at"]),
        closed_at=_parse_ts(row["closed_at"]),
        risk_plan=RiskPlan(
            risk_percentage=row["risk_percentage"],
            entry_price=row["entry_price"],
            stop_loss_price=row["stop_loss_price"],
            take_profit_price=row["take_profit_price"],
            risk_reward_ratio=row["risk_reward_ratio"],
            position_size_lots=row["position_size_lots"],
        ),
        exit_price=row["exit_price"],
        exit_reason=row["exit_reason"],
        notes=tuple(json.loads(row["notes"] or "[]")),
        option_selections=tuple(
            OptionSelection(**selection)
            for selection in json.loads(row["option_selections"] or "[]")
        ),
    )


class TradeRepo:
    """Data access layer for journal trades.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def insert_trade(self, trade: Trade) -> int:
        """Insert a new open trade and return its ``id``."""
        plan = trade.risk_plan
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO trades
                    (symbol, direction, status, opened_at, risk_percentage,
                     entry_price, stop_loss_price, take_profit_price,
                     risk_reward_ratio, position_size_lots, notes,
                     option_selections)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    trade.symbol, trade.direction.value, trade.status.value,
                    trade.opened_at.isoformat(), plan.risk_percentage,
                    plan.entry_price, plan.stop_loss_price,
                    plan.take_profit_price, plan.risk_reward_ratio,
                    plan.position_size_lots, json.dumps(list(trade.notes)),
                    json.dumps([asdict(s) for s in trade.option_selections]),
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def close_trade(self, trade: Trade) -> bool:
        """Persist the exit fields of a closed trade.

        Only rows still ``open`` are updated, so a trade's exit is written
        exactly once.  Returns ``True`` when a row changed.
        """
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                UPDATE trades
                SET exit_price = ?, exit_reason = ?,
                    status = 'closed', closed_at = ?
                WHERE id = ? AND status = 'open'
                """,
                (
                    trade.exit_price, trade.exit_reason,
                    trade.closed_at.isoformat(), trade.id,
                ),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def add_note(self, trade_id: int, note: str) -> bool:
        """Append *note* to a trade.  Returns ``False`` for an unknown id."""
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT notes FROM trades WHERE id = ?", (trade_id,)
            ).fetchone()
            if row is None:
                return False
            notes = json.loads(row["notes"] or "[]")
            notes.append(note)
            conn.execute(
                "UPDATE trades SET notes = ? WHERE id = ?",
                (json.dumps(notes), trade_id),
            )
            conn.commit()
            return True
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_trade(self, trade_id: int) -> Optional[Trade]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT * FROM trades WHERE id = ?", (trade_id,)
            ).fetchone()
            return _row_to_trade(row) if row else None
        finally:
            conn.close()

    def list_trades(
        self,
        status_filter: Optional[TradeStatus] = None,
        limit: Optional[int] = None,
    ) -> list[Trade]:
        """Return trades in the order they were opened.

        With *limit*, only the most recent *limit* trades are returned
        (still oldest first).
        """
        conn = get_connection(self._db_path)
        try:
            where_clause = ""
            params: list = []
            if status_filter is not None:
                where_clause = "WHERE status = ?"
                params.append(status_filter.value)

            if limit is not None:
                rows = conn.execute(
                    f"SELECT * FROM trades {where_clause} ORDER BY id DESC LIMIT ?",
                    (*params, limit),
                ).fetchall()
                rows = list(reversed(rows))
            else:
                rows = conn.execute(
                    f"SELECT * FROM trades {where_clause} ORDER BY id ASC",
                    params,
                ).fetchall()
            return [_row_to_trade(row) for row in rows]
        finally:
            conn.close()
