"""Internal API routers — /risk, /trades, /pairs, /checklists, /discipline, /challenge, /stats, /settings.

No business logic, no DB access. Delegates to the ``TradingCoach`` service
and the exchange-rate provider injected at startup.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query

from app.journal.checklist import ChecklistError, PairState
from app.journal.service import AnalysisNotFound, TradeNotFound, TradeRejected
from app.models.checklist import Checklist
from app.models.settings import ACCOUNT_SIZES
from app.models.trade import Direction, Trade, TradeStatus
from app.risk.currency import ExchangeRateTable
from app.risk.pnl import compute_pips, compute_pnl
from app.risk.position_sizer import RiskInputs, compute_risk_plan

logger = logging.getLogger("tradecoach")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_coach = None           # Set via configure_routers()
_rates_provider = None  # Set via configure_routers()

_NOT_CONFIGURED = {"status": "error", "errors": ["service not configured"]}


def configure_routers(coach, rates_provider=None) -> None:
    """Inject dependencies from the application startup.

    Args:
        coach: A ``TradingCoach`` instance (or duck-type for tests).
        rates_provider: An ``ExchangeRateProvider`` for live rates.
    """
    global _coach, _rates_provider  # noqa: PLW0603
    _coach = coach
    _rates_provider = rates_provider


async def _latest_rates() -> Optional[ExchangeRateTable]:
    if _rates_provider is None:
        return None
    return await _rates_provider.get_latest_rates()


# ── Parsing helpers ──────────────────────────────────────────────────────


def _parse_float(body: dict, key: str, errors: list[str]) -> Optional[float]:
    """Read an optional number; blank means "not entered yet"."""
    value = body.get(key)
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        errors.append(f"{key} must be a number")
        return None
    if not math.isfinite(number):
        errors.append(f"{key} must be a finite number")
        return None
    return number


def _parse_direction(body: dict, errors: list[str]) -> Optional[Direction]:
    try:
        return Direction(str(body.get("direction", "")).lower())
    except ValueError:
        errors.append("direction must be 'long' or 'short'")
        return None


def _trade_to_dict(trade: Trade, rates: Optional[ExchangeRateTable]) -> dict:
    plan = trade.risk_plan
    pnl = compute_pnl(trade, rates)
    pips = compute_pips(trade)
    return {
        "id": trade.id,
        "symbol": trade.symbol,
        "direction": trade.direction.value,
        "status": trade.status.value,
        "opened_at": trade.opened_at.isoformat(),
        "closed_at": trade.closed_at.isoformat() if trade.closed_at else None,
        "risk_plan": {
            "risk_percentage": plan.risk_percentage,
            "entry_price": plan.entry_price,
            "stop_loss_price": plan.stop_loss_price,
            "take_profit_price": plan.take_profit_price,
            "risk_reward_ratio": plan.risk_reward_ratio,
            "position_size_lots": plan.position_size_lots,
        },
        "exit_price": trade.exit_price,
        "exit_reason": trade.exit_reason,
        "notes": list(trade.notes),
        "option_selections": [
            {
                "question_id": s.question_id,
                "question_text": s.question_text,
                "selected_option": s.selected_option,
            }
            for s in trade.option_selections
        ],
        "pnl": round(pnl, 2) if pnl is not None else None,
        "pips": round(pips, 1) if pips is not None else None,
    }


# ── Endpoints ────────────────────────────────────────────────────────────


@router.post("/risk/plan")
async def post_risk_plan(body: dict):
    """Compute a risk plan.

    When ``account_balance`` and ``risk_percentage`` are supplied the
    request runs in standalone calculator mode; otherwise the derived
    balance and the current dynamic risk percentage are used.
    """
    errors: list[str] = []
    direction = _parse_direction(body, errors)
    entry = _parse_float(body, "entry_price", errors)
    stop_loss = _parse_float(body, "stop_loss_price", errors)
    take_profit = _parse_float(body, "take_profit_price", errors)
    balance = _parse_float(body, "account_balance", errors)
    risk_pct = _parse_float(body, "risk_percentage", errors)
    if errors:
        return {"status": "error", "errors": errors}

    symbol = str(body.get("symbol", ""))
    rates = await _latest_rates()
    if balance is not None and risk_pct is not None:
        calc = compute_risk_plan(
            RiskInputs(symbol, direction, balance, risk_pct, entry, stop_loss, take_profit),
            rates,
        )
    elif _coach is not None:
        calc = _coach.plan_trade(symbol, direction, entry, stop_loss, take_profit, rates)
    else:
        return _NOT_CONFIGURED
    return {"status": "ok", **calc.to_dict()}


@router.get("/rates")
async def get_rates():
    """Return the current exchange-rate snapshot."""
    rates = await _latest_rates()
    if rates is None:
        rates = ExchangeRateTable.usd_only()
    return rates.to_dict()


@router.get("/trades")
async def get_trades(
    limit: int = Query(default=50, ge=1, le=500),
    status: Optional[str] = Query(default=None),
):
    """Return journal trades, oldest first, with their PnL."""
    if _coach is None:
        return {"trades": [], "total": 0}
    try:
        status_filter = TradeStatus(status) if status else None
    except ValueError:
        return {"status": "error", "errors": ["status must be 'open' or 'closed'"]}
    rates = await _latest_rates()
    trades = _coach.trades(status=status_filter, limit=limit)
    return {
        "trades": [_trade_to_dict(t, rates) for t in trades],
        "total": len(trades),
    }


@router.post("/trades")
async def post_trade(body: dict):
    """Commit a risk plan as a new open trade."""
    if _coach is None:
        return _NOT_CONFIGURED

    errors: list[str] = []
    direction = _parse_direction(body, errors)
    entry = _parse_float(body, "entry_price", errors)
    stop_loss = _parse_float(body, "stop_loss_price", errors)
    take_profit = _parse_float(body, "take_profit_price", errors)
    if errors:
        return {"status": "error", "errors": errors}

    rates = await _latest_rates()
    try:
        trade = _coach.open_trade(
            str(body.get("symbol", "")), direction, entry, stop_loss, take_profit,
            rates=rates,
        )
    except TradeRejected as exc:
        return {"status": "rejected", "reason": str(exc)}
    return {"status": "ok", "trade": _trade_to_dict(trade, rates)}


@router.post("/trades/{trade_id}/close")
async def post_close_trade(trade_id: int, body: dict):
    """Close an open trade at ``exit_price``."""
    if _coach is None:
        return _NOT_CONFIGURED

    errors: list[str] = []
    exit_price = _parse_float(body, "exit_price", errors)
    if exit_price is None and not errors:
        errors.append("exit_price is required")
    if errors:
        return {"status": "error", "errors": errors}

    rates = await _latest_rates()
    try:
        trade = _coach.close_trade(
            trade_id, exit_price, body.get("exit_reason"), rates=rates,
        )
    except TradeNotFound as exc:
        return {"status": "error", "errors": [str(exc)]}
    except TradeRejected as exc:
        return {"status": "rejected", "reason": str(exc)}
    return {
        "status": "ok",
        "trade": _trade_to_dict(trade, rates),
        "discipline": _discipline_dict(),
    }


@router.post("/trades/{trade_id}/notes")
async def post_trade_note(trade_id: int, body: dict):
    """Append a free-text note to a trade."""
    if _coach is None:
        return _NOT_CONFIGURED

    note = str(body.get("note", "")).strip()
    if not note:
        return {"status": "error", "errors": ["note must not be empty"]}
    try:
        trade = _coach.add_note(trade_id, note)
    except TradeNotFound as exc:
        return {"status": "error", "errors": [str(exc)]}
    return {"status": "ok", "trade": _trade_to_dict(trade, await _latest_rates())}


@router.post("/pairs/select")
async def post_select_pair(body: dict):
    """Ask whether a new trade analysis may start on ``symbol``."""
    if _coach is None:
        return _NOT_CONFIGURED
    selection = _coach.select_pair(str(body.get("symbol", "")))
    return {"allowed": selection.allowed, "reason": selection.reason}


# ── Entry checklist ──────────────────────────────────────────────────────


def _pair_dict(state: PairState) -> dict:
    return {
        "symbol": state.symbol,
        "direction": state.direction.value if state.direction else None,
        "answers": dict(state.answers),
        "option_selections": dict(state.option_selections),
        "progress": _coach.checklist_progress(state.symbol).to_dict(),
    }


@router.get("/checklists")
async def get_checklists():
    """Return the active checklist for each direction."""
    if _coach is None:
        return _NOT_CONFIGURED
    return {d.value: _coach.checklist_for(d).to_dict() for d in Direction}


@router.put("/checklists/{direction}")
async def put_checklist(direction: str, body: dict):
    """Replace the active checklist for ``long`` or ``short``."""
    if _coach is None:
        return _NOT_CONFIGURED
    errors: list[str] = []
    side = _parse_direction({"direction": direction}, errors)
    if errors:
        return {"status": "error", "errors": errors}
    try:
        checklist = Checklist.from_dict(body)
    except ValueError as exc:
        return {"status": "error", "errors": [str(exc)]}
    _coach.set_checklist(side, checklist)
    return {"status": "ok", "checklist": checklist.to_dict()}


@router.get("/pairs")
async def get_pairs():
    """Return every analysis in progress."""
    if _coach is None:
        return {"pairs": []}
    return {"pairs": [_pair_dict(state) for state in _coach.pairs()]}


@router.get("/pairs/{symbol}")
async def get_pair(symbol: str):
    if _coach is None:
        return _NOT_CONFIGURED
    try:
        return {"status": "ok", "pair": _pair_dict(_coach.pair_state(symbol))}
    except AnalysisNotFound as exc:
        return {"status": "error", "errors": [str(exc)]}


@router.post("/pairs/{symbol}/analysis")
async def post_pair_analysis(symbol: str, body: dict):
    """Start the entry checklist for ``symbol`` in ``direction``."""
    if _coach is None:
        return _NOT_CONFIGURED
    errors: list[str] = []
    direction = _parse_direction(body, errors)
    if errors:
        return {"status": "error", "errors": errors}
    try:
        state = _coach.start_analysis(symbol, direction)
    except TradeRejected as exc:
        return {"status": "rejected", "reason": str(exc)}
    return {"status": "ok", "pair": _pair_dict(state)}


@router.post("/pairs/{symbol}/answers")
async def post_pair_answer(symbol: str, body: dict):
    """Answer one checklist question.

    ``answer`` is a boolean for yes/no and options items and a string
    for value items; ``option`` names the pattern for options items.
    """
    if _coach is None:
        return _NOT_CONFIGURED
    item_id = str(body.get("item_id", "")).strip()
    if not item_id:
        return {"status": "error", "errors": ["item_id is required"]}
    option = body.get("option")
    try:
        state = _coach.answer_checklist(
            symbol, item_id, body.get("answer"),
            option=str(option) if option is not None else None,
        )
    except (AnalysisNotFound, ChecklistError) as exc:
        return {"status": "error", "errors": [str(exc)]}
    return {"status": "ok", "pair": _pair_dict(state)}


@router.delete("/pairs/{symbol}")
async def delete_pair(symbol: str):
    """Drop an analysis in progress."""
    if _coach is None:
        return _NOT_CONFIGURED
    return {"status": "ok", "removed": _coach.remove_pair(symbol)}


# ── Discipline ───────────────────────────────────────────────────────────


def _discipline_dict() -> dict:
    state = _coach.discipline
    lock = _coach.lock_status()
    return {
        "dynamic_risk_percentage": state.dynamic_risk_percentage,
        "cooldown_until": state.cooldown_until.isoformat() if state.cooldown_until else None,
        "cooldown_remaining_seconds": int(_coach.cooldown_remaining().total_seconds()),
        "locked": lock.locked,
        "lock_reason": lock.reason,
        "daily_pnl": round(lock.daily_pnl, 2),
        "weekly_pnl": round(lock.weekly_pnl, 2),
    }


@router.get("/discipline")
async def get_discipline():
    """Return dynamic risk, cooldown and circuit-breaker status."""
    if _coach is None:
        return _NOT_CONFIGURED
    return _discipline_dict()


@router.post("/discipline/tick")
async def post_discipline_tick():
    """Expire a finished cooldown; returns the one-time notification."""
    if _coach is None:
        return _NOT_CONFIGURED
    return {"notification": _coach.tick()}


# ── Challenge ────────────────────────────────────────────────────────────


@router.get("/challenge")
async def get_challenge():
    """Return the active challenge's metrics, or ``null``."""
    if _coach is None:
        return {"challenge": None}
    metrics = _coach.challenge_metrics(rates=await _latest_rates())
    if metrics is None:
        return {"challenge": None}
    return {
        "challenge": {
            "current_daily_loss": round(metrics.current_daily_loss, 2),
            "max_daily_loss_amount": round(metrics.max_daily_loss_amount, 2),
            "daily_loss_progress": round(metrics.daily_loss_progress, 2),
            "current_total_drawdown": round(metrics.current_total_drawdown, 2),
            "max_total_drawdown_amount": round(metrics.max_total_drawdown_amount, 2),
            "total_drawdown_progress": round(metrics.total_drawdown_progress, 2),
            "net_profit": round(metrics.net_profit, 2),
            "profit_target_amount": round(metrics.profit_target_amount, 2),
            "profit_target_progress": round(metrics.profit_target_progress, 2),
            "trading_days_count": metrics.trading_days_count,
            "min_trading_days": metrics.min_trading_days,
            "days_active": metrics.days_active,
            "days_remaining": metrics.days_remaining,
            "status": metrics.status.value,
        }
    }


@router.post("/challenge")
async def post_challenge(body: dict):
    """Start a new challenge.

    Validates ranges before applying.
    """
    if _coach is None:
        return _NOT_CONFIGURED
    errors: list[str] = []
    account_size = _parse_float(body, "account_size", errors)
    if account_size is None or account_size not in ACCOUNT_SIZES:
        errors.append(f"account_size must be one of {ACCOUNT_SIZES}")

    rules = {}
    for key in ("daily_loss_limit_pct", "max_total_drawdown_pct", "profit_target_pct"):
        v = _parse_float(body, key, errors)
        if v is None:
            continue
        if not 0.0 < v <= 100.0:
            errors.append(f"{key} must be 0–100")
        else:
            rules[key] = v
    for key in ("time_limit_days", "min_trading_days"):
        if key in body:
            try:
                v = int(body[key])
            except (TypeError, ValueError):
                errors.append(f"{key} must be an integer")
                continue
            if v < 0:
                errors.append(f"{key} must not be negative")
            else:
                rules[key] = v
    if errors:
        return {"status": "error", "errors": errors}

    settings = _coach.start_challenge(account_size, **rules)
    return {"status": "ok", "start_date": settings.start_date.isoformat()}


@router.delete("/challenge")
async def delete_challenge():
    """Deactivate the current challenge."""
    if _coach is None:
        return _NOT_CONFIGURED
    settings = _coach.stop_challenge()
    return {"status": "ok", "active": bool(settings and settings.is_active)}


# ── Stats ────────────────────────────────────────────────────────────────


@router.get("/stats")
async def get_stats():
    """Return journal performance statistics."""
    if _coach is None:
        return _NOT_CONFIGURED
    return _coach.stats(await _latest_rates())


# ── Settings ─────────────────────────────────────────────────────────────


def _settings_dict() -> dict:
    s = _coach.settings
    return {
        "account_balance": s.account_balance,
        "daily_loss_limit_pct": s.daily_loss_limit_pct,
        "weekly_loss_limit_pct": s.weekly_loss_limit_pct,
        "report_balance": s.report_balance,
        "report_as_of": s.report_as_of.isoformat() if s.report_as_of else None,
    }


@router.get("/settings")
async def get_settings():
    """Return current account settings."""
    if _coach is None:
        return _NOT_CONFIGURED
    return _settings_dict()


@router.post("/settings")
async def post_settings(body: dict):
    """Update account settings.

    Validates ranges before applying. Returns updated settings.
    """
    if _coach is None:
        return _NOT_CONFIGURED
    errors: list[str] = []
    fields: dict = {}

    v = _parse_float(body, "account_balance", errors)
    if v is not None:
        if v < 0:
            errors.append("account_balance must not be negative")
        else:
            fields["account_balance"] = v

    for key in ("daily_loss_limit_pct", "weekly_loss_limit_pct"):
        v = _parse_float(body, key, errors)
        if v is None:
            continue
        if not 0.0 <= v <= 100.0:
            errors.append(f"{key} must be 0–100")
        else:
            fields[key] = round(v, 2)

    if "report_balance" in body:
        v = _parse_float(body, "report_balance", errors)
        as_of = body.get("report_as_of")
        if v is None:
            fields["report_balance"] = None
            fields["report_as_of"] = None
        elif not as_of:
            errors.append("report_as_of is required with report_balance")
        else:
            try:
                fields["report_balance"] = v
                fields["report_as_of"] = datetime.fromisoformat(str(as_of))
            except ValueError:
                errors.append("report_as_of must be an ISO-8601 timestamp")

    if errors:
        return {"status": "error", "errors": errors}

    _coach.update_settings(**fields)
    return {"status": "ok", **_settings_dict()}
