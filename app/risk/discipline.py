"""Trading-discipline guardrails — pure state transitions, no I/O.

Three guardrails sit in front of every new trade:

* a dynamic risk percentage that ratchets up after wins and down after
  losses in steps of 0.25 within [0.25, 1.0];
* a 15-minute cooldown after every losing trade;
* daily and weekly loss-limit circuit breakers, re-derived from the
  trade history on every call rather than stored.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable, Optional

from app.models.settings import AccountSettings
from app.models.trade import Trade
from app.risk.currency import ExchangeRateTable
from app.risk.periods import align_tz, local_now, start_of_day, start_of_week
from app.risk.pnl import compute_pnl

logger = logging.getLogger("tradecoach")

RISK_STEP = 0.25
MIN_RISK_PCT = 0.25
MAX_RISK_PCT = 1.0
COOLDOWN_DURATION = timedelta(minutes=15)

COOLDOWN_REASON = "Trading is paused for a reflection period after a loss."
COOLDOWN_OVER_MESSAGE = "Reflection period over. You can trade again."


@dataclass(frozen=True)
class DisciplineState:
    """Session-owned discipline state, replaced whole on every change."""

    dynamic_risk_percentage: float = MIN_RISK_PCT
    cooldown_until: Optional[datetime] = None


@dataclass(frozen=True)
class LockStatus:
    """Circuit-breaker verdict for the current day and week."""

    locked: bool
    reason: Optional[str] = None
    daily_pnl: float = 0.0
    weekly_pnl: float = 0.0


@dataclass(frozen=True)
class PairSelection:
    allowed: bool
    reason: Optional[str] = None


def snap_risk_percentage(value: Optional[float]) -> float:
    """Round *value* onto the 0.25 grid and clamp it to [0.25, 1.0].

    Used when restoring a persisted or imported value.
    """
    if value is None:
        return MIN_RISK_PCT
    snapped = round(value / RISK_STEP) * RISK_STEP
    return min(MAX_RISK_PCT, max(MIN_RISK_PCT, snapped))


# ── Transitions ──────────────────────────────────────────────────────────


def apply_trade_closed(
    trade: Trade,
    state: DisciplineState,
    now: Optional[datetime] = None,
    rates: Optional[ExchangeRateTable] = None,
) -> DisciplineState:
    """Advance *state* for a trade that has just been closed.

    A win raises the risk percentage by one step; a loss lowers it by one
    step and starts a cooldown of 15 minutes from *now* (wall-clock time
    of the close, not the trade's recorded close time).  A flat or
    undeterminable result leaves the state unchanged.
    """
    pnl = compute_pnl(trade, rates)
    if pnl is None or pnl == 0:
        return state

    if pnl > 0:
        risk = min(MAX_RISK_PCT, state.dynamic_risk_percentage + RISK_STEP)
        logger.info("Trade %s won %.2f, risk now %.2f%%", trade.id, pnl, risk)
        return replace(state, dynamic_risk_percentage=risk)

    now = now or local_now()
    risk = max(MIN_RISK_PCT, state.dynamic_risk_percentage - RISK_STEP)
    cooldown_until = now + COOLDOWN_DURATION
    logger.info(
        "Trade %s lost %.2f, risk now %.2f%%, cooldown until %s",
        trade.id, pnl, risk, cooldown_until.isoformat(),
    )
    return DisciplineState(dynamic_risk_percentage=risk, cooldown_until=cooldown_until)


def is_cooldown_active(state: DisciplineState, now: datetime) -> bool:
    if state.cooldown_until is None:
        return False
    return align_tz(now, state.cooldown_until) <= state.cooldown_until


def cooldown_remaining(state: DisciplineState, now: datetime) -> timedelta:
    """Time left on the cooldown (zero when none is running)."""
    if not is_cooldown_active(state, now):
        return timedelta(0)
    return state.cooldown_until - align_tz(now, state.cooldown_until)


def expire_cooldown(
    state: DisciplineState,
    now: datetime,
) -> tuple[DisciplineState, Optional[str]]:
    """Clear a cooldown whose deadline has passed.

    Returns the new state and, only on the call that clears it, the
    notification to show the user.
    """
    if state.cooldown_until is None or is_cooldown_active(state, now):
        return state, None
    logger.info("Cooldown expired at %s", state.cooldown_until.isoformat())
    return replace(state, cooldown_until=None), COOLDOWN_OVER_MESSAGE


# ── Circuit breaker ──────────────────────────────────────────────────────


def compute_lock_status(
    trades: Iterable[Trade],
    settings: AccountSettings,
    balance: float,
    now: datetime,
    rates: Optional[ExchangeRateTable] = None,
) -> LockStatus:
    """Decide whether the daily or weekly loss limit has been breached.

    Sums the PnL of closed trades since local midnight and since Monday
    00:00 and compares each against ``balance × limit%``.  The daily limit
    is checked first.  Limits ≤ 0 are disabled.
    """
    daily_limit = settings.daily_loss_limit_pct or 0.0
    weekly_limit = settings.weekly_loss_limit_pct or 0.0
    if balance <= 0 or (daily_limit <= 0 and weekly_limit <= 0):
        return LockStatus(locked=False)

    day_start = start_of_day(now)
    week_start = start_of_week(now)
    daily_pnl = 0.0
    weekly_pnl = 0.0
    for trade in trades:
        if not trade.is_closed or trade.closed_at is None:
            continue
        pnl = compute_pnl(trade, rates)
        if pnl is None:
            continue
        closed_at = align_tz(trade.closed_at, now)
        if closed_at >= week_start:
            weekly_pnl += pnl
        if closed_at >= day_start:
            daily_pnl += pnl

    if daily_limit > 0 and daily_pnl <= -(balance * daily_limit / 100.0):
        reason = (
            f"Daily loss limit ({daily_limit:g}%) reached. "
            "Trading resumes tomorrow."
        )
        logger.warning("Trading locked: %s", reason)
        return LockStatus(True, reason, daily_pnl, weekly_pnl)

    if weekly_limit > 0 and weekly_pnl <= -(balance * weekly_limit / 100.0):
        reason = (
            f"Weekly loss limit ({weekly_limit:g}%) reached. "
            "Trading resumes next week."
        )
        logger.warning("Trading locked: %s", reason)
        return LockStatus(True, reason, daily_pnl, weekly_pnl)

    return LockStatus(False, None, daily_pnl, weekly_pnl)


def check_pair_selection(
    state: DisciplineState,
    lock: LockStatus,
    now: datetime,
) -> PairSelection:
    """Gate for starting a new trade analysis."""
    if lock.locked:
        return PairSelection(False, lock.reason)
    if is_cooldown_active(state, now):
        return PairSelection(False, COOLDOWN_REASON)
    return PairSelection(True)
