"""Funded-account challenge monitor — pure derivation, no I/O.

Recomputes a challenge's metrics and status from its settings and the
trades closed since it started.  Nothing here is persisted.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from app.models.settings import ChallengeSettings
from app.models.trade import Trade
from app.risk.currency import ExchangeRateTable
from app.risk.drawdown import DrawdownTracker
from app.risk.periods import align_tz, start_of_day
from app.risk.pnl import compute_pnl

CAUTION_PROGRESS_PCT = 80.0


class ChallengeStatus(str, Enum):
    PASSING = "PASSING"
    CAUTION = "CAUTION"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    COMPLETE = "COMPLETE"


@dataclass(frozen=True)
class ChallengeMetrics:
    """Snapshot of a challenge.  Progress fields are percentages (0–100)."""

    current_daily_loss: float
    max_daily_loss_amount: float
    daily_loss_progress: float

    current_total_drawdown: float
    max_total_drawdown_amount: float
    total_drawdown_progress: float

    net_profit: float
    profit_target_amount: float
    profit_target_progress: float

    trading_days_count: int
    min_trading_days: int
    days_active: int
    days_remaining: int

    status: ChallengeStatus


def _progress(current: float, limit: float) -> float:
    if limit <= 0:
        return 0.0
    return max(0.0, min(current / limit * 100.0, 100.0))


def _breached(current: float, limit: float) -> bool:
    # A limit of zero means the rule is switched off.
    return limit > 0 and current >= limit


def compute_challenge_metrics(
    trades: Iterable[Trade],
    settings: Optional[ChallengeSettings],
    now: datetime,
    rates: Optional[ExchangeRateTable] = None,
) -> Optional[ChallengeMetrics]:
    """Evaluate a challenge.

    Args:
        trades: The whole journal; only trades closed at or after
            ``settings.start_date`` are considered.
        settings: Challenge rules, or ``None`` when no challenge exists.
        now: Evaluation time; its timezone defines "today".
        rates: Optional rate snapshot forwarded to the PnL engine.

    Returns:
        ``ChallengeMetrics``, or ``None`` when there is no active challenge.

    Status precedence: FAILED, EXPIRED, COMPLETE, CAUTION, PASSING.
    Meeting the profit target before the minimum number of trading days
    keeps the status at PASSING.
    """
    if settings is None or not settings.is_active:
        return None

    start = align_tz(settings.start_date, now)
    challenge_trades = sorted(
        (
            t for t in trades
            if t.is_closed
            and t.closed_at is not None
            and align_tz(t.closed_at, now) >= start
        ),
        key=lambda t: align_tz(t.closed_at, now),
    )

    size = settings.account_size
    day_start = start_of_day(now)

    tracker = DrawdownTracker(size)
    todays_pnl = 0.0
    trading_days: set = set()
    for trade in challenge_trades:
        pnl = compute_pnl(trade, rates) or 0.0
        closed_at = align_tz(trade.closed_at, now)
        tracker.apply_pnl(pnl)
        trading_days.add(closed_at.date())
        if closed_at >= day_start:
            todays_pnl += pnl

    current_daily_loss = abs(todays_pnl) if todays_pnl < 0 else 0.0
    max_daily_loss_amount = size * settings.daily_loss_limit_pct / 100.0
    daily_loss_progress = _progress(current_daily_loss, max_daily_loss_amount)

    current_total_drawdown = tracker.max_drawdown
    max_total_drawdown_amount = size * settings.max_total_drawdown_pct / 100.0
    total_drawdown_progress = _progress(current_total_drawdown, max_total_drawdown_amount)

    net_profit = tracker.current_equity - size
    profit_target_amount = size * settings.profit_target_pct / 100.0
    profit_target_progress = _progress(net_profit, profit_target_amount)

    days_active = max(0, math.ceil((now - start) / timedelta(days=1)))
    days_remaining = max(0, settings.time_limit_days - days_active)
    trading_days_count = len(trading_days)

    if _breached(current_daily_loss, max_daily_loss_amount) or _breached(
        current_total_drawdown, max_total_drawdown_amount
    ):
        status = ChallengeStatus.FAILED
    elif days_remaining == 0 and net_profit < profit_target_amount:
        status = ChallengeStatus.EXPIRED
    elif (
        net_profit >= profit_target_amount
        and trading_days_count >= settings.min_trading_days
    ):
        status = ChallengeStatus.COMPLETE
    elif (
        daily_loss_progress > CAUTION_PROGRESS_PCT
        or total_drawdown_progress > CAUTION_PROGRESS_PCT
    ):
        status = ChallengeStatus.CAUTION
    else:
        status = ChallengeStatus.PASSING

    return ChallengeMetrics(
        current_daily_loss=current_daily_loss,
        max_daily_loss_amount=max_daily_loss_amount,
        daily_loss_progress=daily_loss_progress,
        current_total_drawdown=current_total_drawdown,
        max_total_drawdown_amount=max_total_drawdown_amount,
        total_drawdown_progress=total_drawdown_progress,
        net_profit=net_profit,
        profit_target_amount=profit_target_amount,
        profit_target_progress=profit_target_progress,
        trading_days_count=trading_days_count,
        min_trading_days=settings.min_trading_days,
        days_active=days_active,
        days_remaining=days_remaining,
        status=status,
    )
