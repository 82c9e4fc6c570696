"""Account and challenge settings dataclasses.

Values arrive here already validated for non-negativity by the settings
layer (``POST /settings`` and ``POST /challenge``).
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


# Defaults for a new funded-account challenge (prop-firm style).
CHALLENGE_DEFAULTS: dict[str, float] = {
    "daily_loss_limit_pct": 5.0,
    "max_total_drawdown_pct": 10.0,
    "profit_target_pct": 8.0,
}

ACCOUNT_SIZES: list[int] = [10_000, 25_000, 50_000, 100_000, 200_000]


@dataclass(frozen=True)
class AccountSettings:
    """Balance and loss-limit settings that feed the circuit breaker.

    ``report_balance`` / ``report_as_of`` hold the last equity point of an
    imported broker report.  When present they replace ``account_balance``
    as the baseline and only trades closed after ``report_as_of`` are
    added on top.
    """

    account_balance: float = 10_000.0
    daily_loss_limit_pct: float = 1.0
    weekly_loss_limit_pct: float = 2.5
    report_balance: Optional[float] = None
    report_as_of: Optional[datetime] = None


@dataclass(frozen=True)
class ChallengeSettings:
    """Rules of a time-boxed funded-account evaluation."""

    is_active: bool
    start_date: datetime
    account_size: float
    daily_loss_limit_pct: float = CHALLENGE_DEFAULTS["daily_loss_limit_pct"]
    max_total_drawdown_pct: float = CHALLENGE_DEFAULTS["max_total_drawdown_pct"]
    profit_target_pct: float = CHALLENGE_DEFAULTS["profit_target_pct"]
    time_limit_days: int = 30
    min_trading_days: int = 4
