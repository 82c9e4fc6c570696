"""Position sizing — pure math, no I/O.

Turns a trade idea (pair, direction, entry/stop/target, balance, risk %)
into a lot size, monetary exposure, and risk/reward ratio.  Pip values are
converted into the USD account currency with a rate snapshot.

Every function here is total: an incomplete form yields an empty
``RiskCalculation``, a wrong-side stop or target yields a
``PriceLogicError`` value, and divide-by-zero cases leave fields ``None``.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from app.models.trade import Direction, RiskPlan
from app.risk.currency import (
    STANDARD_LOT_UNITS,
    ExchangeRateTable,
    normalize_symbol,
    pip_multiplier,
    pip_size,
    quote_to_usd,
    split_symbol,
)

logger = logging.getLogger("tradecoach")

AGGRESSIVE_RISK_PCT = 3.0
MIN_STOP_PIPS = 5.0
MIN_RISK_REWARD = 2.0

# Rounding applied to derived distances so that float noise in price
# subtraction cannot flip a threshold (e.g. 1.1020 - 1.1000 vs 2 × 0.0010).
_RATIO_DECIMALS = 6
_PIPS_DECIMALS = 4


class PriceLogicError(ValueError):
    """Stop-loss or take-profit sits on the wrong side of the entry."""


@dataclass(frozen=True)
class RiskInputs:
    """Raw calculator form.  Numeric fields may be ``None`` while typing."""

    symbol: str
    direction: Direction
    account_balance: Optional[float]
    risk_percentage: Optional[float]
    entry_price: Optional[float]
    stop_loss_price: Optional[float]
    take_profit_price: Optional[float]

    @property
    def is_complete(self) -> bool:
        """``True`` when the symbol parses and every number is finite and positive."""
        try:
            normalize_symbol(self.symbol)
        except ValueError:
            return False
        values = (
            self.account_balance,
            self.risk_percentage,
            self.entry_price,
            self.stop_loss_price,
            self.take_profit_price,
        )
        return all(v is not None and math.isfinite(v) and v > 0 for v in values)


@dataclass(frozen=True)
class RiskWarnings:
    """Non-blocking warnings; each one is computed independently."""

    aggressive_risk: Optional[str] = None
    tight_stop: Optional[str] = None
    low_ratio: Optional[str] = None
    cross_pair_approx: Optional[str] = None

    def as_dict(self) -> dict[str, str]:
        return {
            name: message
            for name, message in (
                ("risk", self.aggressive_risk),
                ("stop_distance", self.tight_stop),
                ("ratio", self.low_ratio),
                ("cross_pair_approx", self.cross_pair_approx),
            )
            if message is not None
        }


@dataclass(frozen=True)
class RiskCalculation:
    """Result of :func:`compute_risk_plan`.

    ``plan`` is ``None`` both for an incomplete form (``error`` is also
    ``None``) and for a price-logic violation (``error`` is set).
    """

    plan: Optional[RiskPlan] = None
    error: Optional[PriceLogicError] = None
    warnings: RiskWarnings = field(default_factory=RiskWarnings)
    money_to_risk: Optional[float] = None
    potential_profit: Optional[float] = None
    pip_value: Optional[float] = None
    stop_distance_pips: Optional[float] = None
    reward_distance_pips: Optional[float] = None

    @property
    def can_commit(self) -> bool:
        """Commit gate: a valid plan with a risk/reward ratio of at least 2."""
        if self.plan is None or self.error is not None:
            return False
        ratio = self.plan.risk_reward_ratio
        return ratio is not None and ratio >= MIN_RISK_REWARD

    def to_dict(self) -> dict:
        plan = self.plan
        return {
            "plan": None if plan is None else {
                "risk_percentage": plan.risk_percentage,
                "entry_price": plan.entry_price,
                "stop_loss_price": plan.stop_loss_price,
                "take_profit_price": plan.take_profit_price,
                "risk_reward_ratio": plan.risk_reward_ratio,
                "position_size_lots": plan.position_size_lots,
            },
            "error": str(self.error) if self.error is not None else None,
            "warnings": self.warnings.as_dict(),
            "money_to_risk": self.money_to_risk,
            "potential_profit": self.potential_profit,
            "pip_value": self.pip_value,
            "stop_distance_pips": self.stop_distance_pips,
            "reward_distance_pips": self.reward_distance_pips,
            "can_commit": self.can_commit,
        }


# ── Calculation ──────────────────────────────────────────────────────────


def calculate_lots(money_to_risk: float, risk_per_unit_usd: float) -> Optional[float]:
    """Position size in standard lots.

    Formula::

        units = money_to_risk / risk_per_unit_usd
        lots  = units / 100_000

    Returns ``None`` when *risk_per_unit_usd* is not positive.
    """
    if risk_per_unit_usd <= 0:
        return None
    return (money_to_risk / risk_per_unit_usd) / STANDARD_LOT_UNITS


def check_price_logic(
    direction: Direction,
    entry: float,
    stop_loss: float,
    take_profit: float,
) -> Optional[PriceLogicError]:
    """Return a ``PriceLogicError`` when stop or target is on the wrong side."""
    if direction is Direction.LONG:
        if stop_loss >= entry:
            return PriceLogicError("Stop loss must be below the entry for a long trade.")
        if take_profit <= entry:
            return PriceLogicError("Take profit must be above the entry for a long trade.")
        return None
    if direction is Direction.SHORT:
        if stop_loss <= entry:
            return PriceLogicError("Stop loss must be above the entry for a short trade.")
        if take_profit >= entry:
            return PriceLogicError("Take profit must be below the entry for a short trade.")
        return None
    return PriceLogicError(f"Unknown direction: {direction!r}")


def compute_risk_plan(
    inputs: RiskInputs,
    rates: Optional[ExchangeRateTable] = None,
) -> RiskCalculation:
    """Size a trade idea.

    Args:
        inputs: The calculator form.
        rates: Latest exchange-rate snapshot; only consulted for cross
            pairs (neither side USD).

    Returns:
        A ``RiskCalculation``.  Never raises.
    """
    if not inputs.is_complete:
        return RiskCalculation()

    symbol = normalize_symbol(inputs.symbol)
    entry = float(inputs.entry_price)
    stop_loss = float(inputs.stop_loss_price)
    take_profit = float(inputs.take_profit_price)
    balance = float(inputs.account_balance)
    risk_pct = float(inputs.risk_percentage)

    error = check_price_logic(inputs.direction, entry, stop_loss, take_profit)
    if error is not None:
        return RiskCalculation(error=error)

    risk_distance = abs(entry - stop_loss)
    reward_distance = abs(take_profit - entry)
    multiplier = pip_multiplier(symbol)
    stop_pips = round(risk_distance * multiplier, _PIPS_DECIMALS)
    reward_pips = round(reward_distance * multiplier, _PIPS_DECIMALS)

    aggressive = None
    if risk_pct > AGGRESSIVE_RISK_PCT:
        aggressive = f"Risk above {AGGRESSIVE_RISK_PCT:g}% is aggressive."
    tight = None
    if 0 < stop_pips < MIN_STOP_PIPS:
        tight = f"Stop is very tight ({stop_pips:.1f} pips)."

    money_to_risk = balance * risk_pct / 100.0

    ratio: Optional[float] = None
    potential_profit: Optional[float] = None
    if risk_distance > 0:
        ratio = round(reward_distance / risk_distance, _RATIO_DECIMALS)
        potential_profit = money_to_risk * ratio
    low_ratio = None
    if ratio is not None and ratio < MIN_RISK_REWARD:
        low_ratio = f"Risk/reward below 1:{MIN_RISK_REWARD:g}."

    approx = None
    risk_per_unit_usd = quote_to_usd(risk_distance, symbol, entry, rates)
    if risk_per_unit_usd is None:
        _, quote = split_symbol(symbol)
        approx = (
            f"Approximate size: no {quote} rate available for {symbol}, "
            f"{quote} amounts treated as USD 1:1."
        )
        logger.warning("Cross pair %s sized without a %s rate (1:1 fallback)", symbol, quote)
        risk_per_unit_usd = risk_distance

    lots = calculate_lots(money_to_risk, risk_per_unit_usd)

    pip_value: Optional[float] = None
    if lots:
        units = lots * STANDARD_LOT_UNITS
        pip_value = quote_to_usd(pip_size(symbol) * units, symbol, entry, rates)

    plan = RiskPlan(
        risk_percentage=risk_pct,
        entry_price=entry,
        stop_loss_price=stop_loss,
        take_profit_price=take_profit,
        risk_reward_ratio=ratio,
        position_size_lots=lots,
    )
    return RiskCalculation(
        plan=plan,
        warnings=RiskWarnings(
            aggressive_risk=aggressive,
            tight_stop=tight,
            low_ratio=low_ratio,
            cross_pair_approx=approx,
        ),
        money_to_risk=money_to_risk,
        potential_profit=potential_profit,
        pip_value=pip_value,
        stop_distance_pips=stop_pips,
        reward_distance_pips=reward_pips,
    )
