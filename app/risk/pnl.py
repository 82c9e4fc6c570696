"""Realized profit/loss for closed journal trades — pure math, no I/O.

This is the only PnL formula in the project: the journal view, the
statistics aggregation, the circuit breaker and the challenge monitor all
call :func:`compute_pnl`.
"""

import logging
from typing import Optional

from app.models.trade import Direction, Trade, TradeStatus
from app.risk.currency import (
    STANDARD_LOT_UNITS,
    ExchangeRateTable,
    normalize_symbol,
    pip_multiplier,
    pip_size,
    quote_to_usd,
)

logger = logging.getLogger("tradecoach")


def compute_pips(trade: Trade) -> Optional[float]:
    """Signed pip result of a closed trade, or ``None`` if not determinable."""
    if trade.status is not TradeStatus.CLOSED or not trade.exit_price:
        return None
    entry = trade.risk_plan.entry_price
    if not entry:
        return None
    try:
        normalize_symbol(trade.symbol)
    except ValueError:
        return None
    if trade.direction is Direction.LONG:
        move = trade.exit_price - entry
    elif trade.direction is Direction.SHORT:
        move = entry - trade.exit_price
    else:
        return None
    return move * pip_multiplier(trade.symbol)


def pip_value_per_lot(
    symbol: str,
    price: float,
    rates: Optional[ExchangeRateTable] = None,
) -> float:
    """USD value of one pip on one standard lot.

    10 units of quote currency for most pairs, 1000 for JPY pairs, then
    converted to USD.  A cross pair without a quote rate falls back to
    treating the quote amount as USD.
    """
    quote_amount = pip_size(symbol) * STANDARD_LOT_UNITS
    value = quote_to_usd(quote_amount, symbol, price, rates)
    if value is None:
        logger.warning("PnL for %s approximated 1:1 (no quote rate)", symbol)
        return quote_amount
    return value


def compute_pnl(
    trade: Trade,
    rates: Optional[ExchangeRateTable] = None,
) -> Optional[float]:
    """Signed PnL of a closed trade in USD.

    Formula::

        pips = (exit - entry) × pip_multiplier   (reversed for shorts)
        pnl  = pips × pip_value_per_lot × lots

    Args:
        trade: The journal trade.
        rates: Optional rate snapshot used for cross pairs.

    Returns:
        The PnL, or ``None`` when the trade is open or is missing its exit
        price, entry price or lot size.  Never raises.
    """
    pips = compute_pips(trade)
    lots = trade.risk_plan.position_size_lots
    if pips is None or not lots:
        return None
    return pips * pip_value_per_lot(trade.symbol, trade.exit_price, rates) * lots
