"""Journal statistics — pure functions over closed trades.

All PnL figures come from :func:`app.risk.pnl.compute_pnl`; trades whose
PnL cannot be determined are left out of the aggregates.
"""

from typing import Iterable, Optional

from app.models.settings import AccountSettings
from app.models.trade import Direction, Trade
from app.risk.currency import ExchangeRateTable
from app.risk.drawdown import DrawdownTracker
from app.risk.periods import align_tz
from app.risk.pnl import compute_pnl

_WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def closed_trades_with_pnl(
    trades: Iterable[Trade],
    rates: Optional[ExchangeRateTable] = None,
) -> list[tuple[Trade, float]]:
    """Closed trades paired with their PnL, oldest close first."""
    result = []
    for trade in trades:
        if not trade.is_closed or trade.closed_at is None:
            continue
        pnl = compute_pnl(trade, rates)
        if pnl is not None:
            result.append((trade, pnl))
    result.sort(key=lambda item: item[0].closed_at.timestamp())
    return result


def calculate_stats(
    trades: Iterable[Trade],
    initial_balance: float,
    rates: Optional[ExchangeRateTable] = None,
) -> dict:
    """Compute a performance report from the journal.

    Returns:
        Dict with ``total_trades``, ``winning_trades``, ``losing_trades``,
        ``win_rate``, ``gross_profit``, ``gross_loss`` (negative),
        ``profit_factor``, ``net_pnl``, ``average_win``, ``average_loss``,
        ``best_trade``, ``worst_trade``, ``max_consecutive_wins``,
        ``max_consecutive_losses``, ``max_drawdown_pct``,
        ``equity_curve``, ``by_symbol``, ``by_direction``, ``by_weekday``
        and ``monthly``.
    """
    closed = closed_trades_with_pnl(trades, rates)
    pnls = [pnl for _, pnl in closed]
    total = len(pnls)

    winners = [p for p in pnls if p > 0]
    losers = [p for p in pnls if p < 0]
    gross_profit = sum(winners)
    gross_loss = sum(losers)
    profit_factor = abs(gross_profit / gross_loss) if gross_loss != 0 else 0.0

    max_wins, max_losses = _max_runs(pnls)

    tracker = DrawdownTracker(initial_balance)
    equity_curve = []
    for trade, pnl in closed:
        tracker.apply_pnl(pnl)
        equity_curve.append({
            "time": trade.closed_at.isoformat(),
            "balance": round(tracker.current_equity, 2),
        })

    by_symbol: dict[str, float] = {}
    by_direction: dict[str, float] = {d.value: 0.0 for d in Direction}
    by_weekday: dict[str, float] = {}
    monthly: dict[str, float] = {}
    for trade, pnl in closed:
        by_symbol[trade.symbol] = by_symbol.get(trade.symbol, 0.0) + pnl
        by_direction[trade.direction.value] += pnl
        day = _WEEKDAYS[trade.closed_at.weekday()]
        by_weekday[day] = by_weekday.get(day, 0.0) + pnl
        month = f"{trade.closed_at.year} {_MONTHS[trade.closed_at.month - 1]}"
        monthly[month] = monthly.get(month, 0.0) + pnl

    return {
        "total_trades": total,
        "winning_trades": len(winners),
        "losing_trades": len(losers),
        "win_rate": round(len(winners) / total, 4) if total else 0.0,
        "gross_profit": round(gross_profit, 2),
        "gross_loss": round(gross_loss, 2),
        "profit_factor": round(profit_factor, 4),
        "net_pnl": round(gross_profit + gross_loss, 2),
        "average_win": round(gross_profit / len(winners), 2) if winners else 0.0,
        "average_loss": round(gross_loss / len(losers), 2) if losers else 0.0,
        "best_trade": round(max([0.0, *pnls]), 2),
        "worst_trade": round(min([0.0, *pnls]), 2),
        "max_consecutive_wins": max_wins,
        "max_consecutive_losses": max_losses,
        "max_drawdown_pct": round(tracker.max_drawdown_pct, 4),
        "equity_curve": equity_curve,
        "by_symbol": _rounded(by_symbol),
        "by_direction": _rounded(by_direction),
        "by_weekday": _rounded(by_weekday),
        "monthly": _rounded(monthly),
    }


def current_streak(
    trades: Iterable[Trade],
    rates: Optional[ExchangeRateTable] = None,
) -> dict:
    """Type and length of the run of most recent results.

    Break-even trades count as wins; a closed trade whose PnL cannot be
    determined ends the run.
    """
    closed = sorted(
        (t for t in trades if t.is_closed and t.closed_at is not None),
        key=lambda t: t.closed_at.timestamp(),
        reverse=True,
    )
    streak_type = None
    count = 0
    for trade in closed:
        pnl = compute_pnl(trade, rates)
        if pnl is None:
            break
        kind = "win" if pnl >= 0 else "loss"
        if streak_type is None:
            streak_type = kind
        if kind != streak_type:
            break
        count += 1
    return {"type": streak_type or "none", "count": count}


def pair_performance(
    trades: Iterable[Trade],
    baseline: Optional[dict[str, float]] = None,
    since=None,
    rates: Optional[ExchangeRateTable] = None,
) -> dict[str, float]:
    """Net PnL per symbol, added on top of an imported *baseline*.

    Only trades closed strictly after *since* are merged when it is given.
    """
    performance = dict(baseline or {})
    for trade, pnl in closed_trades_with_pnl(trades, rates):
        if since is not None and align_tz(trade.closed_at, since) <= since:
            continue
        performance[trade.symbol] = performance.get(trade.symbol, 0.0) + pnl
    return performance


def derive_account_balance(
    settings: AccountSettings,
    trades: Iterable[Trade],
    rates: Optional[ExchangeRateTable] = None,
) -> float:
    """Current balance: baseline plus realized PnL of journal trades.

    The baseline is the imported broker-report balance when one exists
    (only trades closed after the report are added), else the configured
    account balance.
    """
    since = None
    base = settings.account_balance
    if settings.report_balance is not None:
        base = settings.report_balance
        since = settings.report_as_of

    total = base
    for trade, pnl in closed_trades_with_pnl(trades, rates):
        if since is not None and align_tz(trade.closed_at, since) <= since:
            continue
        total += pnl
    return total


def starting_balance(
    settings: AccountSettings,
    trades: Iterable[Trade],
    rates: Optional[ExchangeRateTable] = None,
) -> float:
    """Balance before the first journal trade, consistent with the derived balance.

    Replaying every closed trade from here ends at
    :func:`derive_account_balance`.
    """
    trades = list(trades)
    realized = sum(pnl for _, pnl in closed_trades_with_pnl(trades, rates))
    return derive_account_balance(settings, trades, rates) - realized


# ── Helpers ──────────────────────────────────────────────────────────────


def _max_runs(pnls: list[float]) -> tuple[int, int]:
    """Longest winning and losing runs.  Flat trades do not break a run."""
    max_wins = max_losses = 0
    wins = losses = 0
    for p in pnls:
        if p > 0:
            wins += 1
            losses = 0
        elif p < 0:
            losses += 1
            wins = 0
        max_wins = max(max_wins, wins)
        max_losses = max(max_losses, losses)
    return max_wins, max_losses


def _rounded(values: dict[str, float]) -> dict[str, float]:
    return {k: round(v, 2) for k, v in values.items()}
