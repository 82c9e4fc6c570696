"""CLI dashboard — prints risk plans and discipline status to the console."""


def _money(value) -> str:
    return f"${value:,.2f}" if value is not None else "N/A"


def print_plan(symbol: str, direction: str, result: dict) -> str:
    """Format and print a risk calculation.

    Args:
        symbol: Pair code shown in the header.
        direction: ``"long"`` or ``"short"``.
        result: ``RiskCalculation.to_dict()`` output.

    Returns:
        The formatted string (also printed to stdout).
    """
    plan = result.get("plan")
    lines = [f"──────────────── {symbol.upper()} {direction.upper()} ────────────────"]
    if result.get("error"):
        lines.append(f"  Error:           {result['error']}")
    elif plan is None:
        lines.append("  Incomplete input — enter balance, risk and all prices.")
    else:
        ratio = plan.get("risk_reward_ratio")
        lots = plan.get("position_size_lots")
        lines += [
            f"  Risk:            {plan['risk_percentage']:g}% ({_money(result.get('money_to_risk'))})",
            f"  Potential gain:  {_money(result.get('potential_profit'))}",
            f"  R:R:             {'1:%.2f' % ratio if ratio is not None else 'N/A'}",
            f"  Stop distance:   {result.get('stop_distance_pips')} pips",
            f"  Lots:            {'%.2f' % lots if lots is not None else 'N/A'}",
            f"  Pip value:       {_money(result.get('pip_value'))}",
            f"  Can save:        {'yes' if result.get('can_commit') else 'no'}",
        ]
        for message in result.get("warnings", {}).values():
            lines.append(f"  Warning:         {message}")
    lines.append("─" * 50)
    output = "\n".join(lines)
    print(output)
    return output


def print_status(status: dict) -> str:
    """Format and print the discipline status.

    Returns:
        The formatted string (also printed to stdout).
    """
    cooldown = status.get("cooldown_remaining_seconds", 0) or 0
    minutes, seconds = divmod(int(cooldown), 60)
    locked = status.get("locked", False)

    lines = [
        "──────────────── TradeCoach Status ────────────────",
        f"  Balance:         {_money(status.get('account_balance'))}",
        f"  Risk per trade:  {status.get('dynamic_risk_percentage', 0):.2f}%",
        f"  Cooldown:        {f'{minutes}m {seconds}s' if cooldown > 0 else 'off'}",
        f"  Today's PnL:     {_money(status.get('daily_pnl'))}",
        f"  Week's PnL:      {_money(status.get('weekly_pnl'))}",
        f"  Trading:         {'LOCKED' if locked else 'open'}",
    ]
    if locked and status.get("lock_reason"):
        lines.append(f"  Reason:          {status['lock_reason']}")
    if status.get("challenge_status"):
        lines.append(f"  Challenge:       {status['challenge_status']}")
    lines.append("──────────────────────────────────────────────────")
    output = "\n".join(lines)
    print(output)
    return output
