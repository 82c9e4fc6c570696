"""TradeCoach — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
the serve, calc, and status modes.
"""

import logging

from fastapi import FastAPI

from app.api.routers import router

app = FastAPI(title="TradeCoach Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("tradecoach")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


def build_coach(config, rates_provider=None):
    """Initialise the database and return a wired ``TradingCoach``."""
    from app.journal.service import TradingCoach
    from app.models.settings import AccountSettings
    from app.repos.db import init_db
    from app.repos.state_repo import StateRepo
    from app.repos.trade_repo import TradeRepo

    init_db(config.db_path)
    defaults = AccountSettings(
        account_balance=config.account_balance,
        daily_loss_limit_pct=config.daily_loss_limit_pct,
        weekly_loss_limit_pct=config.weekly_loss_limit_pct,
    )
    return TradingCoach(
        trade_repo=TradeRepo(config.db_path),
        state_repo=StateRepo(config.db_path),
        default_settings=defaults,
        rates_provider=rates_provider,
    )


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv=None) -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio

    from app.cli.dashboard import print_plan, print_status
    from app.config import load_config
    from app.models.trade import Direction
    from app.rates.provider import ExchangeRateProvider

    parser = argparse.ArgumentParser(description="TradeCoach risk and discipline companion")
    sub = parser.add_subparsers(dest="mode")
    sub.add_parser("serve", help="Run the internal API server (default)")

    calc = sub.add_parser("calc", help="Size a trade from the command line")
    calc.add_argument("symbol", help="Currency pair, e.g. EURUSD")
    calc.add_argument("direction", choices=[d.value for d in Direction])
    calc.add_argument("--entry", type=float, required=True)
    calc.add_argument("--stop", type=float, required=True)
    calc.add_argument("--target", type=float, required=True)
    calc.add_argument("--balance", type=float, help="Override the derived balance")
    calc.add_argument("--risk", type=float, help="Override the dynamic risk %%")

    sub.add_parser("status", help="Print discipline, lock and challenge status")
    args = parser.parse_args(argv)

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    provider = ExchangeRateProvider.from_config(config)
    coach = build_coach(config, provider)

    if args.mode == "calc":
        rates = asyncio.run(provider.get_latest_rates())
        direction = Direction(args.direction)
        if args.balance is not None or args.risk is not None:
            from app.risk.position_sizer import RiskInputs, compute_risk_plan

            inputs = RiskInputs(
                symbol=args.symbol,
                direction=direction,
                account_balance=args.balance if args.balance is not None else coach.account_balance(rates),
                risk_percentage=args.risk if args.risk is not None else coach.discipline.dynamic_risk_percentage,
                entry_price=args.entry,
                stop_loss_price=args.stop,
                take_profit_price=args.target,
            )
            result = compute_risk_plan(inputs, rates)
        else:
            result = coach.plan_trade(
                args.symbol, direction, args.entry, args.stop, args.target, rates,
            )
        print_plan(args.symbol, direction.value, result.to_dict())
    elif args.mode == "status":
        coach.tick()
        lock = coach.lock_status()
        metrics = coach.challenge_metrics()
        print_status({
            "account_balance": coach.account_balance(),
            "dynamic_risk_percentage": coach.discipline.dynamic_risk_percentage,
            "cooldown_remaining_seconds": coach.cooldown_remaining().total_seconds(),
            "locked": lock.locked,
            "lock_reason": lock.reason,
            "daily_pnl": lock.daily_pnl,
            "weekly_pnl": lock.weekly_pnl,
            "challenge_status": metrics.status.value if metrics else None,
        })
    else:
        _run_server(coach, provider, config.api_port)


def _run_server(coach, provider, port: int) -> None:
    """Start the API server with the injected service."""
    import uvicorn

    from app.api.routers import configure_routers

    configure_routers(coach=coach, rates_provider=provider)
    logger.info("API available at http://localhost:%d", port)
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")


if __name__ == "__main__":
    _run_cli()
