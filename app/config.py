"""TradeCoach — application configuration.

Loads .env variables into a typed config object.
Validates required variables on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


_REQUIRED_VARS = [
    "EXCHANGERATE_API_KEY",
]


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    exchange_rate_api_key: str
    exchange_rate_base_url: str
    rates_cache_seconds: float
    account_balance: float
    daily_loss_limit_pct: float
    weekly_loss_limit_pct: float
    db_path: str
    log_level: str
    api_port: int


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    return Config(
        exchange_rate_api_key=os.environ["EXCHANGERATE_API_KEY"],
        exchange_rate_base_url=os.environ.get(
            "EXCHANGERATE_BASE_URL", "https://v6.exchangerate-api.com/v6"
        ),
        rates_cache_seconds=float(os.environ.get("RATES_CACHE_SECONDS", "3600")),
        account_balance=float(os.environ.get("ACCOUNT_BALANCE", "10000")),
        daily_loss_limit_pct=float(os.environ.get("DAILY_LOSS_LIMIT_PCT", "1.0")),
        weekly_loss_limit_pct=float(os.environ.get("WEEKLY_LOSS_LIMIT_PCT", "2.5")),
        db_path=os.environ.get("DB_PATH", "data/tradecoach.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=int(os.environ.get("API_PORT", "8080")),
    )
