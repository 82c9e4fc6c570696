"""Currency conversion — pure math over a USD-quoted rate snapshot.

Rates follow the exchangerate-api convention: ``rates["JPY"] == 150.0``
means 1 USD buys 150 JPY.  An amount in currency ``X`` is therefore
converted to USD by dividing by ``rates[X]``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional

logger = logging.getLogger("tradecoach")

STANDARD_LOT_UNITS = 100_000
ACCOUNT_CURRENCY = "USD"


# ── Symbols ──────────────────────────────────────────────────────────────


def normalize_symbol(symbol: str) -> str:
    """Return the 6-letter pair code for *symbol*.

    Accepts ``"EURUSD"``, ``"EUR_USD"`` and ``"eur/usd"``.

    Raises:
        ValueError: If the result is not six letters.
    """
    code = symbol.replace("_", "").replace("/", "").strip().upper()
    if len(code) != 6 or not code.isalpha():
        raise ValueError(f"not a currency pair: {symbol!r}")
    return code


def split_symbol(symbol: str) -> tuple[str, str]:
    """Return ``(base, quote)`` for a pair code."""
    code = normalize_symbol(symbol)
    return code[:3], code[3:]


def is_jpy_pair(symbol: str) -> bool:
    return "JPY" in symbol.upper()


def pip_size(symbol: str) -> float:
    """Price increment of one pip: 0.01 for JPY pairs, else 0.0001."""
    return 0.01 if is_jpy_pair(symbol) else 0.0001


def pip_multiplier(symbol: str) -> int:
    """Factor turning a price distance into pips."""
    return 100 if is_jpy_pair(symbol) else 10_000


# ── Rate snapshot ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExchangeRateTable:
    """Immutable snapshot of USD-quoted exchange rates.

    Args:
        rates: Currency code → units of that currency per 1 USD.
        fetched_at: When the snapshot was taken (``None`` for fallbacks).
        is_fallback: ``True`` for the USD-only table used when no rates
            could be fetched.
        is_stale: ``True`` when a refresh failed and an older snapshot is
            being served.
    """

    rates: Mapping[str, float] = field(default_factory=dict)
    fetched_at: Optional[datetime] = None
    is_fallback: bool = False
    is_stale: bool = False

    def __post_init__(self) -> None:
        frozen = MappingProxyType(
            {str(k).upper(): float(v) for k, v in dict(self.rates).items()}
        )
        object.__setattr__(self, "rates", frozen)

    @classmethod
    def usd_only(cls) -> "ExchangeRateTable":
        return cls(rates={ACCOUNT_CURRENCY: 1.0}, is_fallback=True)

    def get_rate(self, currency: str) -> Optional[float]:
        """Return the rate for *currency*, or ``None`` when missing/unusable."""
        rate = self.rates.get(currency.upper())
        if rate is None or rate <= 0:
            return None
        return rate

    def to_dict(self) -> dict:
        return {
            "rates": dict(self.rates),
            "fetched_at": self.fetched_at.isoformat() if self.fetched_at else None,
            "is_fallback": self.is_fallback,
            "is_stale": self.is_stale,
        }


# ── Conversion ───────────────────────────────────────────────────────────


def quote_to_usd(
    amount: float,
    symbol: str,
    price: float,
    rates: Optional[ExchangeRateTable],
) -> Optional[float]:
    """Convert an amount in the pair's quote currency into USD.

    * quote is USD → returned unchanged.
    * base is USD → divided by *price* (quote units per 1 USD).
    * cross pair → divided by ``rates[quote]``.

    Returns ``None`` for a cross pair whose quote rate is unavailable, or
    when *price* is not positive for a USD-based pair.  Callers decide the
    fallback.
    """
    base, quote = split_symbol(symbol)
    if quote == ACCOUNT_CURRENCY:
        return amount
    if base == ACCOUNT_CURRENCY:
        if price <= 0:
            return None
        return amount / price
    rate = rates.get_rate(quote) if rates is not None else None
    if rate is None:
        return None
    return amount / rate


def convert(
    amount: float,
    from_currency: str,
    to_currency: str,
    rates: ExchangeRateTable,
) -> Optional[float]:
    """Convert *amount* between two currencies through USD.

    Returns ``None`` (and logs a warning) when either rate is missing.
    """
    if from_currency.upper() == to_currency.upper():
        return amount
    from_rate = rates.get_rate(from_currency)
    to_rate = rates.get_rate(to_currency)
    if from_rate is None or to_rate is None:
        logger.warning(
            "Missing exchange rate for %s",
            from_currency if from_rate is None else to_currency,
        )
        return None
    return amount / from_rate * to_rate
