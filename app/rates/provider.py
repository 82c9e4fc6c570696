"""Exchange-rate provider — async client for exchangerate-api.com v6.

Fetches USD-quoted rates, caches them in memory, and never lets a network
failure reach the position-sizing path: the last good snapshot (marked
stale) or the USD-only fallback is served instead.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from app.config import Config
from app.risk.currency import ExchangeRateTable

logger = logging.getLogger("tradecoach")

# Retry settings
_MAX_RETRIES = 2
_RETRY_BASE_DELAY = 0.5  # seconds; doubles each attempt
_REQUEST_TIMEOUT = 10.0
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}
_FAILURE_RETRY_SECONDS = 60.0  # no new fetch this long after a failed one


class RatesUnavailable(RuntimeError):
    """The rate service answered but did not return usable rates."""


class ExchangeRateProvider:
    """Cached async client for the USD rate table.

    Args:
        api_key: exchangerate-api.com key.
        base_url: API root, e.g. ``https://v6.exchangerate-api.com/v6``.
        cache_seconds: How long a fetched snapshot is served before a
            refresh is attempted.
        retry_after_failure: Seconds after a failed refresh during which
            the fallback is served without contacting the API again.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://v6.exchangerate-api.com/v6",
        cache_seconds: float = 3600.0,
        retry_after_failure: float = _FAILURE_RETRY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._cache_seconds = cache_seconds
        self._clock = clock
        self._snapshot: Optional[ExchangeRateTable] = None
        self._fetched_at_monotonic: float = 0.0
        self._retry_after_failure = retry_after_failure
        self._failed_at_monotonic: Optional[float] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: Config) -> "ExchangeRateProvider":
        return cls(
            api_key=config.exchange_rate_api_key,
            base_url=config.exchange_rate_base_url,
            cache_seconds=config.rates_cache_seconds,
        )

    @property
    def latest(self) -> Optional[ExchangeRateTable]:
        """Last good snapshot without triggering a fetch."""
        return self._snapshot

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(self, url: str) -> httpx.Response:
        """GET *url* with exponential-backoff retry on transient errors."""
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(url, timeout=_REQUEST_TIMEOUT)

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Rates API returned %d — retry %d/%d in %.1fs",
                        resp.status_code, attempt + 1, _MAX_RETRIES, delay,
                    )
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    await asyncio.sleep(delay)
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Rates API transport error (%s) — retry %d/%d in %.1fs",
                    exc, attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    # ── Rates ────────────────────────────────────────────────────────────

    async def fetch_rates(self) -> ExchangeRateTable:
        """Fetch a fresh snapshot, bypassing the cache.

        Raises:
            httpx.HTTPError: On network or HTTP failure.
            RatesUnavailable: When the payload reports an error.
        """
        url = f"{self._base_url}/{self._api_key}/latest/USD"
        resp = await self._request_with_retry(url)

        data = resp.json()
        if data.get("result") != "success":
            raise RatesUnavailable(
                f"API returned error: {data.get('error-type', 'unknown')}"
            )
        return ExchangeRateTable(
            rates=data["conversion_rates"],
            fetched_at=datetime.now(timezone.utc),
        )

    def _cache_valid(self) -> bool:
        if self._snapshot is None:
            return False
        return self._clock() - self._fetched_at_monotonic < self._cache_seconds

    def _in_failure_backoff(self) -> bool:
        if self._failed_at_monotonic is None:
            return False
        return self._clock() - self._failed_at_monotonic < self._retry_after_failure

    def _fallback(self) -> ExchangeRateTable:
        if self._snapshot is not None:
            return ExchangeRateTable(
                rates=self._snapshot.rates,
                fetched_at=self._snapshot.fetched_at,
                is_stale=True,
            )
        return ExchangeRateTable.usd_only()

    async def get_latest_rates(self) -> ExchangeRateTable:
        """Return cached rates, refreshing them when the cache has expired.

        Never raises: on failure the last good snapshot is returned marked
        stale, or the USD-only table when nothing was ever fetched.  After
        a failure the API is not contacted again for ``retry_after_failure``
        seconds.
        """
        async with self._lock:
            if self._cache_valid():
                logger.debug("Using cached exchange rates")
                return self._snapshot
            if self._in_failure_backoff():
                logger.debug("Rates refresh failed recently, serving fallback")
                return self._fallback()

            try:
                snapshot = await self.fetch_rates()
            except (httpx.HTTPError, RatesUnavailable, ValueError, KeyError) as exc:
                logger.error("Failed to fetch exchange rates: %s", exc)
                self._failed_at_monotonic = self._clock()
                return self._fallback()

            self._snapshot = snapshot
            self._fetched_at_monotonic = self._clock()
            self._failed_at_monotonic = None
            logger.info("Exchange rates updated (%d currencies)", len(snapshot.rates))
            return snapshot
