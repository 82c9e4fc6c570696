"""Tests for app.risk.currency — pair parsing, pip sizes and USD conversion."""

import pytest

from app.risk.currency import (
    ExchangeRateTable,
    convert,
    normalize_symbol,
    pip_multiplier,
    pip_size,
    quote_to_usd,
    split_symbol,
)


class TestSymbols:
    @pytest.mark.parametrize("raw", ["EURUSD", "EUR_USD", "eur/usd", " eurusd "])
    def test_normalize_accepts_common_spellings(self, raw):
        assert normalize_symbol(raw) == "EURUSD"

    @pytest.mark.parametrize("raw", ["", "EUR", "EURUSDX", "EUR1SD"])
    def test_normalize_rejects_garbage(self, raw):
        with pytest.raises(ValueError, match="currency pair"):
            normalize_symbol(raw)

    def test_split_symbol(self):
        assert split_symbol("GBP_JPY") == ("GBP", "JPY")

    def test_jpy_pip_size(self):
        assert pip_size("USDJPY") == 0.01
        assert pip_multiplier("USDJPY") == 100

    def test_standard_pip_size(self):
        assert pip_size("EURUSD") == 0.0001
        assert pip_multiplier("EURUSD") == 10_000


class TestExchangeRateTable:
    def test_rates_are_read_only(self):
        table = ExchangeRateTable(rates={"eur": 0.9})
        assert table.get_rate("EUR") == pytest.approx(0.9)
        with pytest.raises(TypeError):
            table.rates["EUR"] = 1.0  # type: ignore[index]

    def test_missing_or_zero_rate_is_none(self):
        table = ExchangeRateTable(rates={"GBP": 0.0})
        assert table.get_rate("GBP") is None
        assert table.get_rate("CHF") is None

    def test_usd_only_is_fallback(self):
        table = ExchangeRateTable.usd_only()
        assert table.is_fallback is True
        assert table.to_dict()["rates"] == {"USD": 1.0}


class TestQuoteToUsd:
    def test_usd_quote_passes_through(self):
        assert quote_to_usd(0.001, "EURUSD", 1.1, None) == pytest.approx(0.001)

    def test_usd_base_divides_by_price(self):
        # 0.10 JPY per unit at 150 JPY/USD
        assert quote_to_usd(0.10, "USDJPY", 150.0, None) == pytest.approx(0.10 / 150.0)

    def test_cross_pair_uses_quote_rate(self):
        rates = ExchangeRateTable(rates={"USD": 1.0, "JPY": 150.0})
        assert quote_to_usd(15.0, "EURJPY", 163.0, rates) == pytest.approx(0.1)

    def test_cross_pair_without_rate_is_none(self):
        assert quote_to_usd(15.0, "EURJPY", 163.0, None) is None
        assert quote_to_usd(15.0, "EURJPY", 163.0, ExchangeRateTable.usd_only()) is None


class TestConvert:
    def test_same_currency(self):
        assert convert(5.0, "usd", "USD", ExchangeRateTable()) == 5.0

    def test_through_usd(self):
        rates = ExchangeRateTable(rates={"USD": 1.0, "EUR": 0.5, "GBP": 0.25})
        # 10 EUR = 20 USD = 5 GBP
        assert convert(10.0, "EUR", "GBP", rates) == pytest.approx(5.0)

    def test_missing_rate_returns_none(self):
        assert convert(10.0, "EUR", "USD", ExchangeRateTable.usd_only()) is None
