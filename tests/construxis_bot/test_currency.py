"""
Tests for the currency table and amount formatting.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

import aiohttp

from src.construxis_bot.api_client import ConstruxisAPIError
from src.construxis_bot.currency import (
    CurrencyCache,
    build_table,
    currency_name,
    format_currency,
    refresh_currencies,
)


@pytest.fixture
def table():
    return build_table(
        {
            "USD": {
                "symbol": "$",
                "symbol_placement": "before",
                "subunit": "cents",
                "subunit_ratio": 100,
                "full_name": "US Dollar",
            },
            "VAL": {
                "symbol": "V",
                "symbol_placement": "after",
                "subunit": "pips",
                "subunit_ratio": 1000,
            },
            "EUR": {"symbol": "€", "symbol_placement": "after"},
            "GLD": {"full_name": "Gold"},
        }
    )


class TestFormatCurrency:
    """Test amount rendering."""

    def test_subunit_before_symbol(self, table):
        assert format_currency(0.5, "USD", table) == "$50 cents"

    def test_major_unit_before_symbol(self, table):
        assert format_currency(12.3, "USD", table) == "$12.30"

    def test_subunit_after_symbol(self, table):
        assert format_currency(0.25, "VAL", table) == "250 pips V"

    def test_major_unit_after_symbol(self, table):
        assert format_currency(3, "VAL", table) == "3.00 V"

    @pytest.mark.parametrize("amount", [1.0, 1.01, 99.999, 1_000_000])
    def test_never_subunit_at_or_above_one(self, table, amount):
        """Amounts of 1.0 and up always use the major unit."""
        result = format_currency(amount, "USD", table)
        assert "cents" not in result
        assert result == f"${amount:.2f}"

    def test_no_subunit_falls_back_to_major_unit(self, table):
        assert format_currency(0.5, "EUR", table) == "0.50 €"

    def test_subunit_without_ratio_uses_major_unit(self):
        table = build_table({"ABC": {"symbol": "A", "subunit": "bits"}})
        assert format_currency(0.5, "ABC", table) == "0.50 A"

    def test_zero_ratio_uses_major_unit(self):
        table = build_table({"ABC": {"symbol": "A", "subunit": "bits", "subunit_ratio": 0}})
        assert format_currency(0.5, "ABC", table) == "0.50 A"

    def test_missing_symbol_uses_code(self, table):
        assert format_currency(5, "GLD", table) == "5.00 GLD"

    @pytest.mark.parametrize("amount", [0, 0.5, 12.3, 1234.567, -4])
    @pytest.mark.parametrize("code", ["XYZ", "usd", ""])
    def test_unknown_code(self, table, amount, code):
        assert format_currency(amount, code, table) == f"{amount:.2f} {code}"

    def test_subunit_rounds_half_up(self, table):
        assert format_currency(0.125, "USD", table) == "$13 cents"

    def test_subunit_rounds_to_nearest(self, table):
        assert format_currency(0.014, "USD", table) == "$1 cents"

    def test_zero_amount_uses_subunit(self, table):
        assert format_currency(0, "USD", table) == "$0 cents"

    def test_overflowing_subunit_uses_major_unit(self):
        table = build_table({"Y": {"subunit": "s", "subunit_ratio": 1e300}})
        assert format_currency(-1e10, "Y", table) == "-10000000000.00 Y"

    @pytest.mark.parametrize("amount", [-1e308, -1.5, 0.999999, 1e-300])
    def test_extreme_amounts_do_not_raise(self, table, amount):
        assert format_currency(amount, "VAL", table)

    def test_infinite_ratio_rejected(self):
        """JSON 1e309 decodes to inf; that descriptor is dropped."""
        table = build_table({"Y": {"subunit": "s", "subunit_ratio": float("inf")}})
        assert "Y" not in table
        assert format_currency(0.5, "Y", table) == "0.50 Y"


class TestCurrencyName:

    def test_full_name(self, table):
        assert currency_name("USD", table) == "US Dollar"

    def test_falls_back_to_code(self, table):
        assert currency_name("VAL", table) == "VAL"
        assert currency_name("NOPE", table) == "NOPE"


class TestCurrencyCache:
    """Test snapshot replacement."""

    def test_starts_empty(self):
        cache = CurrencyCache()
        assert len(cache) == 0
        assert format_currency(1, "USD", cache.snapshot()) == "1.00 USD"

    def test_replace_swaps_whole_table(self):
        cache = CurrencyCache()
        cache.replace({"USD": {"symbol": "$"}, "EUR": {"symbol": "€"}})
        old = cache.snapshot()

        cache.replace({"GBP": {"symbol": "£"}})
        new = cache.snapshot()

        assert set(old) == {"USD", "EUR"}
        assert set(new) == {"GBP"}

    def test_snapshot_is_read_only(self):
        cache = CurrencyCache()
        cache.replace({"USD": {"symbol": "$"}})
        with pytest.raises(TypeError):
            cache.snapshot()["EUR"] = None

    def test_invalid_entries_skipped(self):
        table = build_table({"USD": {"symbol": "$"}, "BAD": {"subunit_ratio": "lots"}})
        assert set(table) == {"USD"}

    def test_non_mapping_payload_gives_empty_table(self):
        assert len(build_table(["USD"])) == 0


class TestRefreshCurrencies:
    """Test periodic refresh behaviour."""

    def test_success_replaces_table(self):
        cache = CurrencyCache()
        client = MagicMock()
        client.get_currencies = AsyncMock(return_value={"USD": {"symbol": "$"}})

        assert asyncio.run(refresh_currencies(client, cache)) is True
        assert "USD" in cache.snapshot()

    def test_api_error_keeps_prior_table(self):
        cache = CurrencyCache()
        cache.replace({"USD": {"symbol": "$"}})
        before = cache.snapshot()

        client = MagicMock()
        client.get_currencies = AsyncMock(side_effect=ConstruxisAPIError("down", 503))

        assert asyncio.run(refresh_currencies(client, cache)) is False
        assert cache.snapshot() is before

    def test_network_error_keeps_prior_table(self):
        cache = CurrencyCache()
        cache.replace({"USD": {"symbol": "$"}})
        before = cache.snapshot()

        client = MagicMock()
        client.get_currencies = AsyncMock(side_effect=aiohttp.ClientError("refused"))

        assert asyncio.run(refresh_currencies(client, cache)) is False
        assert cache.snapshot() is before
