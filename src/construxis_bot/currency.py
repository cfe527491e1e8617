"""
Currency table and amount formatting.

The backend publishes a code -> descriptor table at /currencies. The bot keeps
one validated snapshot of it in memory; a refresh builds a new snapshot and
swaps it in whole, so readers always see a complete table.
"""

import asyncio
import logging
import math
from types import MappingProxyType
from typing import Any, Mapping, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, ValidationError

from .api_client import ConstruxisAPIClient, ConstruxisAPIError, error_message

logger = logging.getLogger(__name__)


class CurrencyDescriptor(BaseModel):
    """Display metadata for one currency code."""

    model_config = ConfigDict(extra="ignore", frozen=True, allow_inf_nan=False)

    symbol: Optional[str] = None
    symbol_placement: Optional[str] = None
    subunit: Optional[str] = None
    subunit_ratio: Optional[float] = None
    full_name: Optional[str] = None


CurrencyTable = Mapping[str, CurrencyDescriptor]

EMPTY_TABLE: CurrencyTable = MappingProxyType({})


def build_table(raw: Any) -> CurrencyTable:
    """
    Validate a raw /currencies payload into a read-only table.

    Entries that fail validation are skipped.
    """
    table = {}
    if not isinstance(raw, dict):
        logger.warning(f"Ignoring currency payload of type {type(raw).__name__}")
        return EMPTY_TABLE

    for code, entry in raw.items():
        try:
            table[str(code)] = CurrencyDescriptor.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"Skipping invalid currency {code}: {e.error_count()} errors")
    return MappingProxyType(table)


class CurrencyCache:
    """Owner of the current currency table snapshot."""

    def __init__(self, table: Optional[CurrencyTable] = None):
        self._table = table if table is not None else EMPTY_TABLE

    def snapshot(self) -> CurrencyTable:
        return self._table

    def replace(self, raw: Any) -> CurrencyTable:
        """Swap in a new table built from a raw payload."""
        self._table = build_table(raw)
        return self._table

    def __len__(self) -> int:
        return len(self._table)


async def refresh_currencies(client: ConstruxisAPIClient, cache: CurrencyCache) -> bool:
    """
    Fetch /currencies and replace the cached table.

    Returns:
        True if the table was replaced, False if the prior table was kept
    """
    try:
        raw = await client.get_currencies()
    except (ConstruxisAPIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Failed to fetch currencies: {error_message(e)}")
        return False

    table = cache.replace(raw)
    logger.info(f"Currency cache updated: {len(table)} currencies")
    return True


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_currency(amount: float, currency_code: str, table: CurrencyTable) -> str:
    """
    Render an amount for display.

    Unknown codes fall back to "12.30 XYZ". Amounts below 1.0 switch to the
    subunit ("$50 cents") when the currency defines both a subunit name and
    ratio. The symbol defaults to the code.
    """
    currency = table.get(currency_code)
    if currency is None:
        return f"{amount:.2f} {currency_code}"

    symbol = currency.symbol or currency_code
    before = currency.symbol_placement == "before"

    scaled = amount * currency.subunit_ratio if currency.subunit_ratio else None
    if amount < 1.0 and currency.subunit and scaled is not None and math.isfinite(scaled):
        subunit_amount = _round_half_up(scaled)
        if before:
            return f"{symbol}{subunit_amount} {currency.subunit}"
        return f"{subunit_amount} {currency.subunit} {symbol}"

    formatted = f"{amount:.2f}"
    if before:
        return f"{symbol}{formatted}"
    return f"{formatted} {symbol}"


def currency_name(currency_code: str, table: CurrencyTable) -> str:
    """Full name of a currency, or the code itself."""
    currency = table.get(currency_code)
    if currency is not None and currency.full_name:
        return currency.full_name
    return currency_code
