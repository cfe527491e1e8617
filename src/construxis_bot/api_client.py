"""
Async HTTP client for the Construxis economy API.

Wraps a single aiohttp session. Every call is a plain request/response with
no retries; HTTP error statuses are raised as ConstruxisAPIError carrying the
backend's human-readable detail.
"""

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

from .config import ConstruxisBotConfig

logger = logging.getLogger(__name__)

# Header required to get past the ngrok browser warning page
TUNNEL_BYPASS_HEADER = "ngrok-skip-browser-warning"


class ConstruxisAPIError(Exception):
    """The backend answered with an HTTP error status."""

    def __init__(self, detail: str, status: int):
        super().__init__(detail)
        self.detail = detail
        self.status = status


def error_message(error: BaseException) -> str:
    """Best-available human readable message for a failed call."""
    if isinstance(error, ConstruxisAPIError):
        return error.detail
    if isinstance(error, asyncio.TimeoutError):
        return str(error) or "Request timed out"
    return str(error) or "Unknown error"


def _segment(value: str) -> str:
    return quote(str(value), safe="")


class ConstruxisAPIClient:
    """Thin coroutine wrapper around each backend endpoint."""

    def __init__(
        self,
        config: ConstruxisBotConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = config.api_url
        self.api_key = config.api_key
        self.timeout = aiohttp.ClientTimeout(total=config.api_timeout)
        self._session = session

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "api-key": self.api_key,
            "Content-Type": "application/json",
            TUNNEL_BYPASS_HEADER: "true",
        }

    async def start(self) -> None:
        """Open the HTTP session if one was not injected."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def request(
        self, method: str, endpoint: str, data: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Args:
            method: HTTP method
            endpoint: Path beginning with '/'
            data: Optional JSON body

        Raises:
            ConstruxisAPIError: backend returned a 4xx/5xx status
            aiohttp.ClientError: transport failure
        """
        if self._session is None:
            await self.start()

        url = f"{self.base_url}{endpoint}"
        logger.debug(f"{method} {endpoint}")

        async with self._session.request(
            method, url, json=data, headers=self.headers
        ) as response:
            if response.status >= 400:
                detail = await self._error_detail(response)
                logger.warning(f"{method} {endpoint} -> {response.status}: {detail}")
                raise ConstruxisAPIError(detail, response.status)
            return await response.json(content_type=None)

    @staticmethod
    async def _error_detail(response: aiohttp.ClientResponse) -> str:
        fallback = f"Request failed with status code {response.status}"
        try:
            body = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            return fallback
        if isinstance(body, dict) and body.get("detail"):
            detail = body["detail"]
            return detail if isinstance(detail, str) else str(detail)
        return fallback

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    async def get_currencies(self) -> Dict[str, Any]:
        return await self.request("GET", "/currencies")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, username: str) -> Dict[str, Any]:
        return await self.request("GET", f"/user/{_segment(username)}")

    async def get_user_data(self, username: str) -> Optional[Dict[str, Any]]:
        """User record with wallets and bank accounts, or None if unavailable."""
        try:
            return await self.get_user(username)
        except (ConstruxisAPIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not load user {username}: {error_message(e)}")
            return None

    async def get_history(self, username: str, limit: int) -> Dict[str, Any]:
        return await self.request(
            "GET", f"/user/{_segment(username)}/history?limit={int(limit)}"
        )

    # ------------------------------------------------------------------
    # Money movement
    # ------------------------------------------------------------------

    async def create_transaction(
        self,
        from_wallet: str,
        to_wallet: str,
        amount: float,
        currency: str,
        note: str,
        is_physical: bool,
    ) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/transaction",
            {
                "from_wallet": from_wallet,
                "to_wallet": to_wallet,
                "amount": amount,
                "currency": currency,
                "note": note,
                "is_physical": is_physical,
            },
        )

    async def account_operation(
        self, account_id: str, amount: float, currency: str, action: str
    ) -> Dict[str, Any]:
        """Deposit cash into or withdraw cash from a bank account."""
        return await self.request(
            "POST",
            "/account/operation",
            {
                "account_id": account_id,
                "amount": amount,
                "currency": currency,
                "action": action,
            },
        )

    async def entity_pay(
        self,
        entity_name: str,
        amount: float,
        currency: str,
        note: str,
        to_username: Optional[str] = None,
        to_wallet: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "entity_name": entity_name,
            "amount": amount,
            "currency": currency,
            "note": note,
        }
        if to_username:
            payload["to_username"] = to_username
        elif to_wallet:
            payload["to_wallet"] = to_wallet
        return await self.request("POST", "/entity/pay", payload)

    async def entity_receive(
        self,
        entity_name: str,
        from_account: str,
        amount: float,
        currency: str,
        note: str,
    ) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/entity/receive",
            {
                "entity_name": entity_name,
                "from_account": from_account,
                "amount": amount,
                "currency": currency,
                "note": note,
            },
        )

    async def burn(
        self, wallet_id: str, amount: float, currency: str, reason: str
    ) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/burn",
            {
                "wallet_id": wallet_id,
                "amount": amount,
                "currency": currency,
                "reason": reason,
            },
        )

    # ------------------------------------------------------------------
    # Pending transactions
    # ------------------------------------------------------------------

    async def get_pending(self) -> Dict[str, Any]:
        return await self.request("GET", "/pending")

    async def pending_action(self, transaction_id: str, action: str) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/pending/action",
            {"transaction_id": transaction_id, "action": action},
        )

    # ------------------------------------------------------------------
    # Stock market
    # ------------------------------------------------------------------

    async def get_stock(self, ticker: str) -> Dict[str, Any]:
        return await self.request("GET", f"/stock/{_segment(ticker)}")

    async def trade_stock(
        self, ticker: str, shares: int, action: str, wallet_id: str
    ) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/stock/trade",
            {
                "ticker": ticker,
                "shares": shares,
                "action": action,
                "wallet_id": wallet_id,
            },
        )

    async def get_portfolio(self, username: str) -> Dict[str, Any]:
        return await self.request("GET", f"/stock/portfolio/{_segment(username)}")

    async def list_stocks(self) -> Dict[str, Any]:
        return await self.request("GET", "/stocks")
