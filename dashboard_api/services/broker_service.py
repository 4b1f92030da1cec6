"""
Trade Dashboard - Broker Gateway Client

Fetches user-scoped order-book / trade-book / P&L data from the broker
gateway with a fixed timeout and a small retry budget.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from dashboard_api.config import settings
from dashboard_api.services.fill_normalizer import extract_rows
from dashboard_api.utils.ttl_store import TTLStore, cache_key

logger = logging.getLogger(__name__)

MIN_BACKOFF_SECONDS = 0.05

# Transport failures worth another attempt
RETRYABLE_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


class BrokerError(Exception):
    """Broker gateway call failed (after retries, where applicable)."""

    def __init__(self, message: str, status_code: int = 502, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail if detail is not None else message


def _error_detail(response: httpx.Response) -> Any:
    """Response body as JSON if it parses, else text."""
    try:
        return response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"


class BrokerService:
    """Client for the broker gateway REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        backoff_cap_seconds: Optional[float] = None,
        cache: Optional[TTLStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.broker_base_url).rstrip("/")
        self.secret = settings.broker_secret if secret is None else secret
        self.timeout = timeout or settings.broker_timeout_seconds
        self.max_retries = max(0, settings.broker_max_retries if max_retries is None else max_retries)
        self.backoff_seconds = max(
            MIN_BACKOFF_SECONDS,
            settings.broker_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self.backoff_cap_seconds = backoff_cap_seconds or settings.broker_backoff_cap_seconds
        self.cache = cache if cache is not None else TTLStore(settings.passthrough_cache_ttl_seconds)
        self._transport = transport

    def _backoff(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based), capped."""
        return min(self.backoff_cap_seconds, self.backoff_seconds * 2 ** (attempt - 1))

    def user_params(self, user_id: Optional[str]) -> Dict[str, str]:
        """Shared secret plus the user id parameter, when known."""
        params = {"secret": self.secret}
        if user_id:
            params[settings.broker_user_param] = user_id
        return params

    async def fetch_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET"
    ) -> Any:
        """
        Call the gateway and decode its JSON body.

        5xx responses, timeouts and connection errors are retried up to
        max_retries times with exponential backoff.

        Raises:
            BrokerError: Non-2xx response (provider status) or exhausted
                retries / undecodable body (502).
        """
        url = f"{self.base_url}{path}"
        attempt = 0

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            while True:
                try:
                    response = await client.request(
                        method, url, params=params, headers={"Accept": "application/json"}
                    )
                except RETRYABLE_ERRORS as e:
                    if attempt < self.max_retries:
                        attempt += 1
                        delay = self._backoff(attempt)
                        logger.warning(
                            f"[BROKER] {path} request error ({type(e).__name__}), "
                            f"retry {attempt}/{self.max_retries} in {delay:.2f}s"
                        )
                        await asyncio.sleep(delay)
                        continue
                    logger.error(f"[BROKER] {path} failed after {attempt + 1} attempts: {e!r}")
                    raise BrokerError(f"Request failed: {e!r}", status_code=502) from e

                if response.status_code >= 500 and attempt < self.max_retries:
                    attempt += 1
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"[BROKER] {path} returned {response.status_code}, "
                        f"retry {attempt}/{self.max_retries} in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                    continue

                if response.is_error:
                    logger.error(f"[BROKER] {path} HTTP error: {response.status_code}")
                    raise BrokerError(
                        f"HTTP {response.status_code}",
                        status_code=response.status_code,
                        detail=_error_detail(response),
                    )

                try:
                    return response.json()
                except ValueError as e:
                    logger.error(f"[BROKER] {path} returned a non-JSON body")
                    raise BrokerError(f"Invalid JSON from broker: {e}", status_code=502) from e

    async def get_orderbook(self, user_id: Optional[str]) -> List[Any]:
        """Fetch the user's order book rows (uncached)."""
        payload = await self.fetch_json(settings.broker_orderbook_path, params=self.user_params(user_id))
        rows = extract_rows(payload)
        logger.debug(f"[BROKER] Order book for {user_id or 'anonymous'}: {len(rows)} rows")
        return rows

    async def passthrough(self, path: str, user_id: Optional[str]) -> Any:
        """
        Fetch a gateway payload as-is, served from the short-lived cache
        when a fresh copy exists.
        """
        params = self.user_params(user_id)
        key = cache_key(f"{self.base_url}{path}", params)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        payload = await self.fetch_json(path, params=params)
        self.cache.set(key, payload)
        return payload


# Global service instance
broker_service = BrokerService()
