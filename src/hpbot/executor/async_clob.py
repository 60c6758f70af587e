"""
Async CLOB client for prices and order status.

Order signing and posting go through py-clob-client (see submitter.py); this
client covers the read paths that the scan and tracking loops hit every tick,
using httpx with connection pooling so they never block the event loop.
"""

import asyncio
import base64
import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from eth_account import Account

from hpbot.config import Settings, get_settings
from hpbot.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ApiCredentials:
    """L2 API credentials for authenticated CLOB endpoints."""

    api_key: str
    api_secret: str
    api_passphrase: str


class AsyncClobClient:
    """
    Async CLOB client for the read-only endpoints used by the engine.

    Public endpoints (midpoints) work without credentials; order lookups
    need L2 credentials and the signer address.
    """

    def __init__(
        self,
        host: str = "https://clob.polymarket.com",
        private_key: Optional[str] = None,
        credentials: Optional[ApiCredentials] = None,
        timeout: float = 5.0,
    ):
        self.host = host.rstrip("/")
        self.address: Optional[str] = Account.from_key(private_key).address if private_key else None
        self.credentials = credentials

        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=5.0),
            limits=limits,
        )
        log.debug("AsyncClobClient initialized", host=self.host, address=self.address)

    @property
    def has_credentials(self) -> bool:
        return self.credentials is not None and self.address is not None

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def get_midpoint(self, token_id: str) -> Optional[float]:
        """Get the midpoint price for a token, or None if unavailable."""
        try:
            response = await self._client.get(
                f"{self.host}/midpoint",
                params={"token_id": token_id},
            )
            if response.status_code != 200:
                return None
            data = response.json()
            if not isinstance(data, dict):
                return None
            mid = data.get("mid")
            return float(mid) if mid not in (None, "") else None
        except (httpx.HTTPError, ValueError, TypeError) as e:
            log.debug("Midpoint fetch failed", token_id=token_id[:16], error=str(e))
            return None

    async def get_midpoints(self, token_ids: list[str]) -> dict[str, float]:
        """Fetch midpoints for many tokens concurrently; missing tokens are omitted."""
        if not token_ids:
            return {}

        t0 = time.time()
        results = await asyncio.gather(*(self.get_midpoint(t) for t in token_ids))
        prices = {t: p for t, p in zip(token_ids, results) if p is not None}

        log.debug(
            "Fetched midpoints",
            fetched=len(prices),
            requested=len(token_ids),
            duration_ms=int((time.time() - t0) * 1000),
        )
        return prices

    def _build_hmac_signature(
        self,
        timestamp: int,
        method: str,
        request_path: str,
        body: Optional[str] = None,
    ) -> str:
        """Build HMAC signature for L2 authentication."""
        assert self.credentials is not None
        secret_bytes = base64.urlsafe_b64decode(self.credentials.api_secret)
        message = f"{timestamp}{method}{request_path}"
        if body:
            message += body

        h = hmac.new(secret_bytes, message.encode("utf-8"), hashlib.sha256)
        return base64.urlsafe_b64encode(h.digest()).decode("utf-8")

    def _get_l2_headers(self, method: str, path: str, body: Optional[str] = None) -> dict:
        """Generate L2 authentication headers."""
        if not self.has_credentials:
            raise RuntimeError("L2 credentials not configured for CLOB client")
        assert self.credentials is not None and self.address is not None

        timestamp = int(time.time())
        signature = self._build_hmac_signature(timestamp, method, path, body)

        return {
            "POLY_ADDRESS": self.address,
            "POLY_SIGNATURE": signature,
            "POLY_TIMESTAMP": str(timestamp),
            "POLY_API_KEY": self.credentials.api_key,
            "POLY_PASSPHRASE": self.credentials.api_passphrase,
        }

    async def get_order(self, order_id: str) -> dict[str, Any]:
        """Get order details by ID. Raises on transport or HTTP errors."""
        path = f"/data/order/{order_id}"
        headers = self._get_l2_headers("GET", path)

        response = await self._client.get(f"{self.host}{path}", headers=headers)
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict):
            # The API answers null for ids it does not know
            return {"id": order_id, "status": "unknown"}
        log.debug("get_order response", order_id=order_id[:20], status=data.get("status"))
        return data

    async def __aenter__(self) -> "AsyncClobClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


def create_async_clob_client(
    settings: Optional[Settings] = None,
    credentials: Optional[ApiCredentials] = None,
) -> AsyncClobClient:
    """Create an AsyncClobClient from settings.

    Explicit credentials win over the ones configured in the environment.
    """
    settings = settings or get_settings()

    if credentials is None and settings.has_api_credentials():
        assert settings.poly_api_secret is not None and settings.poly_api_passphrase is not None
        credentials = ApiCredentials(
            api_key=settings.poly_api_key or "",
            api_secret=settings.poly_api_secret.get_secret_value(),
            api_passphrase=settings.poly_api_passphrase.get_secret_value(),
        )

    return AsyncClobClient(
        host=settings.clob_base_url,
        private_key=settings.private_key.get_secret_value() if settings.private_key else None,
        credentials=credentials,
    )
