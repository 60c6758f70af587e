"""Order submission collaborators.

Signing and posting are delegated to py-clob-client. Its client is
synchronous, so calls run in the default thread pool to keep the event loop
free for the scan and tracking loops.
"""

import asyncio
from datetime import datetime
from typing import Any, Optional, Protocol

from py_clob_client.client import ClobClient
from py_clob_client.clob_types import ApiCreds, OrderArgs, PartialCreateOrderOptions
from py_clob_client.order_builder.constants import BUY

from hpbot.config import Settings, get_settings
from hpbot.executor.async_clob import ApiCredentials
from hpbot.utils.logging import get_logger

log = get_logger(__name__)

DRY_RUN_ORDER_PREFIX = "dry_"


class OrderSubmitter(Protocol):
    """Places a buy order and returns the raw venue response."""

    async def submit_order(self, outcome_id: str, price: float, size: float) -> dict[str, Any]:
        ...


class DryRunOrderSubmitter:
    """Simulates submissions; every order is accepted as live."""

    async def submit_order(self, outcome_id: str, price: float, size: float) -> dict[str, Any]:
        ts_ms = int(datetime.now().timestamp() * 1000)
        fake_id = f"{DRY_RUN_ORDER_PREFIX}{outcome_id[:10]}_{ts_ms}"
        log.info(
            "Dry run: Would submit order",
            token_id=outcome_id[:16],
            price=price,
            size=size,
            order_id=fake_id,
        )
        return {"success": True, "orderID": fake_id, "status": "live"}


class ClobOrderSubmitter:
    """Submits GTC limit buy orders through py-clob-client."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        tick_size: str = "0.01",
        neg_risk: bool = False,
    ) -> None:
        self.settings = settings or get_settings()
        self.tick_size = tick_size
        self.neg_risk = neg_risk
        self._client: Optional[ClobClient] = None
        self._credentials: Optional[ApiCredentials] = None

    @property
    def credentials(self) -> Optional[ApiCredentials]:
        return self._credentials

    def _build_client(self) -> ClobClient:
        settings = self.settings
        if settings.private_key is None:
            raise RuntimeError("PRIVATE_KEY is required for live order submission")

        kwargs: dict[str, Any] = {
            "key": settings.private_key.get_secret_value(),
            "chain_id": settings.chain_id,
        }
        # Email/Magic and browser wallets sign for a proxy (funder) address
        if settings.signature_type is not None and settings.proxy_address:
            kwargs["signature_type"] = settings.signature_type
            kwargs["funder"] = settings.proxy_address
            log.info(
                "Using proxy wallet signing",
                signature_type=settings.signature_type,
                funder=settings.proxy_address,
            )

        client = ClobClient(settings.clob_base_url, **kwargs)

        if settings.has_api_credentials():
            assert settings.poly_api_secret is not None and settings.poly_api_passphrase is not None
            creds = ApiCreds(
                api_key=settings.poly_api_key or "",
                api_secret=settings.poly_api_secret.get_secret_value(),
                api_passphrase=settings.poly_api_passphrase.get_secret_value(),
            )
        else:
            log.info("Deriving API credentials from private key")
            creds = client.create_or_derive_api_creds()

        client.set_api_creds(creds)
        self._credentials = ApiCredentials(
            api_key=creds.api_key,
            api_secret=creds.api_secret,
            api_passphrase=creds.api_passphrase,
        )
        log.info("CLOB client initialized with L2 credentials", api_key=creds.api_key[:10] + "...")
        return client

    async def connect(self) -> Optional[ApiCredentials]:
        """Build the CLOB client and return the L2 credentials it uses."""
        if self._client is None:
            loop = asyncio.get_running_loop()
            self._client = await loop.run_in_executor(None, self._build_client)
        return self._credentials

    def _submit_sync(self, outcome_id: str, price: float, size: float) -> dict[str, Any]:
        assert self._client is not None
        order_args = OrderArgs(token_id=outcome_id, price=price, size=size, side=BUY)
        options = PartialCreateOrderOptions(tick_size=self.tick_size, neg_risk=self.neg_risk)
        response = self._client.create_and_post_order(order_args, options)
        log.info("Order submitted", token_id=outcome_id[:10], response=response)
        return response

    async def submit_order(self, outcome_id: str, price: float, size: float) -> dict[str, Any]:
        await self.connect()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._submit_sync, outcome_id, price, size)
