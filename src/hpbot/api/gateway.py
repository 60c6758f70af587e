"""Market data gateway: the engine's view of the venue.

The engine only talks to ``MarketDataGateway``. ``PolymarketGateway`` backs it
with the Gamma API for discovery and the CLOB API for live prices and order
status, and turns every upstream failure into an empty or UNKNOWN result.
"""

from datetime import datetime
from typing import Any, Optional, Protocol

from hpbot.api.gamma import GammaClient, parse_end_date
from hpbot.api.models import Market
from hpbot.api.windows import DEFAULT_WINDOW_SECONDS, resolve_event_slug
from hpbot.config import Settings, get_settings
from hpbot.engine.types import OrderStatusReport, VenueOrderStatus
from hpbot.executor.async_clob import (
    ApiCredentials,
    AsyncClobClient,
    create_async_clob_client,
)
from hpbot.executor.submitter import DRY_RUN_ORDER_PREFIX
from hpbot.utils.logging import get_logger

log = get_logger(__name__)

_VENUE_STATUSES = {
    "matched": VenueOrderStatus.MATCHED,
    "filled": VenueOrderStatus.MATCHED,
    "canceled": VenueOrderStatus.CANCELLED,
    "cancelled": VenueOrderStatus.CANCELLED,
    "canceled_market_resolved": VenueOrderStatus.CANCELLED,
    "live": VenueOrderStatus.LIVE,
    "open": VenueOrderStatus.LIVE,
    "delayed": VenueOrderStatus.LIVE,
}


def _first_float(data: dict[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        value = data.get(key)
        if value in (None, ""):
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


def normalize_order_status(data: Any) -> OrderStatusReport:
    """Normalize a CLOB order payload into an OrderStatusReport."""
    if not isinstance(data, dict):
        return OrderStatusReport.unknown()

    status = _VENUE_STATUSES.get(
        str(data.get("status") or "").lower(), VenueOrderStatus.UNKNOWN
    )
    filled = _first_float(data, "size_matched", "sizeMatched", "size_filled", "sizeFilled") or 0.0
    remaining = _first_float(data, "size_remaining", "sizeRemaining")
    if remaining is None:
        original = _first_float(data, "original_size", "originalSize", "size")
        remaining = max(original - filled, 0.0) if original is not None else 0.0

    return OrderStatusReport(status=status, size_filled=filled, size_remaining=remaining)


class MarketDataGateway(Protocol):
    """What the engine needs from the venue."""

    async def fetch_markets(self) -> list[Market]:
        """Current open markets with live probabilities; [] on failure."""
        ...

    async def fetch_market_end_time(self, market_id: str) -> Optional[datetime]:
        """Declared end time of a market, fetched fresh; None if unknown."""
        ...

    async def fetch_order_status(self, order_id: str) -> OrderStatusReport:
        """Fill status of an order; UNKNOWN on failure."""
        ...


class PolymarketGateway:
    """MarketDataGateway backed by the Gamma and CLOB APIs."""

    def __init__(
        self,
        gamma: GammaClient,
        clob: AsyncClobClient,
        event_slug: Optional[str] = None,
        keywords: Optional[list[str]] = None,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        event_limit: int = 100,
    ) -> None:
        self.gamma = gamma
        self.clob = clob
        self.event_slug = event_slug
        self.keywords = [k.lower() for k in keywords or []]
        self.window_seconds = window_seconds
        self.event_limit = event_limit

    def _matches_keywords(self, market: Market) -> bool:
        if not self.keywords:
            return True
        question = market.question.lower()
        return any(k in question for k in self.keywords)

    async def fetch_markets(self) -> list[Market]:
        try:
            if self.event_slug:
                slug = resolve_event_slug(self.event_slug, window_seconds=self.window_seconds)
                markets = await self.gamma.fetch_event_markets(slug)
            else:
                markets = await self.gamma.fetch_all_active_markets(limit=self.event_limit)

            markets = [m for m in markets if self._matches_keywords(m)]

            token_ids = [t for m in markets for t in m.token_ids]
            prices = await self.clob.get_midpoints(token_ids)
            if prices:
                markets = [m.with_prices(prices) for m in markets]

            log.debug("Markets fetched", count=len(markets), priced=len(prices))
            return markets
        except Exception as e:
            log.error("Failed to fetch markets", error=str(e))
            return []

    async def fetch_market_end_time(self, market_id: str) -> Optional[datetime]:
        try:
            data = await self.gamma.get_market(market_id)
        except Exception as e:
            log.warning("Failed to fetch market end time", market_id=market_id, error=str(e))
            return None
        return parse_end_date(data) if data else None

    async def fetch_order_status(self, order_id: str) -> OrderStatusReport:
        if order_id.startswith(DRY_RUN_ORDER_PREFIX):
            # Simulated orders fill immediately
            return OrderStatusReport(status=VenueOrderStatus.MATCHED)
        if not self.clob.has_credentials:
            log.debug("No L2 credentials, order status unknown", order_id=order_id[:16])
            return OrderStatusReport.unknown()
        try:
            data = await self.clob.get_order(order_id)
        except Exception as e:
            log.warning("Order status query failed", order_id=order_id[:16], error=str(e))
            return OrderStatusReport.unknown()
        return normalize_order_status(data)

    async def close(self) -> None:
        await self.gamma.close()
        await self.clob.close()


def create_gateway(
    settings: Optional[Settings] = None,
    credentials: Optional[ApiCredentials] = None,
) -> PolymarketGateway:
    """Create a PolymarketGateway from settings."""
    settings = settings or get_settings()
    return PolymarketGateway(
        gamma=GammaClient(settings.gamma_base_url),
        clob=create_async_clob_client(settings, credentials),
        event_slug=settings.event_slug,
        keywords=settings.market_keywords,
        window_seconds=settings.window_seconds,
    )
