"""Gamma API client for market discovery."""

import json
import time
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from hpbot.api.models import Market, Outcome
from hpbot.config import get_settings
from hpbot.utils.logging import get_logger

log = get_logger(__name__)

# Gamma caches event pages aggressively; window markets need fresh data
NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _json_list(value: Any) -> list[Any]:
    """Gamma returns some list fields as JSON-encoded strings."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    return list(value) if isinstance(value, (list, tuple)) else []


def parse_end_date(data: dict[str, Any]) -> Optional[datetime]:
    """Parse a market end date from the various field names Gamma uses."""
    raw = (
        data.get("endDate")
        or data.get("end_date_iso")
        or data.get("end_date")
        or data.get("resolutionDate")
    )
    if not raw or not isinstance(raw, str):
        return None
    try:
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    except ValueError as e:
        log.debug("Failed to parse end_date", raw=raw, error=str(e))
        return None
    # Gamma omits the offset on some markets; its times are UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class GammaClient:
    """Client for Polymarket Gamma API (market discovery)."""

    def __init__(self, base_url: Optional[str] = None) -> None:
        self.base_url = (base_url or get_settings().gamma_base_url).rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=30),
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _get(
        self,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Make a GET request to the API."""
        session = await self._get_session()
        url = f"{self.base_url}{endpoint}"

        try:
            async with session.get(url, params=params, headers=headers) as response:
                response.raise_for_status()
                return await response.json()
        except aiohttp.ClientError as e:
            log.error("Gamma API request failed", url=url, error=str(e))
            raise

    async def get_events(self, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        """Fetch active, open events."""
        params = {
            "active": "true",
            "closed": "false",
            "limit": limit,
            "offset": offset,
        }
        data = await self._get("/events", params)
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and "events" in data:
            return data["events"]
        return []

    async def get_event_by_slug(self, slug: str) -> Optional[dict[str, Any]]:
        """Fetch a single event by slug, bypassing caches."""
        try:
            return await self._get(
                f"/events/slug/{slug}",
                params={"_t": int(time.time() * 1000)},
                headers=NO_CACHE_HEADERS,
            )
        except aiohttp.ClientResponseError as e:
            if e.status == 404:
                log.warning("Event not found", slug=slug)
                return None
            raise

    async def get_market(self, market_id: str) -> Optional[dict[str, Any]]:
        """
        Fetch a single market by ID.

        Returns:
            Market dictionary or None if not found
        """
        try:
            return await self._get(f"/markets/{market_id}")
        except aiohttp.ClientResponseError as e:
            if e.status == 404:
                return None
            raise

    def parse_market(
        self, data: dict[str, Any], parent: Optional[dict[str, Any]] = None
    ) -> Optional[Market]:
        """
        Parse a market dictionary into a Market object.

        Args:
            data: Raw market data from API
            parent: Enclosing event, used for fields the market omits

        Returns:
            Market object or None if parsing fails
        """
        parent = parent or {}
        try:
            raw_ids = data.get("clobTokenIds") or data.get("clob_token_ids")
            token_ids = [str(t) for t in _json_list(raw_ids)]
            labels = [str(o) for o in _json_list(data.get("outcomes"))]
            prices = _json_list(data.get("outcomePrices") or data.get("outcome_prices"))

            tokens = _json_list(data.get("tokens"))
            if not token_ids and tokens:
                token_ids = [
                    str(t.get("token_id") or t.get("tokenId"))
                    for t in tokens
                    if t.get("token_id") or t.get("tokenId")
                ]
                labels = labels or [str(t.get("outcome", "")) for t in tokens]
                prices = prices or [t.get("price", 0) for t in tokens]

            if not token_ids:
                log.debug(
                    "Skipping market without token IDs",
                    market_id=data.get("id"),
                    question=(data.get("question") or "")[:50],
                )
                return None

            outcomes = []
            for i, token_id in enumerate(token_ids):
                label = labels[i] if i < len(labels) else f"Outcome {i + 1}"
                try:
                    probability = float(prices[i]) if i < len(prices) else 0.0
                except (TypeError, ValueError):
                    probability = 0.0
                outcomes.append(Outcome(outcome_id=token_id, label=label, probability=probability))

            return Market(
                id=str(data.get("id") or parent.get("id", "")),
                question=data.get("question") or parent.get("title", ""),
                outcomes=tuple(outcomes),
                slug=data.get("slug") or parent.get("slug", ""),
                end_date=parse_end_date(data) or parse_end_date(parent),
                active=bool(data.get("active", True)),
                closed=bool(data.get("closed", False)),
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            log.warning(
                "Failed to parse market",
                market_id=data.get("id"),
                error=str(e),
            )
            return None

    def parse_event(self, event: dict[str, Any]) -> list[Market]:
        """Parse the open markets of an event."""
        markets: list[Market] = []
        for raw in event.get("markets") or []:
            if not raw.get("active", True) or raw.get("closed", False):
                log.debug("Skipping inactive market", market_id=raw.get("id"))
                continue
            market = self.parse_market(raw, parent=event)
            if market is not None:
                markets.append(market)
        return markets

    async def fetch_event_markets(self, slug: str) -> list[Market]:
        """Fetch the open markets of one event."""
        event = await self.get_event_by_slug(slug)
        if not event:
            return []
        markets = self.parse_event(event)
        log.info("Fetched event markets", slug=slug, total=len(markets))
        return markets

    async def fetch_all_active_markets(self, limit: int = 100) -> list[Market]:
        """Fetch the open markets of the first page of active events."""
        markets: list[Market] = []
        for event in await self.get_events(limit=limit):
            markets.extend(self.parse_event(event))
        log.info("Fetched active markets", total=len(markets))
        return markets

    async def __aenter__(self) -> "GammaClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.close()
