"""Tests for the Polymarket gateway adapter."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from conftest import make_market

from hpbot.api.gateway import PolymarketGateway, normalize_order_status
from hpbot.engine.types import VenueOrderStatus


def make_gateway(**kwargs) -> tuple[PolymarketGateway, MagicMock, MagicMock]:
    gamma = MagicMock()
    gamma.fetch_event_markets = AsyncMock(return_value=[make_market()])
    gamma.fetch_all_active_markets = AsyncMock(return_value=[make_market()])
    gamma.get_market = AsyncMock(return_value={"id": "M", "endDate": "2026-01-06T20:15:00Z"})
    gamma.close = AsyncMock()

    clob = MagicMock()
    clob.has_credentials = True
    clob.get_midpoints = AsyncMock(return_value={})
    clob.get_order = AsyncMock(return_value={"status": "LIVE", "size_matched": "0", "original_size": "5"})
    clob.close = AsyncMock()

    return PolymarketGateway(gamma, clob, **kwargs), gamma, clob


class TestNormalizeOrderStatus:
    def test_matched(self):
        report = normalize_order_status({"status": "MATCHED", "size_matched": "5", "original_size": "5"})

        assert report.status is VenueOrderStatus.MATCHED
        assert report.size_filled == 5.0
        assert report.size_remaining == 0.0

    def test_live_partial_fill_derives_remaining(self):
        report = normalize_order_status({"status": "LIVE", "size_matched": "2", "original_size": "5"})

        assert report.status is VenueOrderStatus.LIVE
        assert report.size_filled == 2.0
        assert report.size_remaining == 3.0

    def test_alternate_keys(self):
        report = normalize_order_status({"status": "open", "sizeFilled": 1.5, "sizeRemaining": 3.5})

        assert report.size_filled == 1.5
        assert report.size_remaining == 3.5

    def test_cancelled_spellings(self):
        assert normalize_order_status({"status": "CANCELED"}).status is VenueOrderStatus.CANCELLED
        assert normalize_order_status({"status": "cancelled"}).status is VenueOrderStatus.CANCELLED

    def test_garbage_is_unknown(self):
        assert normalize_order_status(None).status is VenueOrderStatus.UNKNOWN
        report = normalize_order_status({"status": "weird", "size_matched": "n/a"})
        assert report.status is VenueOrderStatus.UNKNOWN
        assert report.size_filled == 0.0


@pytest.mark.asyncio
class TestFetchMarkets:
    async def test_window_series_slug_is_regenerated(self):
        gateway, gamma, _ = make_gateway(event_slug="btc-updown-15m")

        await gateway.fetch_markets()

        slug = gamma.fetch_event_markets.await_args.args[0]
        assert slug.startswith("btc-updown-15m-")
        assert int(slug.rsplit("-", 1)[1]) % 900 == 0
        gamma.fetch_all_active_markets.assert_not_awaited()

    async def test_plain_slug_passes_through(self):
        gateway, gamma, _ = make_gateway(event_slug="us-election")

        await gateway.fetch_markets()

        gamma.fetch_event_markets.assert_awaited_once_with("us-election")

    async def test_without_slug_lists_active_events(self):
        gateway, gamma, _ = make_gateway()

        markets = await gateway.fetch_markets()

        gamma.fetch_all_active_markets.assert_awaited_once_with(limit=100)
        assert [m.id for m in markets] == ["M"]

    async def test_midpoints_override_quoted_prices(self):
        gateway, _, clob = make_gateway()
        clob.get_midpoints = AsyncMock(return_value={"O": 0.991})

        markets = await gateway.fetch_markets()

        clob.get_midpoints.assert_awaited_once_with(["O", "O2"])
        probabilities = {o.outcome_id: o.probability for o in markets[0].outcomes}
        assert probabilities == {"O": 0.991, "O2": 0.03}

    async def test_keyword_filter(self):
        gateway, gamma, _ = make_gateway(keywords=["Ethereum"])
        gamma.fetch_all_active_markets = AsyncMock(
            return_value=[
                make_market("M1", question="Will Bitcoin close up?"),
                make_market("M2", question="Will ethereum close up?"),
            ]
        )

        markets = await gateway.fetch_markets()

        assert [m.id for m in markets] == ["M2"]

    async def test_upstream_errors_degrade_to_empty(self):
        gateway, gamma, _ = make_gateway()
        gamma.fetch_all_active_markets = AsyncMock(side_effect=aiohttp.ClientError("502"))

        assert await gateway.fetch_markets() == []


@pytest.mark.asyncio
class TestEndTimeAndOrderStatus:
    async def test_end_time_is_parsed(self):
        gateway, _, _ = make_gateway()

        end = await gateway.fetch_market_end_time("M")

        assert end == datetime(2026, 1, 6, 20, 15, tzinfo=timezone.utc)

    async def test_end_time_failure_is_none(self):
        gateway, gamma, _ = make_gateway()
        gamma.get_market = AsyncMock(side_effect=aiohttp.ClientError("boom"))

        assert await gateway.fetch_market_end_time("M") is None

    async def test_dry_run_orders_are_matched_without_query(self):
        gateway, _, clob = make_gateway()

        report = await gateway.fetch_order_status("dry_123_456")

        assert report.status is VenueOrderStatus.MATCHED
        clob.get_order.assert_not_awaited()

    async def test_live_order_status(self):
        gateway, _, clob = make_gateway()
        clob.get_order = AsyncMock(
            return_value={"status": "LIVE", "size_matched": "2", "original_size": "5"}
        )

        report = await gateway.fetch_order_status("0xabc")

        clob.get_order.assert_awaited_once_with("0xabc")
        assert report.status is VenueOrderStatus.LIVE
        assert report.size_filled == 2.0

    async def test_query_failure_is_unknown(self):
        gateway, _, clob = make_gateway()
        clob.get_order = AsyncMock(side_effect=RuntimeError("401"))

        report = await gateway.fetch_order_status("0xabc")

        assert report.status is VenueOrderStatus.UNKNOWN
        assert report.size_filled == 0.0

    async def test_no_credentials_is_unknown(self):
        gateway, _, clob = make_gateway()
        clob.has_credentials = False

        report = await gateway.fetch_order_status("0xabc")

        assert report.status is VenueOrderStatus.UNKNOWN
        clob.get_order.assert_not_awaited()

    async def test_close_closes_both_clients(self):
        gateway, gamma, clob = make_gateway()

        await gateway.close()

        gamma.close.assert_awaited_once()
        clob.close.assert_awaited_once()
