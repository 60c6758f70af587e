"""Tests for fill tracking and eviction."""

import pytest

from conftest import FakeClock, FakeGateway

from hpbot.engine.tracker import ActiveOrderTracker
from hpbot.engine.types import (
    LedgerAction,
    Order,
    OrderStatus,
    OrderStatusReport,
    VenueOrderStatus,
)
from hpbot.tracking.trades import TradeLedger


def make_order(order_id: str = "X1", size: float = 5.0, status=OrderStatus.SUBMITTED) -> Order:
    return Order(
        market_id="M",
        outcome_id="O",
        price=0.97,
        size=size,
        status=status,
        order_id=order_id,
        label="Up",
        size_remaining=size,
    )


def make_tracker(gateway: FakeGateway = None, clock: FakeClock = None):
    gateway = gateway or FakeGateway()
    ledger = TradeLedger()
    tracker = ActiveOrderTracker(gateway, ledger, clock=clock or FakeClock())
    return tracker, gateway, ledger


class TestRegister:
    def test_untrackable_orders_are_ignored(self):
        tracker, _, _ = make_tracker()

        assert not tracker.register(make_order(order_id="CREATED"))
        assert not tracker.register(make_order(order_id=None))
        assert not tracker.register(make_order(status=OrderStatus.FAILED))
        assert tracker.count == 0

    def test_register_keys_by_order_id(self):
        tracker, _, _ = make_tracker()

        assert tracker.register(make_order("X1"))
        assert tracker.register(make_order("X2"))
        assert [o.order_id for o in tracker.orders()] == ["X1", "X2"]


@pytest.mark.asyncio
class TestFillClassification:
    async def test_empty_tracker_is_a_noop(self):
        tracker, gateway, ledger = make_tracker()

        assert await tracker.check_all() == []
        assert gateway.status_queries == []
        assert len(ledger) == 0

    async def test_fully_filled_order_is_evicted(self):
        tracker, gateway, ledger = make_tracker()
        order = make_order()
        tracker.register(order)
        gateway.statuses["X1"] = OrderStatusReport(VenueOrderStatus.LIVE, size_filled=5.0)

        evicted = await tracker.check_all()

        assert evicted == [order]
        assert order.status is OrderStatus.FILLED
        assert order.size_filled == 5.0
        assert order.size_remaining == 0.0
        assert tracker.count == 0

        entry = ledger.entries()[0]
        assert entry.action is LedgerAction.FILLED
        assert entry.success
        assert entry.order_id == "X1"

    async def test_matched_status_fills_even_without_sizes(self):
        tracker, gateway, _ = make_tracker()
        order = make_order()
        tracker.register(order)
        gateway.statuses["X1"] = OrderStatusReport(VenueOrderStatus.MATCHED)

        await tracker.check_all()

        assert order.status is OrderStatus.FILLED
        assert order.size_filled == order.size

    async def test_partial_fill_stays_tracked(self):
        tracker, gateway, ledger = make_tracker()
        order = make_order()
        tracker.register(order)
        gateway.statuses["X1"] = OrderStatusReport(
            VenueOrderStatus.LIVE, size_filled=2.0, size_remaining=3.0
        )

        assert await tracker.check_all() == []

        assert order.status is OrderStatus.PARTIALLY_FILLED
        assert order.size_filled == 2.0
        assert order.size_remaining == 3.0
        assert tracker.count == 1
        entry = ledger.entries()[0]
        assert entry.action is LedgerAction.UPDATED
        assert entry.success
        assert entry.order_id == "X1"

        gateway.statuses["X1"] = OrderStatusReport(
            VenueOrderStatus.LIVE, size_filled=4.0, size_remaining=1.0
        )
        await tracker.check_all()
        assert order.status is OrderStatus.PARTIALLY_FILLED
        assert order.size_remaining == 1.0
        assert len(ledger) == 2

        # Same fill reported again
        await tracker.check_all()
        assert len(ledger) == 2

    async def test_cancelled_order_is_evicted_with_failed_entry(self):
        tracker, gateway, ledger = make_tracker()
        order = make_order()
        tracker.register(order)
        gateway.statuses["X1"] = OrderStatusReport(VenueOrderStatus.CANCELLED)

        await tracker.check_all()

        assert order.status is OrderStatus.CANCELLED
        assert tracker.count == 0
        entry = ledger.entries()[0]
        assert entry.action is LedgerAction.CANCELLED
        assert not entry.success

    async def test_cancelled_after_partial_fill_is_evicted(self):
        tracker, gateway, _ = make_tracker()
        order = make_order()
        tracker.register(order)
        gateway.statuses["X1"] = OrderStatusReport(
            VenueOrderStatus.CANCELLED, size_filled=2.0, size_remaining=3.0
        )

        await tracker.check_all()

        assert order.status is OrderStatus.CANCELLED
        assert order.size_filled == 2.0
        assert tracker.count == 0

    async def test_unknown_status_only_refreshes_last_checked(self):
        clock = FakeClock()
        tracker, gateway, ledger = make_tracker(clock=clock)
        order = make_order()
        tracker.register(order)

        await tracker.check_all()

        assert order.status is OrderStatus.SUBMITTED
        assert order.last_checked_at == clock.now
        assert tracker.count == 1
        assert len(ledger) == 0

    async def test_order_filled_at_submission_is_evicted_next_tick(self):
        tracker, gateway, ledger = make_tracker()
        order = make_order(status=OrderStatus.FILLED)
        tracker.register(order)
        gateway.statuses["X1"] = OrderStatusReport(VenueOrderStatus.MATCHED)

        await tracker.check_all()

        assert tracker.count == 0
        assert ledger.entries()[0].action is LedgerAction.FILLED


@pytest.mark.asyncio
class TestFailureIsolation:
    async def test_one_failed_query_does_not_abort_the_tick(self):
        tracker, gateway, ledger = make_tracker()
        broken, healthy = make_order("X1"), make_order("X2")
        tracker.register(broken)
        tracker.register(healthy)
        gateway.statuses["X1"] = ConnectionError("timeout")
        gateway.statuses["X2"] = OrderStatusReport(VenueOrderStatus.MATCHED)

        evicted = await tracker.check_all()

        assert evicted == [healthy]
        assert [o.order_id for o in tracker.orders()] == ["X1"]
        assert broken.status is OrderStatus.SUBMITTED
        assert sorted(gateway.status_queries) == ["X1", "X2"]

    async def test_failed_order_is_retried_next_tick(self):
        tracker, gateway, _ = make_tracker()
        tracker.register(make_order("X1"))
        gateway.statuses["X1"] = ConnectionError("timeout")
        await tracker.check_all()

        gateway.statuses["X1"] = OrderStatusReport(VenueOrderStatus.MATCHED)
        await tracker.check_all()

        assert tracker.count == 0
        assert gateway.status_queries == ["X1", "X1"]
