"""Fill tracking for submitted orders."""

import asyncio
from collections.abc import Callable
from datetime import datetime

from hpbot.api.gateway import MarketDataGateway
from hpbot.engine.errors import TrackingQueryFailure
from hpbot.engine.types import (
    LedgerAction,
    Order,
    OrderStatus,
    OrderStatusReport,
    TradeLogEntry,
    VenueOrderStatus,
    utcnow,
)
from hpbot.tracking.trades import TradeLedger
from hpbot.utils.logging import get_logger

log = get_logger(__name__)


class ActiveOrderTracker:
    """
    Polls the venue for the fill status of every tracked order.

    Filled and cancelled orders are evicted and recorded in the ledger;
    partial fills stay tracked. Keyed by venue order id.
    """

    def __init__(
        self,
        gateway: MarketDataGateway,
        ledger: TradeLedger,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.gateway = gateway
        self.ledger = ledger
        self.clock = clock
        self._orders: dict[str, Order] = {}

    def register(self, order: Order) -> bool:
        """Start tracking an order. Orders without a usable id are ignored."""
        if not order.is_trackable:
            log.warning(
                "Order has no venue id, not tracking",
                market_id=order.market_id,
                order_id=order.order_id,
            )
            return False
        assert order.order_id is not None
        self._orders[order.order_id] = order
        log.info("Tracking order", order_id=order.order_id[:16], market_id=order.market_id)
        return True

    def orders(self) -> list[Order]:
        return list(self._orders.values())

    @property
    def count(self) -> int:
        return len(self._orders)

    async def check_all(self) -> list[Order]:
        """Query every tracked order once. Returns the orders evicted this tick."""
        if not self._orders:
            return []

        log.debug("Checking active orders", count=len(self._orders))
        orders = list(self._orders.values())
        results = await asyncio.gather(
            *(self._query(o) for o in orders), return_exceptions=True
        )

        evicted = []
        for order, result in zip(orders, results):
            if isinstance(result, BaseException):
                failure = TrackingQueryFailure(order.order_id or "", str(result))
                log.error("Order status check failed", error=str(failure))
                continue
            if self._apply(order, result):
                evicted.append(order)
        return evicted

    async def _query(self, order: Order) -> OrderStatusReport:
        assert order.order_id is not None
        return await self.gateway.fetch_order_status(order.order_id)

    def _apply(self, order: Order, report: OrderStatusReport) -> bool:
        """Fold a status report into the order. True when it was evicted."""
        now = self.clock()
        order.last_checked_at = now
        assert order.order_id is not None

        already_filled = order.status is OrderStatus.FILLED
        if (
            already_filled
            or report.status is VenueOrderStatus.MATCHED
            or report.size_filled >= order.size
        ):
            if not already_filled:
                order.status = order.status.transition_to(OrderStatus.FILLED)
            order.size_filled = order.size
            order.size_remaining = 0.0
            del self._orders[order.order_id]
            log.info(
                "Order filled",
                order_id=order.order_id[:16],
                market_id=order.market_id,
                size=order.size,
                price=order.price,
            )
            self._record(order, LedgerAction.FILLED, success=True, now=now)
            return True

        if report.status is VenueOrderStatus.CANCELLED:
            order.status = order.status.transition_to(OrderStatus.CANCELLED)
            if report.size_filled > 0:
                order.size_filled = report.size_filled
            del self._orders[order.order_id]
            log.warning("Order cancelled", order_id=order.order_id[:16], market_id=order.market_id)
            self._record(order, LedgerAction.CANCELLED, success=False, now=now)
            return True

        if 0 < report.size_filled < order.size:
            changed = report.size_filled != order.size_filled
            order.status = order.status.transition_to(OrderStatus.PARTIALLY_FILLED)
            order.size_filled = report.size_filled
            order.size_remaining = report.size_remaining or order.size - report.size_filled
            log.info(
                "Order partially filled",
                order_id=order.order_id[:16],
                filled=order.size_filled,
                remaining=order.size_remaining,
            )
            if changed:
                self._record(order, LedgerAction.UPDATED, success=True, now=now)
        return False

    def _record(self, order: Order, action: LedgerAction, success: bool, now: datetime) -> None:
        self.ledger.append(
            TradeLogEntry(
                timestamp=now,
                market_id=order.market_id,
                outcome_id=order.outcome_id,
                price=order.price,
                size=order.size,
                action=action,
                success=success,
                label=order.label,
                order_id=order.order_id,
            )
        )
