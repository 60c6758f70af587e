"""Order execution for approved opportunities."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from hpbot.engine.types import (
    UNTRACKED_ORDER_ID,
    Order,
    OrderStatus,
    SubmissionResult,
    utcnow,
)
from hpbot.executor.submitter import OrderSubmitter
from hpbot.utils.logging import get_logger

log = get_logger(__name__)

# Venues and client versions disagree on field names
ORDER_ID_KEYS = ("orderID", "orderId", "order_id", "id", "messageHash")
ERROR_KEYS = ("error", "errorMsg", "message")

FILLED_STATUSES = ("filled", "matched")
CANCELLED_STATUSES = ("canceled", "cancelled", "not_matched", "expired", "unmatched")


def normalize_submission(response: Any) -> SubmissionResult:
    """Normalize a raw submission response into a SubmissionResult."""
    if isinstance(response, Exception):
        return SubmissionResult(
            status=OrderStatus.FAILED,
            error=str(response) or type(response).__name__,
        )

    if not isinstance(response, dict):
        return SubmissionResult(status=OrderStatus.FAILED, error="Unknown response format")

    order_id = next((str(response[k]) for k in ORDER_ID_KEYS if response.get(k)), None)

    error_msg = next((str(response[k]) for k in ERROR_KEYS if response.get(k)), "")
    if response.get("success") is False or (error_msg and not order_id):
        return SubmissionResult(
            status=OrderStatus.FAILED,
            order_id=order_id,
            error=error_msg or "Order rejected by venue",
        )

    status_str = str(response.get("status") or "").lower()
    if status_str in FILLED_STATUSES:
        status = OrderStatus.FILLED
    elif status_str in CANCELLED_STATUSES:
        # A resting GTC order is never cancelled on submission
        return SubmissionResult(
            status=OrderStatus.FAILED,
            order_id=order_id,
            error=f"Order not placed (status: {status_str})",
        )
    else:
        # live, open, pending, delayed, or missing
        if status_str not in ("", "live", "open", "pending", "delayed"):
            log.warning("Unknown order status", status=status_str)
        status = OrderStatus.SUBMITTED

    return SubmissionResult(status=status, order_id=order_id or UNTRACKED_ORDER_ID)


@dataclass
class ExecutorStats:
    """Statistics for the executor."""

    total_attempts: int = 0
    successful: int = 0
    failed: int = 0


class OrderExecutor:
    """
    Places buy orders for approved opportunities.

    submit() never raises: venue failures come back as FAILED orders with a
    readable error so the caller can record them and keep going.
    """

    def __init__(
        self,
        submitter: OrderSubmitter,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.submitter = submitter
        self.clock = clock
        self.stats = ExecutorStats()

    async def submit(
        self,
        market_id: str,
        outcome_id: str,
        price: float,
        size: float,
        label: str = "",
    ) -> Order:
        self.stats.total_attempts += 1
        log.info(
            "Submitting order",
            market_id=market_id,
            token_id=outcome_id[:16],
            price=price,
            size=size,
        )

        if not outcome_id or not 0 < price <= 1 or not size > 0:
            result = SubmissionResult(
                status=OrderStatus.FAILED,
                error=f"Invalid order parameters: token={outcome_id!r} price={price} size={size}",
            )
        else:
            try:
                response = await self.submitter.submit_order(outcome_id, price, size)
                result = normalize_submission(response)
            except Exception as e:
                log.error("Order submission error", token_id=outcome_id[:16], error=str(e))
                result = normalize_submission(e)

        order = self._to_order(result, market_id, outcome_id, price, size, label)

        if order.is_success:
            self.stats.successful += 1
            log.info("Order accepted", order_id=order.order_id, status=order.status.value)
        else:
            self.stats.failed += 1
            log.warning("Order failed", error=order.error)

        return order

    def _to_order(
        self,
        result: SubmissionResult,
        market_id: str,
        outcome_id: str,
        price: float,
        size: float,
        label: str,
    ) -> Order:
        now = self.clock()
        filled = size if result.status is OrderStatus.FILLED else 0.0
        return Order(
            market_id=market_id,
            outcome_id=outcome_id,
            price=price,
            size=size,
            status=result.status,
            order_id=result.order_id,
            label=label,
            size_filled=filled,
            size_remaining=size - filled if result.status is not OrderStatus.FAILED else 0.0,
            created_at=now,
            last_checked_at=now,
            error=result.error,
        )

    def get_stats(self) -> dict[str, Any]:
        """Get executor statistics."""
        return {
            "total_attempts": self.stats.total_attempts,
            "successful": self.stats.successful,
            "failed": self.stats.failed,
        }
