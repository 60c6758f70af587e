"""Pending orders waiting for approval."""

from typing import Optional

from hpbot.engine.errors import NotFoundOrAlreadyProcessed
from hpbot.engine.types import PendingOrder, PendingOrderStatus


class PendingOrderQueue:
    """Owns every PendingOrder the detector has created.

    Records are never removed; decided orders stay visible in ``all()``.
    Callers serialize mutations (the engine holds its lock around them).
    """

    def __init__(self) -> None:
        self._orders: list[PendingOrder] = []

    def add(self, order: PendingOrder) -> None:
        self._orders.append(order)

    def find_pending(self, pending_id: str) -> Optional[PendingOrder]:
        """Return the order with this id if it is still PENDING."""
        for order in self._orders:
            if order.id == pending_id and order.status is PendingOrderStatus.PENDING:
                return order
        return None

    def require_pending(self, pending_id: str) -> PendingOrder:
        order = self.find_pending(pending_id)
        if order is None:
            raise NotFoundOrAlreadyProcessed(pending_id)
        return order

    def pending(self) -> list[PendingOrder]:
        """PENDING orders, oldest first."""
        return [o for o in self._orders if o.status is PendingOrderStatus.PENDING]

    def all(self) -> list[PendingOrder]:
        """Every order, most recent first."""
        return list(reversed(self._orders))

    def mark_approved(self, order: PendingOrder) -> None:
        order.status = order.status.transition_to(PendingOrderStatus.APPROVED)

    def reject(self, pending_id: str) -> PendingOrder:
        """Reject a PENDING order. Raises NotFoundOrAlreadyProcessed."""
        order = self.require_pending(pending_id)
        order.status = order.status.transition_to(PendingOrderStatus.REJECTED)
        return order

    def __len__(self) -> int:
        return len(self._orders)
