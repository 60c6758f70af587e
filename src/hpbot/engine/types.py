"""Domain types for the order lifecycle.

Each status is a closed enum with an explicit transition table, so a record
can only move along the edges listed here.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from hpbot.engine.errors import InvalidTransition

# Placeholder id used when the venue accepted an order without returning one
UNTRACKED_ORDER_ID = "CREATED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingOrderStatus(str, Enum):
    """Approval state of a flagged opportunity."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    def transition_to(self, target: "PendingOrderStatus") -> "PendingOrderStatus":
        if target not in _PENDING_TRANSITIONS[self]:
            raise InvalidTransition("pending order", self.value, target.value)
        return target

    @property
    def is_terminal(self) -> bool:
        return not _PENDING_TRANSITIONS[self]


_PENDING_TRANSITIONS: dict[PendingOrderStatus, set[PendingOrderStatus]] = {
    PendingOrderStatus.PENDING: {PendingOrderStatus.APPROVED, PendingOrderStatus.REJECTED},
    PendingOrderStatus.APPROVED: set(),
    PendingOrderStatus.REJECTED: set(),
}


class OrderStatus(str, Enum):
    """Lifecycle of a submitted order."""

    SUBMITTED = "SUBMITTED"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"

    def transition_to(self, target: "OrderStatus") -> "OrderStatus":
        if target not in _ORDER_TRANSITIONS[self]:
            raise InvalidTransition("order", self.value, target.value)
        return target

    @property
    def is_terminal(self) -> bool:
        return not _ORDER_TRANSITIONS[self]


_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.SUBMITTED: {
        OrderStatus.PARTIALLY_FILLED,
        OrderStatus.FILLED,
        OrderStatus.CANCELLED,
    },
    # Repeated partial fills keep the order in PARTIALLY_FILLED
    OrderStatus.PARTIALLY_FILLED: {
        OrderStatus.PARTIALLY_FILLED,
        OrderStatus.FILLED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.FILLED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.FAILED: set(),
}


class SchedulerPhase(str, Enum):
    """Whether the scan loop is allowed to look for new opportunities."""

    SCANNING = "SCANNING"
    PAUSED = "PAUSED"

    def transition_to(self, target: "SchedulerPhase") -> "SchedulerPhase":
        if target is self:
            raise InvalidTransition("scheduler", self.value, target.value)
        return target


class VenueOrderStatus(str, Enum):
    """Fill status reported by the venue for an order."""

    LIVE = "LIVE"
    MATCHED = "MATCHED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


class LedgerAction(str, Enum):
    """What a trade ledger entry records."""

    SUBMITTED = "ORDER_SUBMITTED"
    SUBMIT_FAILED = "ORDER_FAILED"
    REJECTED = "ORDER_REJECTED"
    UPDATED = "ORDER_UPDATED"
    FILLED = "ORDER_FILLED"
    CANCELLED = "ORDER_CANCELLED"


@dataclass
class PendingOrder:
    """An opportunity waiting for a human decision."""

    id: str
    created_at: datetime
    market_id: str
    outcome_id: str
    label: str
    probability: float
    size: float
    question: str = ""
    status: PendingOrderStatus = PendingOrderStatus.PENDING

    @staticmethod
    def make_id(market_id: str, outcome_id: str, created_at: datetime) -> str:
        return f"{market_id}_{outcome_id}_{int(created_at.timestamp() * 1000)}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data["status"] = self.status.value
        return data


@dataclass
class Order:
    """A submitted order and its latest known fill state."""

    market_id: str
    outcome_id: str
    price: float
    size: float
    status: OrderStatus
    order_id: Optional[str] = None
    label: str = ""
    size_filled: float = 0.0
    size_remaining: float = 0.0
    created_at: datetime = field(default_factory=utcnow)
    last_checked_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_trackable(self) -> bool:
        """True when the venue gave us an id we can poll."""
        return (
            self.status in (OrderStatus.SUBMITTED, OrderStatus.FILLED)
            and bool(self.order_id)
            and self.order_id != UNTRACKED_ORDER_ID
        )

    @property
    def is_success(self) -> bool:
        return self.status in (OrderStatus.SUBMITTED, OrderStatus.FILLED)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["created_at"] = self.created_at.isoformat()
        data["last_checked_at"] = (
            self.last_checked_at.isoformat() if self.last_checked_at else None
        )
        return data


@dataclass
class TradeLogEntry:
    """A single trade-related event."""

    timestamp: datetime
    market_id: str
    outcome_id: str
    price: float
    size: float
    action: LedgerAction
    success: bool
    error: Optional[str] = None
    label: str = ""
    order_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["action"] = self.action.value
        return data


@dataclass(frozen=True)
class OrderStatusReport:
    """Normalized fill status for one order."""

    status: VenueOrderStatus
    size_filled: float = 0.0
    size_remaining: float = 0.0

    @classmethod
    def unknown(cls) -> "OrderStatusReport":
        return cls(status=VenueOrderStatus.UNKNOWN)


@dataclass(frozen=True)
class SubmissionResult:
    """Normalized outcome of an order submission."""

    status: OrderStatus
    order_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ActionResult:
    """Response to an approve/reject request."""

    success: bool
    message: str
