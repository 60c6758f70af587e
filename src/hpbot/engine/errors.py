"""Error taxonomy for the trading engine.

Only NotFoundOrAlreadyProcessed reaches users as a failed response. The rest
are absorbed where they happen and show up in the ledger and logs.
"""


class HpbotError(Exception):
    """Base class for engine errors."""


class NotFoundOrAlreadyProcessed(HpbotError):
    """Approve/reject was called on a missing or already decided order."""

    def __init__(self, pending_id: str) -> None:
        self.pending_id = pending_id
        super().__init__(f"Order not found or already processed: {pending_id}")


class SubmissionFailure(HpbotError):
    """The venue did not accept an order."""


class TrackingQueryFailure(HpbotError):
    """A fill-status query for a single tracked order failed."""

    def __init__(self, order_id: str, reason: str) -> None:
        self.order_id = order_id
        super().__init__(f"Status query failed for {order_id}: {reason}")


class UpstreamFetchFailure(HpbotError):
    """A market or price fetch failed."""


class InvalidTransition(HpbotError):
    """A status change that the state machine does not allow."""

    def __init__(self, kind: str, current: object, target: object) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid {kind} transition: {current} -> {target}")
