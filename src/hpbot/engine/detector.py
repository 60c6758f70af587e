"""Threshold detection of high-probability outcomes."""

from collections.abc import Callable, Iterable
from datetime import datetime

from hpbot.api.models import Market
from hpbot.engine.queue import PendingOrderQueue
from hpbot.engine.types import PendingOrder, utcnow
from hpbot.utils.logging import get_logger

log = get_logger(__name__)


class OpportunityDetector:
    """
    Flags outcomes priced at or above the threshold as pending orders.

    Each (market, outcome) pair is flagged at most once for the life of the
    process, whatever later happens to the pending order.
    """

    def __init__(
        self,
        queue: PendingOrderQueue,
        threshold: float,
        trade_size: float,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.queue = queue
        self.threshold = threshold
        self.trade_size = trade_size
        self.clock = clock
        self._processed: set[tuple[str, str]] = set()

    def is_processed(self, market_id: str, outcome_id: str) -> bool:
        return (market_id, outcome_id) in self._processed

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    def scan(self, markets: Iterable[Market]) -> int:
        """Queue every new actionable outcome. Returns how many were added."""
        created = 0
        for market in markets:
            for outcome in market.outcomes:
                p = outcome.probability
                if p >= 1.0:
                    log.warning(
                        "Outcome already resolved, skipping",
                        market_id=market.id,
                        outcome=outcome.label,
                        probability=p,
                    )
                    continue
                if not p >= self.threshold:
                    continue

                key = (market.id, outcome.outcome_id)
                if key in self._processed:
                    log.debug(
                        "Opportunity already processed",
                        market_id=market.id,
                        outcome=outcome.label,
                    )
                    continue

                now = self.clock()
                pending = PendingOrder(
                    id=PendingOrder.make_id(market.id, outcome.outcome_id, now),
                    created_at=now,
                    market_id=market.id,
                    outcome_id=outcome.outcome_id,
                    label=outcome.label,
                    probability=p,
                    size=self.trade_size,
                    question=market.question,
                )
                self.queue.add(pending)
                self._processed.add(key)
                created += 1

                log.info(
                    "High probability opportunity",
                    pending_id=pending.id,
                    question=market.question[:50],
                    outcome=outcome.label,
                    probability=f"{p:.1%}",
                )
        return created
