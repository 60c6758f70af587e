"""Tests for opportunity detection: threshold policy and dedup."""

from conftest import FakeClock, make_market

from hpbot.engine.detector import OpportunityDetector
from hpbot.engine.queue import PendingOrderQueue
from hpbot.engine.types import PendingOrderStatus


def make_detector(threshold: float = 0.95, clock: FakeClock = None) -> OpportunityDetector:
    return OpportunityDetector(
        PendingOrderQueue(),
        threshold=threshold,
        trade_size=5.0,
        clock=clock or FakeClock(),
    )


class TestThreshold:
    """Which probabilities are actionable."""

    def test_probability_equal_to_threshold_is_actionable(self):
        detector = make_detector(threshold=0.95)
        created = detector.scan([make_market(outcomes=[("O", "Up", 0.95)])])

        assert created == 1
        assert len(detector.queue.pending()) == 1

    def test_probability_below_threshold_is_ignored(self):
        detector = make_detector(threshold=0.95)
        created = detector.scan([make_market(outcomes=[("O", "Up", 0.9499)])])

        assert created == 0
        assert detector.queue.pending() == []
        assert not detector.is_processed("M", "O")

    def test_resolved_outcome_is_never_actionable(self):
        """p == 1.0 is a resolved market, whatever the threshold."""
        detector = make_detector(threshold=0.5)
        created = detector.scan([make_market(outcomes=[("O", "Up", 1.0), ("O2", "Down", 0.0)])])

        assert created == 0
        assert not detector.is_processed("M", "O")

    def test_nan_probability_is_ignored(self):
        detector = make_detector(threshold=0.5)
        created = detector.scan([make_market(outcomes=[("O", "Up", float("nan"))])])

        assert created == 0
        assert detector.queue.pending() == []

    def test_every_outcome_of_every_market_is_checked(self):
        detector = make_detector()
        markets = [
            make_market("M1", [("A", "Yes", 0.96), ("B", "No", 0.04)]),
            make_market("M2", [("C", "Up", 0.02), ("D", "Down", 0.98)]),
        ]

        assert detector.scan(markets) == 2
        assert [(p.market_id, p.outcome_id) for p in detector.queue.pending()] == [
            ("M1", "A"),
            ("M2", "D"),
        ]


class TestDedup:
    """An outcome is flagged at most once per process."""

    def test_repeated_scans_do_not_requeue(self):
        detector = make_detector()
        market = make_market(outcomes=[("O", "Up", 0.97)])

        assert detector.scan([market]) == 1
        assert detector.scan([market]) == 0
        assert detector.scan([make_market(outcomes=[("O", "Up", 0.99)])]) == 0

        assert len(detector.queue) == 1
        assert detector.processed_count == 1

    def test_rejected_outcome_is_not_requeued(self):
        detector = make_detector()
        market = make_market(outcomes=[("O", "Up", 0.97)])
        detector.scan([market])
        pending = detector.queue.pending()[0]
        detector.queue.reject(pending.id)

        assert detector.scan([market]) == 0
        assert detector.queue.pending() == []

    def test_same_outcome_id_in_another_market_is_new(self):
        detector = make_detector()
        detector.scan([make_market("M1", [("O", "Up", 0.97)])])

        assert detector.scan([make_market("M2", [("O", "Up", 0.97)])]) == 1


class TestPendingOrderFields:
    def test_pending_order_is_built_from_market_and_settings(self):
        clock = FakeClock()
        detector = make_detector(clock=clock)
        detector.scan([make_market(outcomes=[("O", "Up", 0.97)])])

        pending = detector.queue.pending()[0]
        assert pending.status is PendingOrderStatus.PENDING
        assert pending.market_id == "M"
        assert pending.outcome_id == "O"
        assert pending.label == "Up"
        assert pending.probability == 0.97
        assert pending.size == 5.0
        assert pending.question == "Will BTC close up?"
        assert pending.created_at == clock.now
        assert pending.id == f"M_O_{int(clock.now.timestamp() * 1000)}"
