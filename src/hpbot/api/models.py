"""Data models for Polymarket API responses."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class Outcome:
    """One possible resolution of a market, backed by a CLOB token."""

    outcome_id: str  # CLOB token id
    label: str  # "Up", "Yes", ...
    probability: float = 0.0

    def with_probability(self, probability: float) -> "Outcome":
        return Outcome(outcome_id=self.outcome_id, label=self.label, probability=probability)


@dataclass(frozen=True)
class Market:
    """A Polymarket market snapshot. Immutable per fetch."""

    id: str
    question: str
    outcomes: tuple[Outcome, ...] = field(default_factory=tuple)
    slug: str = ""
    end_date: Optional[datetime] = None
    active: bool = True
    closed: bool = False

    @property
    def token_ids(self) -> list[str]:
        return [o.outcome_id for o in self.outcomes]

    def with_prices(self, prices: dict[str, float]) -> "Market":
        """Return a copy with outcome probabilities replaced from a token -> price map."""
        outcomes = tuple(
            o.with_probability(prices[o.outcome_id]) if o.outcome_id in prices else o
            for o in self.outcomes
        )
        return Market(
            id=self.id,
            question=self.question,
            outcomes=outcomes,
            slug=self.slug,
            end_date=self.end_date,
            active=self.active,
            closed=self.closed,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "slug": self.slug,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "active": self.active,
            "closed": self.closed,
            "outcomes": [
                {"outcome_id": o.outcome_id, "label": o.label, "probability": o.probability}
                for o in self.outcomes
            ],
        }
