"""Shared fakes for engine tests: no network, injectable clock."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import pytest

from hpbot.api.models import Market, Outcome
from hpbot.bot import TradingEngine
from hpbot.config import Settings
from hpbot.engine.types import OrderStatusReport
from hpbot.executor.executor import OrderExecutor
from hpbot.tracking.trades import TradeLedger

T0 = datetime(2026, 1, 6, 20, 3, 20, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeGateway:
    """In-memory MarketDataGateway."""

    def __init__(
        self,
        markets: Optional[list[Market]] = None,
        end_time: Optional[datetime] = None,
    ) -> None:
        self.markets = markets or []
        self.end_time = end_time
        self.statuses: dict[str, Union[OrderStatusReport, Exception]] = {}
        self.fetch_markets_calls = 0
        self.status_queries: list[str] = []
        self.closed = False

    async def fetch_markets(self) -> list[Market]:
        self.fetch_markets_calls += 1
        return list(self.markets)

    async def fetch_market_end_time(self, market_id: str) -> Optional[datetime]:
        return self.end_time

    async def fetch_order_status(self, order_id: str) -> OrderStatusReport:
        self.status_queries.append(order_id)
        result = self.statuses.get(order_id, OrderStatusReport.unknown())
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True


class FakeSubmitter:
    """OrderSubmitter returning canned responses; yields once per call."""

    def __init__(self, response: Union[dict[str, Any], Exception, None] = None) -> None:
        self.response = response if response is not None else {
            "success": True,
            "orderID": "X1",
            "status": "live",
        }
        self.calls: list[tuple[str, float, float]] = []

    async def submit_order(self, outcome_id: str, price: float, size: float) -> dict[str, Any]:
        self.calls.append((outcome_id, price, size))
        await asyncio.sleep(0)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "dry_run": True,
        "probability_threshold": 0.95,
        "trade_size": 5.0,
        "poll_interval_seconds": 30.0,
        "window_seconds": 900,
        "ledger_db_enabled": False,
        "dashboard_password": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_market(
    market_id: str = "M",
    outcomes: Optional[list[tuple[str, str, float]]] = None,
    question: str = "Will BTC close up?",
) -> Market:
    outcomes = outcomes if outcomes is not None else [("O", "Up", 0.97), ("O2", "Down", 0.03)]
    return Market(
        id=market_id,
        question=question,
        outcomes=tuple(Outcome(outcome_id=o, label=label, probability=p) for o, label, p in outcomes),
    )


def make_engine(
    gateway: Optional[FakeGateway] = None,
    submitter: Optional[FakeSubmitter] = None,
    clock: Optional[FakeClock] = None,
    **settings_overrides: Any,
) -> TradingEngine:
    clock = clock or FakeClock()
    return TradingEngine(
        gateway=gateway or FakeGateway(),
        executor=OrderExecutor(submitter or FakeSubmitter(), clock=clock),
        settings=make_settings(**settings_overrides),
        ledger=TradeLedger(),
        clock=clock,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
