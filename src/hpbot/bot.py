"""Main engine orchestration."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from hpbot.api.gateway import MarketDataGateway
from hpbot.api.models import Market
from hpbot.config import Settings, get_settings
from hpbot.engine.detector import OpportunityDetector
from hpbot.engine.errors import NotFoundOrAlreadyProcessed, SubmissionFailure
from hpbot.engine.queue import PendingOrderQueue
from hpbot.engine.scheduler import ScanScheduler
from hpbot.engine.tracker import ActiveOrderTracker
from hpbot.engine.types import (
    ActionResult,
    LedgerAction,
    Order,
    PendingOrder,
    TradeLogEntry,
    utcnow,
)
from hpbot.executor.executor import OrderExecutor
from hpbot.tracking.trades import TradeLedger
from hpbot.utils.logging import get_logger, setup_logging

log = get_logger(__name__)


@dataclass
class EngineStats:
    """Runtime statistics for the engine."""

    started_at: datetime = field(default_factory=utcnow)
    scan_cycles: int = 0
    tracking_cycles: int = 0
    markets_scanned: int = 0
    opportunities_found: int = 0


class TradingEngine:
    """
    Coordinates detection, approval, execution and fill tracking.

    Flow:
    1. The scan loop fetches markets and queues high-probability outcomes
    2. A human approves or rejects each pending order
    3. An approved order is submitted, tracked, and scanning pauses
    4. The tracking loop polls fills and resumes scanning once the
       tracked set is empty and the market window has ended

    Every mutating operation holds the engine lock for its whole duration.
    Read methods return snapshots and never await.
    """

    def __init__(
        self,
        gateway: MarketDataGateway,
        executor: OrderExecutor,
        settings: Optional[Settings] = None,
        ledger: Optional[TradeLedger] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings or get_settings()
        self.gateway = gateway
        self.executor = executor
        self.clock = clock

        self.ledger = ledger or TradeLedger()
        self.queue = PendingOrderQueue()
        self.detector = OpportunityDetector(
            self.queue,
            threshold=self.settings.probability_threshold,
            trade_size=self.settings.trade_size,
            clock=clock,
        )
        self.tracker = ActiveOrderTracker(gateway, self.ledger, clock=clock)
        self.scheduler = ScanScheduler(
            interval=self.settings.poll_interval_seconds,
            window_seconds=self.settings.window_seconds,
            clock=clock,
        )

        self.stats = EngineStats(started_at=clock())
        self._lock = asyncio.Lock()
        self._markets: list[Market] = []
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # -- lifecycle --------------------------------------------------------

    def start(self) -> None:
        """Start the scan and tracking loops. Must be called from a running loop."""
        if self._running:
            log.warning("Engine already running")
            return

        mode = "DRY RUN" if self.settings.dry_run else "LIVE"
        log.info(
            f"Starting high-probability engine [{mode}]",
            threshold=f"{self.settings.probability_threshold:.1%}",
            trade_size=self.settings.trade_size,
            poll_interval=self.settings.poll_interval_seconds,
        )
        self._running = True
        self.scheduler.start(self.run_scan_cycle, self.run_tracking_cycle)

    def stop(self) -> None:
        """Stop both loops. No tick fires after this returns."""
        if not self._running:
            return
        log.info("Stopping engine...")
        self._running = False
        self.scheduler.stop()

    async def shutdown(self) -> None:
        """Stop the loops and release collaborator resources."""
        log.info("Shutting down...")
        self.stop()
        await self.scheduler.wait_stopped()
        close = getattr(self.gateway, "close", None)
        if close is not None:
            await close()
        self._log_stats()

    # -- periodic ticks ---------------------------------------------------

    async def run_scan_cycle(self) -> int:
        """One scan tick. Returns the number of new opportunities."""
        async with self._lock:
            return await self._scan()

    async def run_tracking_cycle(self) -> None:
        """One tracking tick, resuming (and scanning) when the pause may end."""
        async with self._lock:
            self.stats.tracking_cycles += 1
            await self.tracker.check_all()

            if self.scheduler.should_resume(self.tracker.count, self.clock()):
                self.scheduler.resume()
                await self._scan()

    async def _scan(self) -> int:
        if self.scheduler.is_paused:
            end_time = self.scheduler.current_market_end_time
            log.info(
                "Scanning paused, waiting for market to end",
                remaining_seconds=int(self.scheduler.remaining().total_seconds()),
                market_end=end_time.isoformat() if end_time else None,
                active_orders=self.tracker.count,
            )
            return 0

        self.stats.scan_cycles += 1
        markets = await self.gateway.fetch_markets()
        self._markets = markets
        self.stats.markets_scanned += len(markets)

        created = self.detector.scan(markets)
        self.stats.opportunities_found += created
        log.debug("Scan complete", markets=len(markets), new_opportunities=created)
        return created

    # -- approval workflow ------------------------------------------------

    async def approve(self, pending_id: str) -> ActionResult:
        """Submit a pending order. At most one submission per pending order."""
        async with self._lock:
            pending = self.queue.find_pending(pending_id)
            if pending is None:
                return ActionResult(False, str(NotFoundOrAlreadyProcessed(pending_id)))

            price = self.settings.order_price or pending.probability
            order = await self.executor.submit(
                market_id=pending.market_id,
                outcome_id=pending.outcome_id,
                price=price,
                size=pending.size,
                label=pending.label,
            )

            if not order.is_success:
                failure = SubmissionFailure(order.error or "Order failed")
                log.warning(
                    "Approval failed, order stays pending",
                    pending_id=pending_id,
                    error=str(failure),
                )
                self._record(pending, order, LedgerAction.SUBMIT_FAILED, success=False)
                return ActionResult(False, f"Order failed: {failure}")

            self.queue.mark_approved(pending)
            if order.is_trackable:
                self.tracker.register(order)
            else:
                # The venue may still have the order; pause anyway
                log.warning("Order accepted without a trackable id", pending_id=pending_id)

            end_time = await self._fresh_end_time(pending.market_id)
            self.scheduler.pause(end_time)
            self._record(pending, order, LedgerAction.SUBMITTED, success=True)

            return ActionResult(True, f"Order submitted: {order.order_id}")

    async def reject(self, pending_id: str) -> ActionResult:
        """Reject a pending order. Recorded in the ledger as not successful."""
        async with self._lock:
            try:
                pending = self.queue.reject(pending_id)
            except NotFoundOrAlreadyProcessed as e:
                return ActionResult(False, str(e))

            log.info("Order rejected", pending_id=pending_id)
            self.ledger.append(
                TradeLogEntry(
                    timestamp=self.clock(),
                    market_id=pending.market_id,
                    outcome_id=pending.outcome_id,
                    price=pending.probability,
                    size=pending.size,
                    action=LedgerAction.REJECTED,
                    success=False,
                    label=pending.label,
                )
            )
            return ActionResult(True, "Order rejected")

    async def _fresh_end_time(self, market_id: str) -> Optional[datetime]:
        try:
            return await self.gateway.fetch_market_end_time(market_id)
        except Exception as e:
            log.warning("Could not fetch market end time", market_id=market_id, error=str(e))
            return None

    def _record(
        self,
        pending: PendingOrder,
        order: Order,
        action: LedgerAction,
        success: bool,
    ) -> None:
        self.ledger.append(
            TradeLogEntry(
                timestamp=self.clock(),
                market_id=pending.market_id,
                outcome_id=pending.outcome_id,
                price=order.price,
                size=order.size,
                action=action,
                success=success,
                error=order.error,
                label=pending.label,
                order_id=order.order_id,
            )
        )

    # -- read-only snapshots ----------------------------------------------

    def get_status(self) -> dict[str, Any]:
        end_time = self.scheduler.current_market_end_time
        return {
            "is_running": self._running,
            "phase": self.scheduler.phase.value,
            "total_trades": self.ledger.total,
            "successful_trades": self.ledger.successful,
            "dry_run": self.settings.dry_run,
            "current_market_end_time": end_time.isoformat() if end_time else None,
            "pending_orders": len(self.queue.pending()),
            "active_orders": self.tracker.count,
        }

    def get_pending_orders(self) -> list[PendingOrder]:
        return self.queue.pending()

    def get_active_orders(self) -> list[Order]:
        return self.tracker.orders()

    def get_trade_log(self) -> list[TradeLogEntry]:
        return self.ledger.entries()

    def get_current_markets(self) -> list[Market]:
        return list(self._markets)

    def get_stats(self) -> dict[str, Any]:
        runtime = self.clock() - self.stats.started_at
        return {
            "runtime_seconds": runtime.total_seconds(),
            "scan_cycles": self.stats.scan_cycles,
            "tracking_cycles": self.stats.tracking_cycles,
            "markets_scanned": self.stats.markets_scanned,
            "opportunities_found": self.stats.opportunities_found,
            "executor_stats": self.executor.get_stats(),
        }

    def _log_stats(self) -> None:
        runtime = self.clock() - self.stats.started_at
        log.info(
            "Engine statistics",
            runtime=f"{runtime.total_seconds() / 3600:.1f}h",
            cycles=self.stats.scan_cycles,
            markets=self.stats.markets_scanned,
            opportunities=self.stats.opportunities_found,
            trades=self.ledger.total,
            successful=self.ledger.successful,
        )

    async def __aenter__(self) -> "TradingEngine":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.shutdown()


async def create_engine(settings: Optional[Settings] = None) -> TradingEngine:
    """Wire a TradingEngine to Polymarket from settings."""
    from hpbot.api.gateway import create_gateway
    from hpbot.data.database import init_async_db
    from hpbot.executor.async_clob import ApiCredentials
    from hpbot.executor.submitter import (
        ClobOrderSubmitter,
        DryRunOrderSubmitter,
        OrderSubmitter,
    )
    from hpbot.tracking.trades import DatabaseSink

    settings = settings or get_settings()

    submitter: OrderSubmitter
    credentials: Optional[ApiCredentials] = None
    if settings.dry_run:
        submitter = DryRunOrderSubmitter()
    else:
        if not settings.is_trading_enabled():
            raise RuntimeError("Live trading requires PRIVATE_KEY")
        clob_submitter = ClobOrderSubmitter(settings)
        credentials = await clob_submitter.connect()
        submitter = clob_submitter

    sink = None
    if settings.ledger_db_enabled:
        await init_async_db()
        sink = DatabaseSink()

    return TradingEngine(
        gateway=create_gateway(settings, credentials),
        executor=OrderExecutor(submitter),
        settings=settings,
        ledger=TradeLedger(sink=sink),
    )


async def run_bot(with_dashboard: bool = True) -> None:
    """Entry point: run the engine (and the dashboard) until interrupted."""
    from hpbot.data.database import close_async_db

    settings = get_settings()
    setup_logging(settings.log_level)

    engine = await create_engine(settings)
    try:
        async with engine:
            engine.start()
            if with_dashboard:
                from hpbot.dashboard.app import serve_dashboard

                await serve_dashboard(engine, settings.dashboard_host, settings.dashboard_port)
            else:
                await asyncio.Event().wait()
    except asyncio.CancelledError:
        log.info("Engine cancelled")
    finally:
        await close_async_db()
