"""Trade ledger: bounded in-memory history with an optional durable sink."""

import asyncio
from collections import deque
from typing import Optional, Protocol

from hpbot.data.repositories import OrderEventRepository
from hpbot.engine.types import TradeLogEntry
from hpbot.utils.logging import get_logger

log = get_logger(__name__)

MAX_LEDGER_ENTRIES = 100


class LedgerSink(Protocol):
    """Receives every ledger entry; must not block or raise."""

    def append(self, entry: TradeLogEntry) -> None:
        ...


class DatabaseSink:
    """Mirrors ledger entries into the SQLite order event log (non-blocking)."""

    def __init__(self) -> None:
        # The loop only keeps weak references to tasks
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending_writes(self) -> int:
        return len(self._tasks)

    def append(self, entry: TradeLogEntry) -> None:
        try:
            loop = asyncio.get_running_loop()
            task = loop.create_task(self._insert(entry))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        except RuntimeError:
            log.debug("No event loop, skipping database order event")

    async def _insert(self, entry: TradeLogEntry) -> None:
        try:
            await OrderEventRepository.insert(entry)
        except Exception as e:
            log.debug("Failed to write order event to database", error=str(e))


class TradeLedger:
    """
    Append-only history of order events.

    Only the most recent ``max_entries`` are kept in memory; reads come back
    most recent first. Every append is also handed to the sink, if any.
    """

    def __init__(
        self,
        max_entries: int = MAX_LEDGER_ENTRIES,
        sink: Optional[LedgerSink] = None,
    ) -> None:
        self._entries: deque[TradeLogEntry] = deque(maxlen=max_entries)
        self.sink = sink

    def append(self, entry: TradeLogEntry) -> None:
        self._entries.append(entry)
        log.info(
            "Trade logged",
            action=entry.action.value,
            market_id=entry.market_id,
            outcome=entry.label or entry.outcome_id[:16],
            price=f"{entry.price:.3f}",
            size=entry.size,
            success=entry.success,
            error=entry.error,
        )
        if self.sink is not None:
            self.sink.append(entry)

    def entries(self) -> list[TradeLogEntry]:
        """Snapshot of retained entries, most recent first."""
        return list(reversed(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def total(self) -> int:
        return len(self._entries)

    @property
    def successful(self) -> int:
        return sum(1 for e in self._entries if e.success)
