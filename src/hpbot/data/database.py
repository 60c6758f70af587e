"""SQLite storage for the durable order event log.

Uses aiosqlite so ledger writes never block the scan and tracking loops.
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

import aiosqlite

from hpbot.config import get_settings
from hpbot.utils.logging import get_logger

log = get_logger(__name__)

# Overrides the configured path (tests point this at a temp dir)
_db_path: Optional[Path] = None

# Single shared connection, opened lazily
_async_conn: Optional[aiosqlite.Connection] = None
_async_lock = asyncio.Lock()


def set_db_path(path: Optional[Path]) -> None:
    """Set the database path (useful for testing)."""
    global _db_path
    _db_path = path


def get_db_path() -> Path:
    """Get the current database path."""
    return _db_path or get_settings().ledger_db_path.expanduser()


async def get_async_connection() -> aiosqlite.Connection:
    """Get or create the async database connection."""
    global _async_conn

    async with _async_lock:
        if _async_conn is None:
            db_path = get_db_path()
            db_path.parent.mkdir(parents=True, exist_ok=True)
            _async_conn = await aiosqlite.connect(str(db_path), timeout=30.0)
            await _async_conn.execute("PRAGMA journal_mode = WAL")
            await _async_conn.execute("PRAGMA synchronous = NORMAL")
            _async_conn.row_factory = aiosqlite.Row
            log.debug("Async database connection established", path=str(db_path))
        return _async_conn


@asynccontextmanager
async def get_async_db() -> AsyncGenerator[aiosqlite.Connection, None]:
    """Async context manager for database access; commits on success."""
    conn = await get_async_connection()
    try:
        yield conn
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise


async def close_async_db() -> None:
    """Close the async database connection."""
    global _async_conn
    async with _async_lock:
        if _async_conn is not None:
            await _async_conn.close()
            _async_conn = None
            log.debug("Async database connection closed")


async def init_async_db() -> None:
    """Create the schema if it does not exist yet."""
    async with get_async_db() as conn:
        await conn.executescript(SCHEMA)
        log.info("Database schema initialized", path=str(get_db_path()))


SCHEMA = """
-- Append-only mirror of the in-memory trade ledger
CREATE TABLE IF NOT EXISTS order_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    action TEXT NOT NULL,
    market_id TEXT NOT NULL,
    outcome_id TEXT NOT NULL,
    label TEXT,
    price REAL NOT NULL,
    size REAL NOT NULL,
    success INTEGER NOT NULL,
    order_id TEXT,
    error TEXT
);

CREATE INDEX IF NOT EXISTS idx_order_events_timestamp ON order_events(timestamp);
CREATE INDEX IF NOT EXISTS idx_order_events_market ON order_events(market_id);
"""
