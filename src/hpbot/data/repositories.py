"""Repository classes for database operations.

All repository methods are async to avoid blocking the trading loop.
"""

from datetime import datetime
from typing import Any, Optional

from hpbot.data.database import get_async_db
from hpbot.engine.types import TradeLogEntry


class OrderEventRepository:
    """Repository for order lifecycle events."""

    @staticmethod
    async def insert(entry: TradeLogEntry) -> int:
        """Insert a ledger entry."""
        async with get_async_db() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO order_events (
                    timestamp, action, market_id, outcome_id, label,
                    price, size, success, order_id, error
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.timestamp.isoformat(), entry.action.value,
                    entry.market_id, entry.outcome_id, entry.label,
                    entry.price, entry.size, int(entry.success),
                    entry.order_id, entry.error,
                ),
            )
            return cursor.lastrowid or 0

    @staticmethod
    async def get_recent(
        limit: int = 50,
        offset: int = 0,
        market_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Get recent events, newest first."""
        async with get_async_db() as conn:
            query = "SELECT * FROM order_events WHERE 1=1"
            params: list[Any] = []

            if market_id:
                query += " AND market_id = ?"
                params.append(market_id)

            query += " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
            params.extend([limit, offset])

            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()

        events = []
        for row in rows:
            event = dict(row)
            event["success"] = bool(event["success"])
            events.append(event)
        return events

    @staticmethod
    async def get_total_count(market_id: Optional[str] = None) -> int:
        """Get total count of events."""
        async with get_async_db() as conn:
            query = "SELECT COUNT(*) as count FROM order_events WHERE 1=1"
            params: list[Any] = []

            if market_id:
                query += " AND market_id = ?"
                params.append(market_id)

            cursor = await conn.execute(query, params)
            row = await cursor.fetchone()
            return row["count"] if row else 0

    @staticmethod
    async def get_stats(
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Event counts by action and by outcome, optionally within [since, until)."""
        where = "WHERE 1=1"
        params: list[Any] = []
        if since is not None:
            where += " AND timestamp >= ?"
            params.append(since.isoformat())
        if until is not None:
            where += " AND timestamp < ?"
            params.append(until.isoformat())

        async with get_async_db() as conn:
            cursor = await conn.execute(
                f"""
                SELECT
                    COUNT(*) as total_events,
                    SUM(success) as successful_events,
                    MIN(timestamp) as first_event,
                    MAX(timestamp) as last_event
                FROM order_events {where}
                """,
                params,
            )
            summary = await cursor.fetchone()

            cursor = await conn.execute(
                f"SELECT action, COUNT(*) as count FROM order_events {where} GROUP BY action",
                params,
            )
            by_action = {row["action"]: row["count"] for row in await cursor.fetchall()}

            cursor = await conn.execute(
                f"""
                SELECT COALESCE(NULLIF(label, ''), outcome_id) as outcome, COUNT(*) as count
                FROM order_events {where}
                GROUP BY outcome
                ORDER BY count DESC
                """,
                params,
            )
            by_outcome = {row["outcome"]: row["count"] for row in await cursor.fetchall()}

        return {
            "total_events": summary["total_events"] or 0,
            "successful_events": summary["successful_events"] or 0,
            "first_event": summary["first_event"],
            "last_event": summary["last_event"],
            "by_action": by_action,
            "by_outcome": by_outcome,
        }
