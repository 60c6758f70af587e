"""FastAPI dashboard application."""

import secrets
from datetime import datetime, timedelta
from typing import Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel

from hpbot import __version__
from hpbot.bot import TradingEngine
from hpbot.config import Settings, get_settings
from hpbot.data.database import init_async_db
from hpbot.data.repositories import OrderEventRepository
from hpbot.engine.types import ActionResult, utcnow
from hpbot.utils.logging import get_logger

log = get_logger(__name__)

security = HTTPBasic(auto_error=False)


def verify_credentials(
    credentials: Optional[HTTPBasicCredentials] = Depends(security),
) -> Optional[str]:
    """Verify dashboard credentials if authentication is enabled."""
    settings = get_settings()

    # If no password configured, allow anonymous access
    if not settings.dashboard_password:
        return "anonymous"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(
        credentials.username.encode("utf8"),
        (settings.dashboard_username or "admin").encode("utf8"),
    )
    correct_password = secrets.compare_digest(
        credentials.password.encode("utf8"),
        settings.dashboard_password.encode("utf8"),
    )

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


class ControlRequest(BaseModel):
    action: Literal["start", "stop"]


def _action_response(result: ActionResult) -> JSONResponse:
    if result.success:
        return JSONResponse({"success": True, "message": result.message})
    return JSONResponse(
        {"success": False, "error": result.message},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def create_app(engine: TradingEngine, settings: Optional[Settings] = None) -> FastAPI:
    """Create the dashboard application bound to a running engine."""
    settings = settings or engine.settings

    app = FastAPI(
        title="hpbot Dashboard",
        description="Polymarket high-probability outcome bot",
        version=__version__,
    )

    @app.on_event("startup")
    async def startup():
        """Initialize database on startup."""
        if settings.ledger_db_enabled:
            await init_async_db()
            log.info("Dashboard database initialized")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/status")
    async def get_status(username: str = Depends(verify_credentials)):
        """Get current engine status."""
        data = engine.get_status()
        data["timestamp"] = datetime.now().isoformat()
        return {"success": True, "data": data}

    @app.get("/api/config")
    async def get_config(username: str = Depends(verify_credentials)):
        """Trading configuration, without secrets."""
        return {
            "success": True,
            "data": {
                "dry_run": settings.dry_run,
                "probability_threshold": settings.probability_threshold,
                "trade_size": settings.trade_size,
                "order_price": settings.order_price,
                "poll_interval_seconds": settings.poll_interval_seconds,
                "window_seconds": settings.window_seconds,
                "event_slug": settings.event_slug,
                "market_keywords": settings.market_keywords,
                "wallet": settings.wallet_address[:10] + "..." if settings.wallet_address else None,
            },
        }

    @app.get("/api/markets")
    async def get_markets(username: str = Depends(verify_credentials)):
        """Markets seen by the last scan."""
        markets = engine.get_current_markets()
        return {"success": True, "data": [m.to_dict() for m in markets]}

    @app.get("/api/trades")
    async def get_trades(username: str = Depends(verify_credentials)):
        """In-memory trade log, most recent first."""
        return {"success": True, "data": [e.to_dict() for e in engine.get_trade_log()]}

    @app.get("/api/history")
    async def get_history(
        limit: int = 50,
        offset: int = 0,
        username: str = Depends(verify_credentials),
    ):
        """Durable order events with pagination."""
        if not settings.ledger_db_enabled:
            return {
                "success": True,
                "data": {"events": [], "count": 0, "total": 0, "offset": offset, "has_more": False},
            }
        events = await OrderEventRepository.get_recent(limit=limit, offset=offset)
        total = await OrderEventRepository.get_total_count()
        return {
            "success": True,
            "data": {
                "events": events,
                "count": len(events),
                "total": total,
                "offset": offset,
                "has_more": offset + len(events) < total,
            },
        }

    @app.get("/api/history/stats")
    async def get_history_stats(
        hours: Optional[float] = None,
        username: str = Depends(verify_credentials),
    ):
        """Order event counts by action and outcome, optionally for the last N hours."""
        if not settings.ledger_db_enabled:
            return {"success": True, "data": None}
        since = utcnow() - timedelta(hours=hours) if hours else None
        return {"success": True, "data": await OrderEventRepository.get_stats(since=since)}

    @app.get("/api/pending-orders")
    async def get_pending_orders(username: str = Depends(verify_credentials)):
        return {"success": True, "data": [o.to_dict() for o in engine.get_pending_orders()]}

    @app.post("/api/pending-orders/{pending_id}/approve")
    async def approve_order(pending_id: str, username: str = Depends(verify_credentials)):
        log.info("Approve requested", pending_id=pending_id, user=username)
        return _action_response(await engine.approve(pending_id))

    @app.post("/api/pending-orders/{pending_id}/reject")
    async def reject_order(pending_id: str, username: str = Depends(verify_credentials)):
        log.info("Reject requested", pending_id=pending_id, user=username)
        return _action_response(await engine.reject(pending_id))

    @app.get("/api/active-orders")
    async def get_active_orders(username: str = Depends(verify_credentials)):
        return {"success": True, "data": [o.to_dict() for o in engine.get_active_orders()]}

    @app.post("/api/control")
    async def control(request: ControlRequest, username: str = Depends(verify_credentials)):
        """Start or stop the scan and tracking loops."""
        if request.action == "start":
            engine.start()
            message = "Engine started"
        else:
            engine.stop()
            message = "Engine stopped"
        log.info(message, user=username)
        return {"success": True, "message": message}

    return app


async def serve_dashboard(engine: TradingEngine, host: str = "0.0.0.0", port: int = 3000) -> None:
    """Serve the dashboard on the engine's event loop until shut down."""
    import uvicorn

    log.info("Starting dashboard", host=host, port=port)

    app = create_app(engine)
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))
    await server.serve()
