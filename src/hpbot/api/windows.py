"""Fixed-length market windows and the slugs derived from them.

Recurring markets such as ``btc-updown-15m-1767729600`` are named after the
UTC start of their window. The same floor-to-window rule gives the fallback
end time used when the scheduler pauses.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from hpbot.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 900

# Configured slugs starting with one of these are treated as window series
WINDOW_SERIES_PREFIXES = ("btc-updown-15m",)


def window_start(now: datetime, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> datetime:
    """Floor ``now`` to the start of its window (UTC)."""
    ts = int(now.timestamp())
    return datetime.fromtimestamp(ts - ts % window_seconds, tz=timezone.utc)


def next_window_boundary(now: datetime, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> datetime:
    """End of the window containing ``now``."""
    return window_start(now, window_seconds) + timedelta(seconds=window_seconds)


def current_window_slug(
    prefix: str,
    now: Optional[datetime] = None,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> str:
    """Slug of the market for the window containing ``now``."""
    now = now or datetime.now(timezone.utc)
    start = window_start(now, window_seconds)
    slug = f"{prefix}-{int(start.timestamp())}"
    log.debug("Generated window slug", slug=slug, window_start=start.isoformat())
    return slug


def series_prefix(slug: str) -> Optional[str]:
    """Return the window-series prefix a configured slug belongs to, if any."""
    for prefix in WINDOW_SERIES_PREFIXES:
        if slug == prefix or slug.startswith(f"{prefix}-"):
            return prefix
    return None


def resolve_event_slug(
    slug: str,
    now: Optional[datetime] = None,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> str:
    """Regenerate window-series slugs for the current window; pass others through."""
    prefix = series_prefix(slug)
    if prefix is None:
        return slug
    return current_window_slug(prefix, now, window_seconds)
