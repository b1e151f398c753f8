"""Timezone helpers for deciding which calendar day "today" is for a user."""

from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the IANA zone for name, falling back to UTC when it is missing or unknown."""
    if not name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"[CALENDAR] Unknown timezone {name!r}, using UTC")
        return ZoneInfo("UTC")


def today_for(timezone_name: str | None, now: datetime | None = None) -> date:
    """Current calendar day in the given timezone."""
    current = now or datetime.now(timezone.utc)
    return current.astimezone(resolve_timezone(timezone_name)).date()
