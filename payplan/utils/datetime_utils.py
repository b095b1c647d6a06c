"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def daily_window_start(
    now: datetime,
    window: str = "calendar",
    timezone: str = "UTC",
) -> datetime:
    """
    Get start of the current daily-cap window.

    Args:
        now: Aware reference time
        window: "calendar" (local midnight) or "rolling" (last 24 hours)
        timezone: IANA zone for calendar windows

    Returns:
        Window start as an aware UTC datetime
    """
    if window == "rolling":
        return now - timedelta(hours=24)

    local_now = now.astimezone(ZoneInfo(timezone))
    local_midnight = local_now.replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return local_midnight.astimezone(UTC)


def period_key_for(now: datetime, timezone: str = "UTC") -> str:
    """
    Get matching period key (local calendar date).

    Args:
        now: Aware reference time
        timezone: IANA zone the schedule runs in

    Returns:
        Key like "2024-05-01"
    """
    return now.astimezone(ZoneInfo(timezone)).date().isoformat()
