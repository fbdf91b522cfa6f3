"""Date and duration template functions."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date as _date
from datetime import datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ._values import indirect


def time_funcs() -> dict[str, Callable[..., Any]]:
    return {
        "date": format_date,
        "duration": format_duration,
    }


def format_date(value: Any, fmt: str = "%Y-%m-%d", zone: str = "") -> str:
    """Format a date in the given time zone.

    Args:
        value: A datetime, a date, or a number of seconds since the UNIX
            epoch. Anything else formats the current time.
        fmt: strftime format.
        zone: IANA zone name. Empty means local time; an unknown zone
            falls back to UTC.

    Returns:
        The formatted date.
    """
    tz = _zone(zone)
    value = indirect(value)
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, _date):
        moment = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        moment = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        moment = datetime.now(timezone.utc)
    return moment.astimezone(tz).strftime(fmt)


def _zone(name: str):
    if not name or name == "Local":
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def format_duration(value: Any) -> str:
    """Describe a duration in words, e.g. "2 hours 3 minutes 4 seconds".

    Args:
        value: A timedelta or a number of seconds. Anything else, and
            anything shorter than a second, gives an empty string.
    """
    value = indirect(value)
    if isinstance(value, timedelta):
        seconds = int(value.total_seconds())
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = int(value)
    else:
        return ""
    parts = []
    hours, seconds = divmod(seconds, 3600) if seconds > 0 else (0, 0)
    minutes, seconds = divmod(seconds, 60)
    for amount, unit in ((hours, "hour"), (minutes, "minute"), (seconds, "second")):
        if amount >= 2:
            parts.append(f"{amount} {unit}s")
        elif amount == 1:
            parts.append(f"1 {unit}")
    return " ".join(parts)
