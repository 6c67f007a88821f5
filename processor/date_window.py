"""Date window filtering relative to the current time."""
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional

from processor.models import Temporal


def to_instant(value: Temporal, local_tz: Optional[tzinfo] = None) -> datetime:
    """
    Convert a calendar value to a timezone-aware datetime.

    All-day values become local midnight and floating (naive) datetimes are
    read as local wall-clock time. ``local_tz`` of None means the process's
    local timezone.
    """
    if not isinstance(value, datetime):
        value = datetime.combine(value, time())
    if value.tzinfo is not None:
        return value
    if local_tz is not None:
        return value.replace(tzinfo=local_tz)
    return value.astimezone()


def is_temporal(value) -> bool:
    return isinstance(value, (date, datetime))


def in_window(event_start: datetime, now: datetime, min_days: int, max_days: int) -> bool:
    """
    Check whether an event starts inside ``[now + min_days, now + max_days]``.

    Both bounds are inclusive.

    Args:
        event_start: Timezone-aware event start
        now: Timezone-aware reference time
        min_days: Days from now where the window opens (0 excludes past events)
        max_days: Days from now where the window closes

    Returns:
        True if the event falls inside the window
    """
    min_date = now + timedelta(days=min_days)
    max_date = now + timedelta(days=max_days)
    return min_date <= event_start <= max_date
