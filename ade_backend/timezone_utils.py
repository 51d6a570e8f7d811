"""
Timezone utilities for ADE Planning.

Timestamps are kept in UTC; the academic calendar (Sept 1 to Aug 31) is
computed in the institution's local timezone.
"""

from datetime import datetime, timedelta
import time as _time
import pytz


def get_timezone(timezone_name: str):
    """
    Get a pytz timezone object by name.

    Falls back to the system timezone and finally to a fixed offset when the
    name is unknown.
    """
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        try:
            return pytz.timezone(_time.tzname[0])
        except pytz.UnknownTimeZoneError:
            is_dst = _time.localtime().tm_isdst
            if is_dst:
                offset_seconds = -_time.altzone
            else:
                offset_seconds = -_time.timezone
            return pytz.FixedOffset(offset_seconds // 60)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def to_epoch_millis(dt: datetime) -> int:
    """Milliseconds since the Unix epoch for an aware datetime."""
    if dt.tzinfo is None:
        raise ValueError("to_epoch_millis requires an aware datetime")
    delta = dt - datetime(1970, 1, 1, tzinfo=pytz.UTC)
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def from_epoch_millis(millis: int) -> datetime:
    """Aware UTC datetime for a millisecond Unix timestamp."""
    return datetime(1970, 1, 1, tzinfo=pytz.UTC) + timedelta(milliseconds=millis)


def local_midnight(year: int, month: int, day: int, timezone_name: str) -> datetime:
    """Midnight of the given date in the named timezone."""
    tz = get_timezone(timezone_name)
    return tz.localize(datetime(year, month, day))


def academic_year_bounds(now: datetime, timezone_name: str) -> tuple[datetime, datetime]:
    """
    First and last day of the academic year containing `now`.

    Before September the year started the previous calendar year.

    Returns:
        (Sept 1 of the start year, Aug 31 of the following year), both at
        local midnight.
    """
    local_now = now.astimezone(get_timezone(timezone_name))
    start_year = local_now.year - 1 if local_now.month < 9 else local_now.year
    return (
        local_midnight(start_year, 9, 1, timezone_name),
        local_midnight(start_year + 1, 8, 31, timezone_name),
    )


def format_age(age: timedelta) -> str:
    """Short 'Nd Nh' rendering of a cache age."""
    total_hours = int(age.total_seconds() // 3600)
    return f"{total_hours // 24}d {total_hours % 24}h"
