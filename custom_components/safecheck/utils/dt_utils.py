# File: utils/dt_utils.py
"""Date and time utilities for SafeCheck.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Every calendar-day decision in the integration (completion reset, streak
transitions, day-1 exemption, missed counters) goes through
`local_date`, `is_same_local_day` or `local_day_difference` so that the day
boundary is evaluated in exactly one place.

Functions:
    - set_default_timezone / get_default_timezone: Configure the local timezone
    - dt_now_utc / dt_now_local / dt_today_local / dt_today_iso: Current time
    - as_utc / as_local / start_of_local_day: Timezone conversion
    - local_date / is_same_local_day / local_day_difference: Calendar days
    - local_instant: Combine a local date with a time of day
    - dt_parse / dt_parse_date / dt_to_utc / dt_to_iso: Parsing and formatting
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
import logging
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

# Third-party date utilities (no HA dependency)
from dateutil.relativedelta import relativedelta

if TYPE_CHECKING:
    from datetime import tzinfo

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# Default timezone - overridden during integration setup
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the default timezone for all dt_utils functions.

    Call this during integration setup to configure the user's timezone.
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Get the current default timezone."""
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


def dt_now_local(tz: tzinfo | None = None) -> datetime:
    """Return the current datetime in local timezone (timezone-aware)."""
    return datetime.now(tz or DEFAULT_TIME_ZONE)


def dt_today_local(tz: tzinfo | None = None) -> date:
    """Return today's date in local timezone."""
    return dt_now_local(tz).date()


def dt_today_iso(tz: tzinfo | None = None) -> str:
    """Return today's local date as ISO string (YYYY-MM-DD)."""
    return dt_today_local(tz).isoformat()


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_utc(dt_obj: datetime) -> datetime:
    """Convert a datetime to UTC, treating naive values as local time."""
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=DEFAULT_TIME_ZONE)
    return dt_obj.astimezone(UTC)


def as_local(dt_obj: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert a datetime to the local timezone.

    Naive datetimes are assumed to already be local wall-clock time.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        return dt_obj.replace(tzinfo=tz_info)
    return dt_obj.astimezone(tz_info)


def start_of_local_day(dt_obj: datetime, tz: tzinfo | None = None) -> datetime:
    """Get local midnight (00:00:00) of the day containing dt_obj.

    Built from the local calendar date rather than by replacing time fields,
    so the result carries the correct UTC offset on DST transition days.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    return datetime.combine(local_date(dt_obj, tz_info), time.min, tzinfo=tz_info)


# ==============================================================================
# Calendar Day Arithmetic
# ==============================================================================


def local_date(dt_obj: datetime, tz: tzinfo | None = None) -> date:
    """Return the local calendar date of an instant."""
    return as_local(dt_obj, tz).date()


def is_same_local_day(
    first: datetime | None, second: datetime | None, tz: tzinfo | None = None
) -> bool:
    """Return True when both instants fall on the same local calendar day.

    A missing instant never matches.
    """
    if first is None or second is None:
        return False
    return local_date(first, tz) == local_date(second, tz)


def local_day_difference(
    earlier: datetime, later: datetime, tz: tzinfo | None = None
) -> int:
    """Return the number of local calendar days from `earlier` to `later`.

    Counts midnights crossed, not elapsed 24-hour periods: 23:59 to 00:01 the
    next day is 1. Negative when `later` is on an earlier day.
    """
    return (local_date(later, tz) - local_date(earlier, tz)).days


def add_local_days(day: date, days: int) -> date:
    """Shift a calendar date by a number of days."""
    return day + relativedelta(days=days)


def local_instant(day: date, hour: int, minute: int, tz: tzinfo | None = None) -> datetime:
    """Combine a local calendar date with a wall-clock time.

    Returns:
        Timezone-aware datetime in the local timezone.

    Example:
        >>> local_instant(date(2026, 3, 2), 9, 30)
        datetime.datetime(2026, 3, 2, 9, 30, tzinfo=ZoneInfo('UTC'))
    """
    return datetime.combine(day, time(hour, minute), tzinfo=tz or DEFAULT_TIME_ZONE)


# ==============================================================================
# Date/Time Parsing
# ==============================================================================


def dt_parse_date(date_str: str | None) -> date | None:
    """Safely parse an ISO date string (YYYY-MM-DD) into a `datetime.date`.

    Returns:
        datetime.date or None if parsing fails.
    """
    if not date_str or not isinstance(date_str, str):
        return None
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        _LOGGER.debug("Unparsable date string: %s", date_str)
        return None


def dt_parse(
    dt_input: str | date | datetime | None,
    default_tzinfo: tzinfo | None = None,
) -> datetime | None:
    """Normalize string, date or datetime input into an aware datetime.

    Args:
        dt_input: ISO datetime/date string, date, datetime, or None
        default_tzinfo: Timezone applied to naive input
                        (defaults to DEFAULT_TIME_ZONE if None)

    Returns:
        Timezone-aware datetime, or None if the input could not be parsed.

    Example:
        >>> dt_parse("2025-04-15")
        datetime.datetime(2025, 4, 15, 0, 0, tzinfo=ZoneInfo('UTC'))
    """
    if not dt_input:
        return None

    tz_info = default_tzinfo or DEFAULT_TIME_ZONE
    result: datetime | None = None

    if isinstance(dt_input, datetime):
        result = dt_input
    elif isinstance(dt_input, date):
        result = datetime.combine(dt_input, time.min)
    elif isinstance(dt_input, str):
        try:
            result = datetime.fromisoformat(dt_input)
        except ValueError:
            parsed_date = dt_parse_date(dt_input)
            if parsed_date is None:
                return None
            result = datetime.combine(parsed_date, time.min)
    else:
        return None

    if result.tzinfo is None:
        result = result.replace(tzinfo=tz_info)
    return result


def dt_to_utc(dt_input: str | datetime | None) -> datetime | None:
    """Parse a datetime (string or object), apply timezone if naive, convert to UTC.

    Example:
        "2025-04-07T14:30:00-05:00" → datetime.datetime(2025, 4, 7, 19, 30, tzinfo=UTC)
    """
    result = dt_parse(dt_input)
    if result is None:
        return None
    return as_utc(result)


def dt_to_iso(dt_obj: datetime | None) -> str | None:
    """Serialize an instant as a UTC ISO 8601 string for storage."""
    if dt_obj is None:
        return None
    return as_utc(dt_obj).isoformat()
