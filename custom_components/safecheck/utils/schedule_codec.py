# File: utils/schedule_codec.py
"""Schedule time codec for SafeCheck.

Schedule entries are 12-hour wall-clock strings such as "9:00 AM". They are
stored, compared and displayed in their normalized form; arithmetic needs the
parsed (hour, minute) pair.

⚠️ UTILS PURITY: NO `homeassistant.*` imports allowed.

Parse failures are not errors: an unparsable entry is skipped for time
arithmetic but is still retained and displayed.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
import re

_LOGGER = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_MISSING_SPACE_RE = re.compile(r"(\d)(AM|PM)$")
_SCHEDULE_RE = re.compile(r"^(\d{1,2}):(\d{2}) (AM|PM)$")

MERIDIEM_AM = "AM"
MERIDIEM_PM = "PM"


def _clean_schedule_text(value: str) -> str:
    """Trim, upper-case, collapse whitespace and split "9:00AM" into "9:00 AM"."""
    cleaned = _WHITESPACE_RE.sub(" ", value.strip().upper())
    return _MISSING_SPACE_RE.sub(r"\1 \2", cleaned)


def normalize_schedule_time(value: str) -> str:
    """Return the canonical key form of a schedule entry.

    Entries that parse are re-rendered from their time of day, so "09:00 am"
    and "9:00AM" share one key. Unparsable input is only cleaned up.

    Example:
        >>> normalize_schedule_time("  09:00am ")
        '9:00 AM'
    """
    cleaned = _clean_schedule_text(value)
    parsed = _parse_cleaned(cleaned)
    if parsed is None:
        return cleaned
    return format_schedule_time(*parsed)


def parse_schedule_time(value: str | None) -> tuple[int, int] | None:
    """Parse a schedule entry into a 24-hour (hour, minute) pair.

    Args:
        value: Entry such as "9:00 AM", "9:00AM" or "12:30 pm"

    Returns:
        (hour 0-23, minute 0-59), or None when the entry is malformed: no
        trailing AM/PM token, hour outside 1-12, or minute outside 0-59.

    Example:
        >>> parse_schedule_time("12:15 AM")
        (0, 15)
    """
    if not value or not isinstance(value, str):
        return None
    return _parse_cleaned(_clean_schedule_text(value))


def _parse_cleaned(value: str) -> tuple[int, int] | None:
    match = _SCHEDULE_RE.match(value)
    if match is None:
        _LOGGER.debug("Malformed schedule time (expected H:MM AM/PM): %r", value)
        return None

    hour = int(match.group(1))
    minute = int(match.group(2))
    if not (1 <= hour <= 12 and 0 <= minute <= 59):
        _LOGGER.debug("Schedule time out of range: %r", value)
        return None

    if match.group(3) == MERIDIEM_AM:
        hour = 0 if hour == 12 else hour
    elif hour != 12:
        hour += 12
    return hour, minute


def format_schedule_time(hour: int, minute: int) -> str:
    """Render a 24-hour (hour, minute) pair as a normalized schedule entry.

    Example:
        >>> format_schedule_time(0, 5)
        '12:05 AM'
    """
    meridiem = MERIDIEM_AM if hour < 12 else MERIDIEM_PM
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {meridiem}"


def is_valid_schedule_time(value: str | None) -> bool:
    """Return True when the entry parses."""
    return parse_schedule_time(value) is not None


def sort_schedule_times(values: Iterable[str]) -> list[str]:
    """Order entries by time of day for display; unparsable entries go last."""

    def _sort_key(entry: str) -> tuple[int, int, str]:
        parsed = parse_schedule_time(entry)
        if parsed is None:
            return (1, 0, entry)
        return (0, parsed[0] * 60 + parsed[1], entry)

    return sorted(values, key=_sort_key)


def normalize_schedule_set(values: Iterable[str] | None) -> list[str]:
    """Normalize entries and drop duplicates, keeping first-seen order."""
    result: list[str] = []
    for value in values or []:
        if not isinstance(value, str):
            continue
        normalized = normalize_schedule_time(value)
        if normalized and normalized not in result:
            result.append(normalized)
    return result
