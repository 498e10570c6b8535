"""Tests for the schedule time codec.

Covers normalization of user-entered times, parsing into 24-hour pairs,
rejection of malformed entries and display ordering.
"""

import pytest

from custom_components.safecheck.utils.schedule_codec import (
    format_schedule_time,
    is_valid_schedule_time,
    normalize_schedule_set,
    normalize_schedule_time,
    parse_schedule_time,
    sort_schedule_times,
)

# =============================================================================
# Test: normalize_schedule_time
# =============================================================================


class TestNormalizeScheduleTime:
    """Tests for the canonical key form."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("9:00 AM", "9:00 AM"),
            ("  9:00am ", "9:00 AM"),
            ("9:00AM", "9:00 AM"),
            ("6:30   pm", "6:30 PM"),
            ("12:00 Pm", "12:00 PM"),
            ("09:00 AM", "9:00 AM"),
            ("07:05pm", "7:05 PM"),
        ],
    )
    def test_normalizes_case_and_spacing(self, raw: str, expected: str) -> None:
        """Test that case and whitespace variants share one key."""
        assert normalize_schedule_time(raw) == expected

    def test_unparsable_input_is_still_normalized(self) -> None:
        """Test that garbage is trimmed and upper-cased but otherwise kept."""
        assert normalize_schedule_time(" noon-ish ") == "NOON-ISH"


# =============================================================================
# Test: parse_schedule_time
# =============================================================================


class TestParseScheduleTime:
    """Tests for parsing entries into (hour, minute)."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("9:00 AM", (9, 0)),
            ("9:00AM", (9, 0)),
            ("12:30 pm", (12, 30)),
            ("12:15 AM", (0, 15)),
            ("6:00 PM", (18, 0)),
            ("11:59 PM", (23, 59)),
        ],
    )
    def test_valid_entries(self, raw: str, expected: tuple[int, int]) -> None:
        """Test that valid 12-hour entries map to 24-hour pairs."""
        assert parse_schedule_time(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["13:00 PM", "0:30 AM", "9:60 AM", "9:00", "09:00:00", "nine", "", None],
    )
    def test_malformed_entries(self, raw: str | None) -> None:
        """Test that malformed entries return None instead of raising."""
        assert parse_schedule_time(raw) is None
        assert is_valid_schedule_time(raw) is False


# =============================================================================
# Test: format / sort / set helpers
# =============================================================================


class TestScheduleHelpers:
    """Tests for formatting, ordering and de-duplication."""

    def test_format_round_trips_edge_hours(self) -> None:
        """Test midnight and noon formatting."""
        assert format_schedule_time(0, 5) == "12:05 AM"
        assert format_schedule_time(12, 0) == "12:00 PM"
        assert format_schedule_time(18, 30) == "6:30 PM"

    def test_sort_orders_by_time_of_day(self) -> None:
        """Test that display order follows the clock, not the string."""
        ordered = sort_schedule_times(["6:00 PM", "10:00 AM", "9:00 AM", "bad"])
        assert ordered == ["9:00 AM", "10:00 AM", "6:00 PM", "bad"]

    def test_normalize_set_drops_duplicates(self) -> None:
        """Test that variants of one time collapse to a single entry."""
        result = normalize_schedule_set(
            ["9:00 AM", "9:00am", "09:00 AM", " 6:00 PM", 42]
        )
        assert result == ["9:00 AM", "6:00 PM"]

    def test_normalize_set_handles_none(self) -> None:
        """Test that a missing list yields an empty one."""
        assert normalize_schedule_set(None) == []
