"""Unit tests for StatusEngine - pure Python logic tests.

These tests verify schedule classification, check-in resolution, the next
expected check-in, streak transitions and derived status without any Home
Assistant mocking. Every call passes tz=UTC explicitly.

Test Categories:
- Pending / overdue / all-completed classification
- schedules_to_resolve selection
- Next expected check-in and next deadline
- Streak state and transitions
- Derived status snapshots (scenarios A-C, vacation, SOS, day one)
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from custom_components.safecheck import const
from custom_components.safecheck.engines.status_engine import StatusEngine

DAY = date(2026, 3, 2)


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    """Return a UTC instant on `day`."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)


def senior_state(**overrides: object) -> dict[str, object]:
    """Build a minimal senior state document created a week before DAY."""
    state: dict[str, object] = {
        const.DATA_SENIOR_SCHEDULES: ["9:00 AM"],
        const.DATA_SENIOR_COMPLETED_TODAY: [],
        const.DATA_SENIOR_RESET_DATE: DAY.isoformat(),
        const.DATA_SENIOR_CURRENT_STREAK: 0,
        const.DATA_SENIOR_VACATION_MODE: False,
        const.DATA_SENIOR_SOS_ACTIVE: False,
        const.DATA_SENIOR_CREATED_AT: (at(8) - timedelta(days=7)).isoformat(),
    }
    state.update(overrides)
    return state


# =============================================================================
# Test: classification
# =============================================================================


class TestClassification:
    """Tests for pending, overdue and all-completed."""

    def test_boundary_instant_is_pending_not_overdue(self) -> None:
        """Test that at exactly 9:00 the entry is pending but not yet overdue."""
        schedules = ["9:00 AM"]
        assert StatusEngine.pending_schedules(schedules, [], at(9), UTC) == ["9:00 AM"]
        assert StatusEngine.overdue_schedules(schedules, [], at(9), UTC) == []
        assert StatusEngine.all_completed(schedules, [], at(9), UTC) is True

    def test_future_entries_never_block_completion(self) -> None:
        """Test that only passed entries count towards completeness."""
        schedules = ["9:00 AM", "6:00 PM"]
        assert StatusEngine.all_completed(schedules, ["9:00 AM"], at(12), UTC) is True
        assert StatusEngine.all_completed(schedules, [], at(12), UTC) is False

    @pytest.mark.parametrize(
        "schedules",
        [["9:00 AM"], ["7:00 AM", "9:00 AM", "1:00 PM"], ["12:15 AM", "11:59 PM"]],
    )
    def test_marking_overdue_completes_the_day(self, schedules: list[str]) -> None:
        """Test that completing every overdue entry makes the day complete."""
        now = at(14)
        overdue = StatusEngine.overdue_schedules(schedules, [], now, UTC)
        assert StatusEngine.all_completed(schedules, overdue, now, UTC) is True

    def test_malformed_entries_are_skipped(self) -> None:
        """Test that an unparsable entry never becomes overdue."""
        schedules = ["9:00 AM", "bogus"]
        assert StatusEngine.overdue_schedules(schedules, [], at(10), UTC) == ["9:00 AM"]

    def test_stale_completions_are_ignored(self) -> None:
        """Test that yesterday's completion list behaves as empty today."""
        completed = StatusEngine.effective_completed(
            ["9:00 AM"], "2026-03-01", at(10), UTC
        )
        assert completed == []
        assert StatusEngine.effective_completed(
            ["9:00 AM"], DAY.isoformat(), at(10), UTC
        ) == ["9:00 AM"]
        assert StatusEngine.effective_completed(["9:00 AM"], None, at(10), UTC) == []

    def test_empty_schedule_uses_default(self) -> None:
        """Test the implicit default entry."""
        assert StatusEngine.effective_schedules([]) == [const.DEFAULT_SCHEDULE]
        assert StatusEngine.effective_schedules(None) == [const.DEFAULT_SCHEDULE]


# =============================================================================
# Test: schedules_to_resolve
# =============================================================================


class TestSchedulesToResolve:
    """Tests for choosing which entries a check-in satisfies."""

    def test_early_check_in_resolves_one_entry(self) -> None:
        """Test that a check-in before every entry satisfies only the nearest."""
        schedules = ["6:00 PM", "9:00 AM", "1:00 PM"]
        result = StatusEngine.schedules_to_resolve(schedules, [], at(7), UTC)
        assert result == ["9:00 AM"]

    def test_late_check_in_resolves_every_overdue_entry(self) -> None:
        """Test that a late check-in clears all overdue entries at once."""
        schedules = ["7:00 AM", "9:00 AM", "6:00 PM"]
        result = StatusEngine.schedules_to_resolve(schedules, [], at(10), UTC)
        assert result == ["7:00 AM", "9:00 AM"]

    def test_everything_completed_resolves_nothing(self) -> None:
        """Test that a check-in after a completed day changes nothing."""
        schedules = ["9:00 AM"]
        result = StatusEngine.schedules_to_resolve(schedules, ["9:00 AM"], at(20), UTC)
        assert result == []


# =============================================================================
# Test: next expected check-in / next deadline
# =============================================================================


class TestNextExpected:
    """Tests for next_expected_check_in and next_deadline."""

    def test_upcoming_entry_today(self) -> None:
        """Test the nearest upcoming entry wins."""
        result = StatusEngine.next_expected_check_in(
            ["9:00 AM", "6:00 PM"], at(10), completed_today=[], tz=UTC
        )
        assert result == at(18)

    def test_passed_not_completed_entry(self) -> None:
        """Test that an overdue entry is still expected when nothing is ahead."""
        result = StatusEngine.next_expected_check_in(
            ["9:00 AM"], at(10), completed_today=[], tz=UTC
        )
        assert result == at(9)

    def test_completed_day_rolls_to_tomorrow(self) -> None:
        """Test that a satisfied day points at tomorrow's earliest entry."""
        result = StatusEngine.next_expected_check_in(
            ["6:00 PM", "9:00 AM"], at(20), completed_today=["9:00 AM", "6:00 PM"], tz=UTC
        )
        assert result == at(9, day=DAY + timedelta(days=1))

    def test_same_day_check_in_satisfies_day(self) -> None:
        """Test the legacy rule when no completion list is supplied."""
        result = StatusEngine.next_expected_check_in(
            ["9:00 AM"], at(10), last_check_in=at(8), tz=UTC
        )
        assert result == at(9, day=DAY + timedelta(days=1))

    def test_nothing_parses(self) -> None:
        """Test that only malformed entries yield None."""
        assert StatusEngine.next_expected_check_in(["nope"], at(10), tz=UTC) is None

    def test_next_deadline_skips_passed_entries(self) -> None:
        """Test that a deadline is never in the past."""
        schedules = ["9:00 AM", "6:00 PM"]
        assert StatusEngine.next_deadline(schedules, [], at(9), UTC) == (
            at(18),
            "6:00 PM",
        )
        assert StatusEngine.next_deadline(schedules, [], at(19), UTC) == (
            at(9, day=DAY + timedelta(days=1)),
            "9:00 AM",
        )

    def test_next_deadline_ignores_completed(self) -> None:
        """Test that completed entries are not armed."""
        result = StatusEngine.next_deadline(
            ["9:00 AM", "6:00 PM"], ["6:00 PM"], at(10), UTC
        )
        assert result == (at(9, day=DAY + timedelta(days=1)), "9:00 AM")

    def test_next_deadline_none_without_valid_entries(self) -> None:
        """Test that malformed schedules have no deadline."""
        assert StatusEngine.next_deadline(["bogus"], [], at(10), UTC) is None

    def test_zero_padded_spelling_is_the_same_entry(self) -> None:
        """Test that "09:00 AM" and "9:00 AM" arm and complete as one entry."""
        schedules = StatusEngine.effective_schedules(["09:00 AM", "9:00 AM"])
        assert schedules == ["9:00 AM"]
        assert StatusEngine.next_deadline(schedules, [], at(8), UTC) == (
            at(9),
            "9:00 AM",
        )
        assert StatusEngine.next_deadline(
            ["09:00 AM", "6:00 PM"], ["9:00 AM"], at(8), UTC
        ) == (at(18), "6:00 PM")


# =============================================================================
# Test: streaks
# =============================================================================


class TestStreaks:
    """Tests for streak classification and transitions."""

    @pytest.mark.parametrize(
        ("days_ago", "expected"),
        [
            (0, const.STREAK_SAME_DAY),
            (1, const.STREAK_CONSECUTIVE),
            (2, const.STREAK_BROKEN),
            (3, const.STREAK_BROKEN),
        ],
    )
    def test_streak_state(self, days_ago: int, expected: str) -> None:
        """Test classification by calendar days."""
        last = at(8, day=DAY - timedelta(days=days_ago))
        assert StatusEngine.streak_state(last, at(10), UTC) == expected

    def test_calendar_days_not_hours(self) -> None:
        """Test that 23:59 to 00:01 is consecutive although only 2 minutes apart."""
        last = at(23, 59, day=DAY - timedelta(days=1))
        assert StatusEngine.streak_state(last, at(0, 1), UTC) == const.STREAK_CONSECUTIVE

    def test_missing_last_check_in_is_broken(self) -> None:
        """Test that a first check-in starts a streak."""
        assert StatusEngine.streak_state(None, at(10), UTC) == const.STREAK_BROKEN

    def test_consecutive_increments(self) -> None:
        """Test that yesterday's check-in extends the streak and keeps its start."""
        start = DAY - timedelta(days=4)
        update = StatusEngine.apply_streak_transition(
            4, start, at(9, day=DAY - timedelta(days=1)), at(10), UTC
        )
        assert update.state == const.STREAK_CONSECUTIVE
        assert update.current_streak == 5
        assert update.start_date == start

    def test_broken_resets_to_one(self) -> None:
        """Test that a three-day gap resets the streak starting today."""
        update = StatusEngine.apply_streak_transition(
            9, DAY - timedelta(days=12), at(9, day=DAY - timedelta(days=3)), at(10), UTC
        )
        assert update.state == const.STREAK_BROKEN
        assert update.current_streak == 1
        assert update.start_date == DAY

    def test_same_day_holds(self) -> None:
        """Test that a second check-in on one day does not increment."""
        update = StatusEngine.apply_streak_transition(3, DAY, at(8), at(10), UTC)
        assert update.state == const.STREAK_SAME_DAY
        assert update.current_streak == 3

    def test_first_check_in_starts_at_one(self) -> None:
        """Test that no previous check-in yields a streak of one."""
        update = StatusEngine.apply_streak_transition(0, None, None, at(10), UTC)
        assert update.current_streak == 1
        assert update.start_date == DAY

    def test_displayed_streak_drops_to_zero_when_broken(self) -> None:
        """Test that a stale streak is not shown."""
        last = at(9, day=DAY - timedelta(days=2))
        assert StatusEngine.displayed_streak(5, last, at(10), UTC) == 0
        assert StatusEngine.displayed_streak(5, at(9), at(10), UTC) == 5


# =============================================================================
# Test: derived status
# =============================================================================


class TestDeriveStatus:
    """Tests for the status snapshot."""

    def test_before_schedule_is_safe(self) -> None:
        """Test a senior whose only entry is still ahead."""
        status = StatusEngine.derive_status(senior_state(), at(8), UTC)
        assert status.status == const.STATUS_SAFE
        assert status.next_expected_check_in == at(9)
        assert status.overdue == []

    def test_after_schedule_is_running_late(self) -> None:
        """Test a senior who has not checked in after the scheduled time."""
        now = at(9, 5)
        status = StatusEngine.derive_status(senior_state(), now, UTC)
        assert status.status == const.STATUS_RUNNING_LATE
        assert status.overdue == ["9:00 AM"]
        assert status.all_completed is False
        assert StatusEngine.schedules_to_resolve(["9:00 AM"], [], now, UTC) == [
            "9:00 AM"
        ]

    def test_late_evening_check_in_completes_the_day(self) -> None:
        """Test that resolving the evening entry moves next-expected to tomorrow."""
        schedules = ["9:00 AM", "6:00 PM"]
        now = at(19)
        state = senior_state(
            **{
                const.DATA_SENIOR_SCHEDULES: schedules,
                const.DATA_SENIOR_COMPLETED_TODAY: ["9:00 AM"],
            }
        )
        status = StatusEngine.derive_status(state, now, UTC)
        assert status.overdue == ["6:00 PM"]

        resolved = StatusEngine.schedules_to_resolve(schedules, ["9:00 AM"], now, UTC)
        assert resolved == ["6:00 PM"]

        state[const.DATA_SENIOR_COMPLETED_TODAY] = ["9:00 AM", *resolved]
        status = StatusEngine.derive_status(state, now, UTC)
        assert status.status == const.STATUS_SAFE
        assert status.completed_today == ["9:00 AM", "6:00 PM"]
        assert status.next_expected_check_in == at(9, day=DAY + timedelta(days=1))

    def test_stale_completion_list_is_overdue(self) -> None:
        """Test that completions from yesterday do not satisfy today."""
        state = senior_state(
            **{
                const.DATA_SENIOR_COMPLETED_TODAY: ["9:00 AM"],
                const.DATA_SENIOR_RESET_DATE: "2026-03-01",
            }
        )
        status = StatusEngine.derive_status(state, at(10), UTC)
        assert status.status == const.STATUS_RUNNING_LATE
        assert status.completed_today == []

    def test_sos_overrides_everything(self) -> None:
        """Test that SOS wins over running late and vacation."""
        state = senior_state(
            **{
                const.DATA_SENIOR_SOS_ACTIVE: True,
                const.DATA_SENIOR_VACATION_MODE: True,
            }
        )
        status = StatusEngine.derive_status(state, at(10), UTC)
        assert status.status == const.STATUS_SOS_ACTIVE

    def test_vacation_is_safe_without_next_expected(self) -> None:
        """Test that vacation suppresses lateness and the next check-in."""
        state = senior_state(**{const.DATA_SENIOR_VACATION_MODE: True})
        status = StatusEngine.derive_status(state, at(10), UTC)
        assert status.status == const.STATUS_SAFE
        assert status.next_expected_check_in is None
        assert status.vacation_mode is True

    def test_day_one_default_entry_is_exempt(self) -> None:
        """Test that a senior created after 11 AM is not late on day one."""
        state = senior_state(
            **{
                const.DATA_SENIOR_SCHEDULES: [],
                const.DATA_SENIOR_CREATED_AT: at(12).isoformat(),
            }
        )
        status = StatusEngine.derive_status(state, at(13), UTC)
        assert status.status == const.STATUS_SAFE
        assert status.schedules == [const.DEFAULT_SCHEDULE]

        status = StatusEngine.derive_status(state, at(13, day=DAY + timedelta(days=1)), UTC)
        assert status.status == const.STATUS_RUNNING_LATE

    def test_missed_counter_only_counts_today(self) -> None:
        """Test that yesterday's missed counter is reported as zero."""
        state = senior_state(
            **{
                const.DATA_SENIOR_MISSED_TODAY: 2,
                const.DATA_SENIOR_MISSED_DATE: DAY.isoformat(),
            }
        )
        assert StatusEngine.derive_status(state, at(10), UTC).missed_check_ins_today == 2

        state[const.DATA_SENIOR_MISSED_DATE] = "2026-03-01"
        assert StatusEngine.derive_status(state, at(10), UTC).missed_check_ins_today == 0

    def test_streak_and_last_check_in(self) -> None:
        """Test that the stored streak is shown while it is still alive."""
        state = senior_state(
            **{
                const.DATA_SENIOR_CURRENT_STREAK: 4,
                const.DATA_SENIOR_START_DATE: "2026-02-27",
                const.DATA_SENIOR_LAST_CHECK_IN: at(9, day=DAY - timedelta(days=1)).isoformat(),
            }
        )
        status = StatusEngine.derive_status(state, at(8), UTC)
        assert status.current_streak == 4
        assert status.streak_start_date == date(2026, 2, 27)
        assert status.last_check_in == at(9, day=DAY - timedelta(days=1))
