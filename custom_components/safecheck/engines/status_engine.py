"""Status Engine - Pure time/schedule calculus for check-in status.

This engine provides stateless, pure Python functions for:
- Classifying schedule entries as completed, pending or overdue at an instant
- Choosing which entries a check-in satisfies
- Computing the next expected check-in instant
- Streak state and streak transitions across local calendar days
- Deriving the senior status (safe / running late / SOS)

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that take `now` explicitly and operate on
passed-in data. Persistence and transactions belong in the managers.

Every function accepts an optional `tz`; when omitted the integration's
configured local timezone (dt_utils.DEFAULT_TIME_ZONE) is used.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import (
    add_local_days,
    dt_parse_date,
    dt_to_utc,
    is_same_local_day,
    local_date,
    local_day_difference,
    local_instant,
)
from ..utils.schedule_codec import (
    normalize_schedule_set,
    parse_schedule_time,
    sort_schedule_times,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import tzinfo


# =============================================================================
# RESULT DATA STRUCTURES
# =============================================================================


@dataclass(frozen=True)
class StreakUpdate:
    """Outcome of applying a check-in to a streak counter.

    Attributes:
        state: STREAK_SAME_DAY, STREAK_CONSECUTIVE or STREAK_BROKEN
        current_streak: Counter value after the check-in
        start_date: Local date on which the current streak began
    """

    state: str
    current_streak: int
    start_date: date


@dataclass(frozen=True)
class SeniorStatus:
    """Snapshot of a senior's derived status at one instant.

    Never patched incrementally: observers rebuild it with
    StatusEngine.derive_status() whenever the underlying state changes.
    """

    status: str
    next_expected_check_in: datetime | None
    current_streak: int
    streak_start_date: date | None
    last_check_in: datetime | None
    schedules: list[str] = field(default_factory=list)
    completed_today: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    overdue: list[str] = field(default_factory=list)
    all_completed: bool = True
    vacation_mode: bool = False
    sos_active: bool = False
    missed_check_ins_today: int = 0


# =============================================================================
# STATUS ENGINE
# =============================================================================


class StatusEngine:
    """Pure logic engine for schedule status, next-expected and streaks.

    All methods are static - no instance state. This enables easy unit testing
    without any Home Assistant mocking.
    """

    # =========================================================================
    # Schedule helpers
    # =========================================================================

    @staticmethod
    def effective_schedules(schedules: Iterable[str] | None) -> list[str]:
        """Return normalized unique entries, or the implicit default when empty."""
        normalized = normalize_schedule_set(schedules)
        return normalized or [const.DEFAULT_SCHEDULE]

    @staticmethod
    def schedule_instant(
        entry: str, day: date, tz: tzinfo | None = None
    ) -> datetime | None:
        """Return the instant of `entry` on the local calendar `day`.

        Returns None for malformed entries.
        """
        parsed = parse_schedule_time(entry)
        if parsed is None:
            return None
        return local_instant(day, parsed[0], parsed[1], tz)

    @staticmethod
    def _today_instants(
        schedules: Iterable[str],
        completed: Iterable[str],
        now: datetime,
        tz: tzinfo | None = None,
    ) -> list[tuple[datetime, str]]:
        """Return (instant, entry) for parsable, not-completed entries, by time."""
        completed_set = set(normalize_schedule_set(completed))
        today = local_date(now, tz)
        result: list[tuple[datetime, str]] = []
        for entry in normalize_schedule_set(schedules):
            if entry in completed_set:
                continue
            instant = StatusEngine.schedule_instant(entry, today, tz)
            if instant is not None:
                result.append((instant, entry))
        return sorted(result)

    @staticmethod
    def effective_completed(
        completed: Iterable[str] | None,
        reset_date: str | date | None,
        now: datetime,
        tz: tzinfo | None = None,
    ) -> list[str]:
        """Return today's completed entries, honoring the daily reset.

        When the stored reset date is not today's local date the stored list is
        stale and the day's completion set is empty.
        """
        if isinstance(reset_date, str):
            reset_date = dt_parse_date(reset_date)
        if reset_date is None or reset_date != local_date(now, tz):
            return []
        return normalize_schedule_set(completed)

    # =========================================================================
    # Classification
    # =========================================================================

    @staticmethod
    def pending_schedules(
        schedules: Iterable[str],
        completed: Iterable[str],
        now: datetime,
        tz: tzinfo | None = None,
    ) -> list[str]:
        """Entries not completed whose today-instant is at or before `now`."""
        return [
            entry
            for instant, entry in StatusEngine._today_instants(
                schedules, completed, now, tz
            )
            if instant <= now
        ]

    @staticmethod
    def overdue_schedules(
        schedules: Iterable[str],
        completed: Iterable[str],
        now: datetime,
        tz: tzinfo | None = None,
    ) -> list[str]:
        """Entries not completed whose today-instant is strictly before `now`.

        Differs from pending_schedules() only at the exact boundary instant.
        """
        return [
            entry
            for instant, entry in StatusEngine._today_instants(
                schedules, completed, now, tz
            )
            if instant < now
        ]

    @staticmethod
    def all_completed(
        schedules: Iterable[str],
        completed: Iterable[str],
        now: datetime,
        tz: tzinfo | None = None,
    ) -> bool:
        """True iff every entry whose today-instant has passed is completed.

        Entries still in the future never block completeness.
        """
        return not StatusEngine.overdue_schedules(schedules, completed, now, tz)

    @staticmethod
    def schedules_to_resolve(
        schedules: Iterable[str],
        completed: Iterable[str],
        now: datetime,
        tz: tzinfo | None = None,
    ) -> list[str]:
        """Entries a check-in at `now` satisfies.

        A late check-in clears every overdue entry at once; otherwise only the
        single nearest upcoming entry is pre-satisfied. Empty when everything
        today is already completed.
        """
        remaining = StatusEngine._today_instants(schedules, completed, now, tz)
        overdue = [entry for instant, entry in remaining if instant < now]
        if overdue:
            return overdue
        upcoming = [entry for instant, entry in remaining if instant >= now]
        return upcoming[:1]

    # =========================================================================
    # Next expected check-in
    # =========================================================================

    @staticmethod
    def next_expected_check_in(
        schedules: Iterable[str],
        now: datetime,
        last_check_in: datetime | None = None,
        completed_today: Iterable[str] | None = None,
        tz: tzinfo | None = None,
    ) -> datetime | None:
        """Compute the next instant a check-in is expected.

        Preference order:
            1. nearest upcoming not-completed entry today
            2. earliest not-completed entry today even if already passed
            3. earliest entry tomorrow (today fully satisfied)

        When `completed_today` is None, a check-in earlier on the same local
        day counts as satisfying the whole day.

        Returns:
            The expected instant, or None only when no entry parses.
        """
        entries = normalize_schedule_set(schedules)
        parsed = [p for p in (parse_schedule_time(e) for e in entries) if p]
        if not parsed:
            return None

        if completed_today is None:
            completed = entries if is_same_local_day(last_check_in, now, tz) else []
        else:
            completed = list(completed_today)

        remaining = StatusEngine._today_instants(entries, completed, now, tz)
        upcoming = [instant for instant, _entry in remaining if instant > now]
        if upcoming:
            return upcoming[0]
        if remaining:
            return remaining[0][0]

        tomorrow = add_local_days(local_date(now, tz), 1)
        return min(local_instant(tomorrow, hour, minute, tz) for hour, minute in parsed)

    @staticmethod
    def next_deadline(
        schedules: Iterable[str],
        completed: Iterable[str],
        now: datetime,
        tz: tzinfo | None = None,
    ) -> tuple[datetime, str] | None:
        """Return the next (instant, entry) at which a missed check-in can occur.

        Unlike next_expected_check_in() an already passed entry is never
        returned: the nearest not-completed entry strictly after `now` today,
        else the earliest entry tomorrow (completions do not carry over).
        """
        remaining = StatusEngine._today_instants(schedules, completed, now, tz)
        for instant, entry in remaining:
            if instant > now:
                return instant, entry
        tomorrow = add_local_days(local_date(now, tz), 1)
        tomorrow_instants = StatusEngine._today_instants(
            schedules, [], local_instant(tomorrow, 0, 0, tz), tz
        )
        if not tomorrow_instants:
            return None
        return tomorrow_instants[0]

    # =========================================================================
    # Streaks
    # =========================================================================

    @staticmethod
    def streak_state(
        last_check_in: datetime | None, now: datetime, tz: tzinfo | None = None
    ) -> str:
        """Classify the calendar-day gap between the last check-in and `now`.

        Uses local calendar days, not elapsed hours. A missing last check-in,
        or one dated after `now`, is treated as broken.
        """
        if last_check_in is None:
            return const.STREAK_BROKEN
        difference = local_day_difference(last_check_in, now, tz)
        if difference == 0:
            return const.STREAK_SAME_DAY
        if difference == 1:
            return const.STREAK_CONSECUTIVE
        return const.STREAK_BROKEN

    @staticmethod
    def apply_streak_transition(
        current_streak: int,
        start_date: date | None,
        last_check_in: datetime | None,
        now: datetime,
        tz: tzinfo | None = None,
    ) -> StreakUpdate:
        """Apply a check-in at `now` to the stored streak counter.

        - same_day: hold (at least 1)
        - consecutive: increment
        - broken: reset to 1 starting today

        A positive streak with no recorded last check-in is an impossible state
        and is normalized to a fresh streak of 1 starting today.
        """
        today = local_date(now, tz)
        current_streak = max(int(current_streak or 0), 0)

        if last_check_in is None:
            return StreakUpdate(const.STREAK_BROKEN, 1, today)

        state = StatusEngine.streak_state(last_check_in, now, tz)
        if state == const.STREAK_SAME_DAY:
            return StreakUpdate(state, max(current_streak, 1), start_date or today)
        if state == const.STREAK_CONSECUTIVE:
            if current_streak == 0:
                return StreakUpdate(state, 1, today)
            return StreakUpdate(state, current_streak + 1, start_date or today)
        return StreakUpdate(state, 1, today)

    @staticmethod
    def displayed_streak(
        current_streak: int,
        last_check_in: datetime | None,
        now: datetime,
        tz: tzinfo | None = None,
    ) -> int:
        """Streak to show at `now`: zero once a full calendar day was skipped."""
        if StatusEngine.streak_state(last_check_in, now, tz) == const.STREAK_BROKEN:
            return 0
        return max(int(current_streak or 0), 0)

    # =========================================================================
    # Derived status
    # =========================================================================

    @staticmethod
    def is_day_one_exempt(
        schedules: Iterable[str],
        created_at: datetime | None,
        now: datetime,
        tz: tzinfo | None = None,
    ) -> bool:
        """True on the senior's creation day while only the default entry exists.

        A senior created after the default time would otherwise be running late
        before ever having had a chance to check in.
        """
        return is_same_local_day(created_at, now, tz) and normalize_schedule_set(
            schedules
        ) == [const.DEFAULT_SCHEDULE]

    @staticmethod
    def derive_status(
        state: Mapping[str, Any], now: datetime, tz: tzinfo | None = None
    ) -> SeniorStatus:
        """Build the full status snapshot from a senior state document.

        SOS overrides everything. Vacation mode forces safe and suppresses the
        next expected check-in. Otherwise the senior is running late when any
        entry is overdue, except for the default entry on the creation day.
        """
        schedules = StatusEngine.effective_schedules(
            state.get(const.DATA_SENIOR_SCHEDULES)
        )
        completed = StatusEngine.effective_completed(
            state.get(const.DATA_SENIOR_COMPLETED_TODAY),
            state.get(const.DATA_SENIOR_RESET_DATE),
            now,
            tz,
        )
        last_check_in = dt_to_utc(state.get(const.DATA_SENIOR_LAST_CHECK_IN))
        created_at = dt_to_utc(state.get(const.DATA_SENIOR_CREATED_AT))
        vacation_mode = bool(state.get(const.DATA_SENIOR_VACATION_MODE, False))
        sos_active = bool(state.get(const.DATA_SENIOR_SOS_ACTIVE, False))

        overdue = StatusEngine.overdue_schedules(schedules, completed, now, tz)
        if StatusEngine.is_day_one_exempt(schedules, created_at, now, tz):
            overdue = [e for e in overdue if e != const.DEFAULT_SCHEDULE]
        pending = StatusEngine.pending_schedules(schedules, completed, now, tz)

        if sos_active:
            status = const.STATUS_SOS_ACTIVE
        elif vacation_mode or not overdue:
            status = const.STATUS_SAFE
        else:
            status = const.STATUS_RUNNING_LATE

        next_expected = None
        if not vacation_mode:
            next_expected = StatusEngine.next_expected_check_in(
                schedules, now, last_check_in, completed, tz
            )

        missed_today = 0
        if state.get(const.DATA_SENIOR_MISSED_DATE) == local_date(now, tz).isoformat():
            missed_today = int(state.get(const.DATA_SENIOR_MISSED_TODAY) or 0)

        return SeniorStatus(
            status=status,
            next_expected_check_in=next_expected,
            current_streak=StatusEngine.displayed_streak(
                state.get(const.DATA_SENIOR_CURRENT_STREAK, 0), last_check_in, now, tz
            ),
            streak_start_date=dt_parse_date(state.get(const.DATA_SENIOR_START_DATE)),
            last_check_in=last_check_in,
            schedules=sort_schedule_times(schedules),
            completed_today=sort_schedule_times(completed),
            pending=pending,
            overdue=overdue,
            all_completed=not overdue,
            vacation_mode=vacation_mode,
            sos_active=sos_active,
            missed_check_ins_today=missed_today,
        )
