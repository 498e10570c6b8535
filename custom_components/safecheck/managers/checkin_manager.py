"""Check-in Manager for SafeCheck integration.

Owns every write to a senior's check-in related state:
- Recording a check-in (one atomic transaction: record, completion, streak,
  next expected check-in, missed counters, last-known location)
- Check-in history queries
- Vacation mode and SOS flags
- Registering seniors

All reads that decide what gets written happen inside the transaction, so two
check-ins from different sessions converge on the same completion state.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta
from typing import Any

from .. import const
from ..engines.status_engine import StatusEngine
from ..exceptions import InvalidArgumentError
from ..helpers.retry_helpers import async_retry_transient
from ..store import DELETE_FIELD, SERVER_TIMESTAMP, ArrayUnion, Transaction
from ..type_defs import CheckInRecord
from ..utils.dt_utils import (
    dt_now_utc,
    dt_parse_date,
    dt_to_iso,
    dt_to_utc,
    local_date,
    start_of_local_day,
)
from .base_manager import BaseManager


def senior_state_path(senior_id: str) -> str:
    """Path of a senior's state document."""
    return const.DOC_SENIOR_STATE_FMT.format(user_id=senior_id)


def profile_path(senior_id: str) -> str:
    """Path of a senior's profile document."""
    return const.DOC_PROFILE_FMT.format(user_id=senior_id)


def check_ins_collection(senior_id: str) -> str:
    """Collection holding a senior's check-in records."""
    return const.COLLECTION_CHECK_INS_FMT.format(user_id=senior_id)


def activity_logs_collection(senior_id: str) -> str:
    """Collection holding a senior's activity log entries."""
    return const.COLLECTION_ACTIVITY_LOGS_FMT.format(user_id=senior_id)


def next_expected_field(next_expected: datetime | None, vacation_mode: bool) -> Any:
    """Value to store for next_expected_check_in (deleted while on vacation)."""
    if vacation_mode or next_expected is None:
        return DELETE_FIELD
    return dt_to_iso(next_expected)


class CheckInManager(BaseManager):
    """Manager for check-ins, vacation mode, SOS and senior registration."""

    async def async_setup(self) -> None:
        """Nothing to subscribe to; check-ins are driven by services and buttons."""
        const.LOGGER.debug("DEBUG: CheckInManager ready for entry %s", self.entry_id)

    # =========================================================================
    # Validation
    # =========================================================================

    def _require_senior(self, senior_id: str) -> None:
        """Reject unknown or empty senior ids before any I/O."""
        if not senior_id:
            raise InvalidArgumentError(const.ERROR_EMPTY_SUBJECT_ID)
        if self.store.get_document(senior_state_path(senior_id)) is None:
            raise InvalidArgumentError(
                const.ERROR_SENIOR_NOT_FOUND_FMT.format(senior_id)
            )

    # =========================================================================
    # Record check-in
    # =========================================================================

    async def async_record_check_in(
        self,
        senior_id: str,
        *,
        timestamp: datetime | None = None,
        mood: str | None = None,
        sleep: str | None = None,
        energy: str | None = None,
        medication: str | None = None,
        brain_exercise_completed: bool = False,
        latitude: float | None = None,
        longitude: float | None = None,
        location_address: str | None = None,
    ) -> CheckInRecord:
        """Record a check-in and update the senior's state atomically.

        Transient store failures are retried with linear backoff; anything
        else propagates and nothing is reported as recorded.

        Returns:
            The stored record, with scheduled_for / scheduled_count filled in.
        """
        self._require_senior(senior_id)
        checked_in_at = timestamp or dt_now_utc()

        draft = CheckInRecord(
            id=Transaction.new_id(),
            user_id=senior_id,
            timestamp=dt_to_iso(checked_in_at),
            mood=mood,
            sleep=sleep,
            energy=energy,
            medication=medication,
            brain_exercise_completed=brain_exercise_completed,
            latitude=latitude,
            longitude=longitude,
            location_address=location_address,
        )

        async def _transaction(txn: Transaction) -> CheckInRecord:
            return self._apply_check_in(txn, draft, checked_in_at)

        record = await async_retry_transient(
            lambda: self.store.async_run_transaction(_transaction),
            description=f"Check-in for senior {senior_id}",
        )

        const.LOGGER.info(
            "INFO: Check-in recorded for senior '%s' satisfying %s",
            senior_id,
            record.scheduled_for,
        )
        self.emit(
            const.SIGNAL_SUFFIX_CHECK_IN_RECORDED,
            senior_id=senior_id,
            check_in_id=record.id,
            scheduled_for=record.scheduled_for,
        )
        return record

    def _apply_check_in(
        self, txn: Transaction, draft: CheckInRecord, now: datetime
    ) -> CheckInRecord:
        """Transaction body for a check-in. Reads first, then buffers writes."""
        senior_id = draft.user_id
        state_path = senior_state_path(senior_id)
        state = txn.get(state_path)
        if state is None:
            raise InvalidArgumentError(
                const.ERROR_SENIOR_NOT_FOUND_FMT.format(senior_id)
            )

        schedules = StatusEngine.effective_schedules(
            state.get(const.DATA_SENIOR_SCHEDULES)
        )
        completed = StatusEngine.effective_completed(
            state.get(const.DATA_SENIOR_COMPLETED_TODAY),
            state.get(const.DATA_SENIOR_RESET_DATE),
            now,
        )

        streak = StatusEngine.apply_streak_transition(
            state.get(const.DATA_SENIOR_CURRENT_STREAK, 0),
            dt_parse_date(state.get(const.DATA_SENIOR_START_DATE)),
            dt_to_utc(state.get(const.DATA_SENIOR_LAST_CHECK_IN)),
            now,
        )
        if (
            state.get(const.DATA_SENIOR_LAST_CHECK_IN) is None
            and (state.get(const.DATA_SENIOR_CURRENT_STREAK) or 0) > 0
        ):
            const.LOGGER.warning(
                "WARNING: Senior '%s' has streak %s without a last check-in, resetting",
                senior_id,
                state.get(const.DATA_SENIOR_CURRENT_STREAK),
            )

        satisfied = StatusEngine.schedules_to_resolve(schedules, completed, now)
        completed_after = completed + [e for e in satisfied if e not in completed]
        vacation_mode = bool(state.get(const.DATA_SENIOR_VACATION_MODE, False))
        next_expected = StatusEngine.next_expected_check_in(
            schedules, now, now, completed_after
        )

        record = dataclasses.replace(
            draft, scheduled_for=satisfied, scheduled_count=len(schedules)
        )
        today_iso = local_date(now).isoformat()

        txn.set(f"{check_ins_collection(senior_id)}/{record.id}", record.as_dict())
        txn.update(
            state_path,
            {
                const.DATA_SENIOR_COMPLETED_TODAY: completed_after,
                const.DATA_SENIOR_RESET_DATE: today_iso,
                const.DATA_SENIOR_CURRENT_STREAK: streak.current_streak,
                const.DATA_SENIOR_START_DATE: streak.start_date.isoformat(),
                const.DATA_SENIOR_LAST_CHECK_IN: record.timestamp,
                const.DATA_SENIOR_NEXT_EXPECTED: next_expected_field(
                    next_expected, vacation_mode
                ),
                const.DATA_SENIOR_MISSED_TODAY: 0,
                const.DATA_SENIOR_MISSED_DATE: today_iso,
                const.DATA_SENIOR_CONSECUTIVE_MISSED_DAYS: 0,
                const.DATA_SENIOR_UPDATED_AT: SERVER_TIMESTAMP,
            },
        )

        if record.has_location:
            location: dict[str, Any] = {
                const.DATA_PROFILE_LATITUDE: record.latitude,
                const.DATA_PROFILE_LONGITUDE: record.longitude,
                const.DATA_PROFILE_LOCATION_UPDATED_AT: SERVER_TIMESTAMP,
            }
            if record.location_address:
                location[const.DATA_PROFILE_LOCATION_ADDRESS] = record.location_address
            txn.update(profile_path(senior_id), location)

        return record

    # =========================================================================
    # History
    # =========================================================================

    def get_check_in_history(
        self,
        senior_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[CheckInRecord]:
        """Return check-ins with start <= timestamp < end, newest first."""
        self._require_senior(senior_id)
        documents = self.store.query(
            check_ins_collection(senior_id),
            const.DATA_CHECK_IN_TIMESTAMP,
            start=start,
            end=end,
        )
        return [CheckInRecord.from_dict(document) for document in documents]

    def get_recent_check_ins(
        self, senior_id: str, days: int = 7, now: datetime | None = None
    ) -> list[CheckInRecord]:
        """Return check-ins from the last `days` local days including today."""
        now = now or dt_now_utc()
        start = start_of_local_day(now) - timedelta(days=days - 1)
        return self.get_check_in_history(senior_id, start=start)

    # =========================================================================
    # Vacation mode / SOS
    # =========================================================================

    async def async_set_vacation_mode(self, senior_id: str, enabled: bool) -> None:
        """Toggle vacation mode.

        Enabling clears the next expected check-in; disabling recomputes it
        from the current schedules and today's completion state.
        """
        self._require_senior(senior_id)

        async def _transaction(txn: Transaction) -> None:
            state_path = senior_state_path(senior_id)
            state = txn.get(state_path) or {}
            now = dt_now_utc()
            next_expected = None
            if not enabled:
                completed = StatusEngine.effective_completed(
                    state.get(const.DATA_SENIOR_COMPLETED_TODAY),
                    state.get(const.DATA_SENIOR_RESET_DATE),
                    now,
                )
                next_expected = StatusEngine.next_expected_check_in(
                    StatusEngine.effective_schedules(
                        state.get(const.DATA_SENIOR_SCHEDULES)
                    ),
                    now,
                    dt_to_utc(state.get(const.DATA_SENIOR_LAST_CHECK_IN)),
                    completed,
                )
            txn.update(
                state_path,
                {
                    const.DATA_SENIOR_VACATION_MODE: enabled,
                    const.DATA_SENIOR_NEXT_EXPECTED: next_expected_field(
                        next_expected, enabled
                    ),
                    const.DATA_SENIOR_UPDATED_AT: SERVER_TIMESTAMP,
                },
            )

        await async_retry_transient(
            lambda: self.store.async_run_transaction(_transaction),
            description=f"Vacation mode update for senior {senior_id}",
        )
        const.LOGGER.info(
            "INFO: Vacation mode %s for senior '%s'",
            "enabled" if enabled else "disabled",
            senior_id,
        )
        self.emit(
            const.SIGNAL_SUFFIX_VACATION_CHANGED, senior_id=senior_id, enabled=enabled
        )

    async def async_set_sos(self, senior_id: str, active: bool) -> None:
        """Raise or clear the SOS flag."""
        self._require_senior(senior_id)
        await async_retry_transient(
            lambda: self.store.async_update(
                senior_state_path(senior_id),
                {
                    const.DATA_SENIOR_SOS_ACTIVE: active,
                    const.DATA_SENIOR_UPDATED_AT: SERVER_TIMESTAMP,
                },
            ),
            description=f"SOS update for senior {senior_id}",
        )
        const.LOGGER.info(
            "INFO: SOS %s for senior '%s'", "raised" if active else "cleared", senior_id
        )
        self.emit(const.SIGNAL_SUFFIX_SOS_CHANGED, senior_id=senior_id, active=active)

    # =========================================================================
    # Registration
    # =========================================================================

    async def async_register_senior(
        self, name: str, notify_service: str | None = None
    ) -> str:
        """Create a senior with the default schedule, or return the existing id.

        Returns:
            The senior's internal id.
        """
        display_name = (name or "").strip()
        if not display_name:
            raise InvalidArgumentError(const.ERROR_EMPTY_SENIOR_NAME)

        for senior_id, profile in self.coordinator.profiles.items():
            if profile.get(const.DATA_PROFILE_NAME, "").casefold() == (
                display_name.casefold()
            ):
                const.LOGGER.debug(
                    "DEBUG: Senior '%s' already registered as %s", display_name, senior_id
                )
                return senior_id

        senior_id = Transaction.new_id()
        created_at = dt_now_utc()
        schedules = [const.DEFAULT_SCHEDULE]
        next_expected = StatusEngine.next_expected_check_in(
            schedules, created_at, None, []
        )

        async def _transaction(txn: Transaction) -> None:
            profile: dict[str, Any] = {const.DATA_PROFILE_NAME: display_name}
            if notify_service:
                profile[const.DATA_PROFILE_NOTIFY_SERVICE] = notify_service
            txn.set(profile_path(senior_id), profile)
            txn.set(
                senior_state_path(senior_id),
                {
                    const.DATA_SENIOR_SCHEDULES: schedules,
                    const.DATA_SENIOR_CREATED_AT: dt_to_iso(created_at),
                    const.DATA_SENIOR_CURRENT_STREAK: 0,
                    const.DATA_SENIOR_VACATION_MODE: False,
                    const.DATA_SENIOR_SOS_ACTIVE: False,
                    const.DATA_SENIOR_NEXT_EXPECTED: dt_to_iso(next_expected),
                },
            )
            txn.update(
                const.DOC_SENIOR_REGISTRY,
                {const.DATA_REGISTRY_SENIOR_IDS: ArrayUnion(senior_id)},
            )

        await async_retry_transient(
            lambda: self.store.async_run_transaction(_transaction),
            description=f"Registration of senior {display_name}",
        )
        const.LOGGER.info(
            "INFO: Registered senior '%s' with id %s", display_name, senior_id
        )
        self.emit(
            const.SIGNAL_SUFFIX_SENIOR_REGISTERED,
            senior_id=senior_id,
            name=display_name,
        )
        return senior_id
