"""Schedule Manager for SafeCheck integration.

Adds and removes schedule entries with the store's atomic set operations
(ArrayUnion / ArrayRemove) so concurrent edits from different sessions never
overwrite each other, then recomputes the next expected check-in against the
post-mutation schedule set in a follow-up transaction.
"""

from __future__ import annotations

from datetime import datetime

from .. import const
from ..engines.status_engine import StatusEngine
from ..exceptions import InvalidArgumentError
from ..helpers.retry_helpers import async_retry_transient
from ..store import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, Transaction
from ..utils.dt_utils import dt_now_utc, dt_to_utc, local_date
from ..utils.schedule_codec import (
    is_valid_schedule_time,
    normalize_schedule_time,
    sort_schedule_times,
)
from .base_manager import BaseManager
from .checkin_manager import next_expected_field, senior_state_path


class ScheduleManager(BaseManager):
    """Manager for a senior's set of daily check-in times."""

    async def async_setup(self) -> None:
        """Nothing to subscribe to; mutations are driven by services."""
        const.LOGGER.debug("DEBUG: ScheduleManager ready for entry %s", self.entry_id)

    def _validate(self, senior_id: str, schedule_time: str) -> str:
        """Return the normalized entry, rejecting bad input before any I/O."""
        if not senior_id:
            raise InvalidArgumentError(const.ERROR_EMPTY_SUBJECT_ID)
        normalized = normalize_schedule_time(schedule_time or "")
        if not normalized:
            raise InvalidArgumentError(const.ERROR_EMPTY_SCHEDULE)
        if self.store.get_document(senior_state_path(senior_id)) is None:
            raise InvalidArgumentError(
                const.ERROR_SENIOR_NOT_FOUND_FMT.format(senior_id)
            )
        return normalized

    # =========================================================================
    # Queries
    # =========================================================================

    def get_schedules(self, senior_id: str) -> list[str]:
        """Return the effective schedule set, ordered for display."""
        state = self.store.get_document(senior_state_path(senior_id)) or {}
        return sort_schedule_times(
            StatusEngine.effective_schedules(state.get(const.DATA_SENIOR_SCHEDULES))
        )

    async def async_get_schedules(self, senior_id: str) -> list[str]:
        """Return the schedule set, persisting the implicit default when empty."""
        state = self.store.get_document(senior_state_path(senior_id))
        if state is not None and not state.get(const.DATA_SENIOR_SCHEDULES):
            await self.store.async_update(
                senior_state_path(senior_id),
                {const.DATA_SENIOR_SCHEDULES: ArrayUnion(const.DEFAULT_SCHEDULE)},
            )
        return self.get_schedules(senior_id)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def async_add_schedule(self, senior_id: str, schedule_time: str) -> list[str]:
        """Add a daily check-in time; adding an existing time is a no-op.

        Raises:
            InvalidArgumentError: empty or malformed time, unknown senior.
        """
        normalized = self._validate(senior_id, schedule_time)
        if not is_valid_schedule_time(normalized):
            raise InvalidArgumentError(
                const.ERROR_INVALID_SCHEDULE_FMT.format(schedule_time)
            )

        async def _mutate() -> None:
            await self.store.async_update(
                senior_state_path(senior_id),
                {
                    const.DATA_SENIOR_SCHEDULES: ArrayUnion(normalized),
                    const.DATA_SENIOR_UPDATED_AT: SERVER_TIMESTAMP,
                },
            )
            await self._async_recompute_next_expected(senior_id)

        await async_retry_transient(
            _mutate, description=f"Adding schedule {normalized} for {senior_id}"
        )
        const.LOGGER.info(
            "INFO: Added schedule '%s' for senior '%s'", normalized, senior_id
        )
        self.emit(
            const.SIGNAL_SUFFIX_SCHEDULES_CHANGED,
            senior_id=senior_id,
            added=normalized,
        )
        return self.get_schedules(senior_id)

    async def async_remove_schedule(
        self, senior_id: str, schedule_time: str
    ) -> list[str]:
        """Remove a daily check-in time and its completion mark for today.

        Removing the last entry leaves an empty set, which means the default
        time applies again.
        """
        normalized = self._validate(senior_id, schedule_time)

        def _spellings(field: str) -> set[str]:
            # Older writers may have stored "09:00 AM" for "9:00 AM"
            state = self.store.get_document(senior_state_path(senior_id)) or {}
            stored = state.get(field) or []
            return {normalized} | {
                entry
                for entry in stored
                if isinstance(entry, str)
                and normalize_schedule_time(entry) == normalized
            }

        async def _mutate() -> None:
            await self.store.async_update(
                senior_state_path(senior_id),
                {
                    const.DATA_SENIOR_SCHEDULES: ArrayRemove(
                        *_spellings(const.DATA_SENIOR_SCHEDULES)
                    ),
                    const.DATA_SENIOR_COMPLETED_TODAY: ArrayRemove(
                        *_spellings(const.DATA_SENIOR_COMPLETED_TODAY)
                    ),
                    const.DATA_SENIOR_UPDATED_AT: SERVER_TIMESTAMP,
                },
            )
            await self._async_recompute_next_expected(senior_id)

        await async_retry_transient(
            _mutate, description=f"Removing schedule {normalized} for {senior_id}"
        )
        const.LOGGER.info(
            "INFO: Removed schedule '%s' for senior '%s'", normalized, senior_id
        )
        self.emit(
            const.SIGNAL_SUFFIX_SCHEDULES_CHANGED,
            senior_id=senior_id,
            removed=normalized,
        )
        return self.get_schedules(senior_id)

    async def _async_recompute_next_expected(
        self, senior_id: str, now: datetime | None = None
    ) -> None:
        """Rewrite next_expected_check_in from the committed schedule set.

        Also clears a completion list left over from a previous day.
        """

        async def _transaction(txn: Transaction) -> None:
            state_path = senior_state_path(senior_id)
            state = txn.get(state_path)
            if state is None:
                return
            at = now or dt_now_utc()
            completed = StatusEngine.effective_completed(
                state.get(const.DATA_SENIOR_COMPLETED_TODAY),
                state.get(const.DATA_SENIOR_RESET_DATE),
                at,
            )
            next_expected = StatusEngine.next_expected_check_in(
                StatusEngine.effective_schedules(
                    state.get(const.DATA_SENIOR_SCHEDULES)
                ),
                at,
                dt_to_utc(state.get(const.DATA_SENIOR_LAST_CHECK_IN)),
                completed,
            )
            txn.update(
                state_path,
                {
                    const.DATA_SENIOR_COMPLETED_TODAY: completed,
                    const.DATA_SENIOR_RESET_DATE: local_date(at).isoformat(),
                    const.DATA_SENIOR_NEXT_EXPECTED: next_expected_field(
                        next_expected,
                        bool(state.get(const.DATA_SENIOR_VACATION_MODE, False)),
                    ),
                },
            )

        await self.store.async_run_transaction(_transaction)
