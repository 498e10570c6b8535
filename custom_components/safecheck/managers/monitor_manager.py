# File: monitor_manager.py
"""Monitor Manager for SafeCheck integration.

Watches every registered senior for missed check-ins:
- One point-in-time timer per senior, armed at the next schedule deadline
- A store subscription on each senior's state document re-arms the timer
  whenever schedules, completions or vacation mode change
- A subscription on the senior registry picks up newly registered seniors

When a deadline passes without a check-in the miss is logged idempotently
(one activity entry per senior, schedule entry and local day), the missed
counters are advanced, an escalation is raised after three consecutive days,
and alerts are requested from the NotificationManager.

On startup today's already-overdue entries are resolved as a catch-up so a
restart over a deadline does not lose the miss.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from homeassistant.core import CALLBACK_TYPE, callback
from homeassistant.helpers.event import async_track_point_in_time

from .. import const
from ..engines.status_engine import StatusEngine
from ..helpers.retry_helpers import async_retry_transient
from ..store import SERVER_TIMESTAMP, Transaction
from ..utils.dt_utils import (
    dt_now_utc,
    dt_to_iso,
    dt_to_utc,
    is_same_local_day,
    local_date,
)
from .base_manager import BaseManager
from .checkin_manager import activity_logs_collection, senior_state_path

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import SafeCheckDataCoordinator


def compact_schedule(entry: str) -> str:
    """Schedule entry usable inside a document id ("11:00 AM" -> "1100AM")."""
    return entry.replace(":", "").replace(" ", "")


def missed_activity_id(senior_id: str, entry: str, day_iso: str) -> str:
    """Deterministic id of the activity entry for one missed schedule entry."""
    return const.ACTIVITY_ID_MISSED_FMT.format(
        user_id=senior_id, schedule=compact_schedule(entry), date=day_iso
    )


@dataclass(frozen=True)
class MissedOutcome:
    """Result of resolving missed entries for one senior."""

    newly_missed: list[str] = field(default_factory=list)
    missed_today: int = 0
    consecutive_missed_days: int = 0
    escalated: bool = False


@dataclass
class _ArmedDeadline:
    instant: datetime
    entry: str
    cancel: CALLBACK_TYPE


class MonitorManager(BaseManager):
    """Manager arming missed check-in timers for every senior."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: SafeCheckDataCoordinator,
        clock: Callable[[], datetime] = dt_now_utc,
    ) -> None:
        """Initialize the monitor manager."""
        super().__init__(hass, coordinator)
        self._clock = clock
        self._armed: dict[str, _ArmedDeadline] = {}
        self._doc_unsubs: dict[str, CALLBACK_TYPE] = {}
        self._registry_unsub: CALLBACK_TYPE | None = None

    @property
    def armed_deadlines(self) -> dict[str, tuple[datetime, str]]:
        """Senior id -> (instant, entry) of each armed timer."""
        return {
            senior_id: (armed.instant, armed.entry)
            for senior_id, armed in self._armed.items()
        }

    async def async_setup(self) -> None:
        """Subscribe to the registry, catch up on today's misses, arm timers."""
        self._registry_unsub = self.store.async_subscribe(
            const.DOC_SENIOR_REGISTRY, self._on_registry_changed
        )
        self.coordinator.config_entry.async_on_unload(self.async_shutdown)

        for senior_id in self.coordinator.senior_ids:
            self._watch_senior(senior_id)
            await self.async_run_catch_up(senior_id)
            self._arm(senior_id)

        const.LOGGER.debug(
            "DEBUG: MonitorManager watching %s seniors for entry %s",
            len(self._doc_unsubs),
            self.entry_id,
        )

    @callback
    def async_shutdown(self) -> None:
        """Cancel every timer and subscription."""
        for armed in self._armed.values():
            armed.cancel()
        self._armed.clear()
        for unsub in self._doc_unsubs.values():
            unsub()
        self._doc_unsubs.clear()
        if self._registry_unsub is not None:
            self._registry_unsub()
            self._registry_unsub = None

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def _watch_senior(self, senior_id: str) -> None:
        if senior_id in self._doc_unsubs:
            return

        @callback
        def _on_state_changed(_path: str, _document: dict[str, Any] | None) -> None:
            self._arm(senior_id)

        self._doc_unsubs[senior_id] = self.store.async_subscribe(
            senior_state_path(senior_id), _on_state_changed
        )

    @callback
    def _on_registry_changed(self, _path: str, document: dict[str, Any] | None) -> None:
        for senior_id in (document or {}).get(const.DATA_REGISTRY_SENIOR_IDS, []):
            if senior_id not in self._doc_unsubs:
                const.LOGGER.debug("DEBUG: Monitoring new senior %s", senior_id)
                self._watch_senior(senior_id)
                self._arm(senior_id)

    # =========================================================================
    # Timers
    # =========================================================================

    def _arm(self, senior_id: str) -> None:
        """Arm (or keep) the timer at the senior's next deadline."""
        state = self.store.get_document(senior_state_path(senior_id))
        deadline: tuple[datetime, str] | None = None
        if state is not None and not state.get(const.DATA_SENIOR_VACATION_MODE):
            now = self._clock()
            deadline = StatusEngine.next_deadline(
                StatusEngine.effective_schedules(
                    state.get(const.DATA_SENIOR_SCHEDULES)
                ),
                StatusEngine.effective_completed(
                    state.get(const.DATA_SENIOR_COMPLETED_TODAY),
                    state.get(const.DATA_SENIOR_RESET_DATE),
                    now,
                ),
                now,
            )

        armed = self._armed.get(senior_id)
        if armed is not None:
            if deadline is not None and (armed.instant, armed.entry) == deadline:
                return
            armed.cancel()
            del self._armed[senior_id]

        if deadline is None:
            return

        instant, entry = deadline

        @callback
        def _on_deadline(_now: datetime) -> None:
            self._armed.pop(senior_id, None)
            self.hass.async_create_task(
                self.async_handle_deadline(senior_id, entry, instant)
            )

        self._armed[senior_id] = _ArmedDeadline(
            instant, entry, async_track_point_in_time(self.hass, _on_deadline, instant)
        )
        const.LOGGER.debug(
            "DEBUG: Armed missed check-in timer for senior %s at %s (%s)",
            senior_id,
            instant.isoformat(),
            entry,
        )

    async def async_handle_deadline(
        self, senior_id: str, entry: str, instant: datetime
    ) -> MissedOutcome:
        """Resolve a passed deadline, then arm the next one."""
        now = max(self._clock(), instant)
        try:
            outcome = await self.async_process_missed(senior_id, [entry], now)
        finally:
            self._arm(senior_id)
        return outcome

    async def async_run_catch_up(
        self, senior_id: str, now: datetime | None = None
    ) -> MissedOutcome:
        """Resolve entries that became overdue while nothing was watching."""
        now = now or self._clock()
        state = self.store.get_document(senior_state_path(senior_id))
        if state is None:
            return MissedOutcome()
        overdue = StatusEngine.overdue_schedules(
            StatusEngine.effective_schedules(state.get(const.DATA_SENIOR_SCHEDULES)),
            StatusEngine.effective_completed(
                state.get(const.DATA_SENIOR_COMPLETED_TODAY),
                state.get(const.DATA_SENIOR_RESET_DATE),
                now,
            ),
            now,
        )
        if not overdue:
            return MissedOutcome()
        const.LOGGER.info(
            "INFO: Startup catch-up for senior %s: overdue %s", senior_id, overdue
        )
        return await self.async_process_missed(senior_id, overdue, now)

    # =========================================================================
    # Missed check-in resolution
    # =========================================================================

    async def async_process_missed(
        self, senior_id: str, entries: Iterable[str], now: datetime
    ) -> MissedOutcome:
        """Log, count and alert for entries whose deadline passed at `now`.

        Entries already completed, no longer scheduled, exempt on the
        creation day, or already logged for today are ignored, so calling
        this repeatedly for the same deadline is harmless.
        """
        requested = list(entries)

        async def _transaction(txn: Transaction) -> MissedOutcome:
            return self._apply_missed(txn, senior_id, requested, now)

        outcome: MissedOutcome = await async_retry_transient(
            lambda: self.store.async_run_transaction(_transaction),
            description=f"Missed check-in for senior {senior_id}",
        )
        if not outcome.newly_missed:
            return outcome

        const.LOGGER.info(
            "INFO: Senior %s missed check-in %s (%s today, %s consecutive days)",
            senior_id,
            outcome.newly_missed,
            outcome.missed_today,
            outcome.consecutive_missed_days,
        )
        self.emit(
            const.SIGNAL_SUFFIX_MISSED_CHECK_IN,
            senior_id=senior_id,
            schedules=outcome.newly_missed,
            missed_today=outcome.missed_today,
        )
        if outcome.escalated:
            const.LOGGER.warning(
                "WARNING: Escalating senior %s after %s consecutive missed days",
                senior_id,
                outcome.consecutive_missed_days,
            )
            self.emit(
                const.SIGNAL_SUFFIX_ESCALATION,
                senior_id=senior_id,
                consecutive_missed_days=outcome.consecutive_missed_days,
            )
            self.hass.bus.async_fire(
                const.EVENT_ESCALATION,
                {
                    const.ATTR_SUBJECT_ID: senior_id,
                    const.ATTR_CONSECUTIVE_MISSED_DAYS: (
                        outcome.consecutive_missed_days
                    ),
                },
            )

        await self._async_alert(senior_id, outcome.missed_today)
        return outcome

    def _apply_missed(
        self, txn: Transaction, senior_id: str, entries: list[str], now: datetime
    ) -> MissedOutcome:
        """Transaction body for missed entries. Reads first, then buffers writes."""
        state_path = senior_state_path(senior_id)
        state = txn.get(state_path)
        if state is None or state.get(const.DATA_SENIOR_VACATION_MODE):
            return MissedOutcome()

        schedules = StatusEngine.effective_schedules(
            state.get(const.DATA_SENIOR_SCHEDULES)
        )
        completed = StatusEngine.effective_completed(
            state.get(const.DATA_SENIOR_COMPLETED_TODAY),
            state.get(const.DATA_SENIOR_RESET_DATE),
            now,
        )
        passed = StatusEngine.pending_schedules(schedules, completed, now)
        candidates = [entry for entry in passed if entry in entries]
        if StatusEngine.is_day_one_exempt(
            schedules, dt_to_utc(state.get(const.DATA_SENIOR_CREATED_AT)), now
        ):
            candidates = [e for e in candidates if e != const.DEFAULT_SCHEDULE]

        today_iso = local_date(now).isoformat()
        logs = activity_logs_collection(senior_id)
        new_entries = [
            entry
            for entry in candidates
            if txn.get(f"{logs}/{missed_activity_id(senior_id, entry, today_iso)}")
            is None
        ]
        if not new_entries:
            return MissedOutcome()

        missed_today = len(new_entries)
        if state.get(const.DATA_SENIOR_MISSED_DATE) == today_iso:
            missed_today += int(state.get(const.DATA_SENIOR_MISSED_TODAY) or 0)

        consecutive = int(state.get(const.DATA_SENIOR_CONSECUTIVE_MISSED_DAYS) or 0)
        if not is_same_local_day(
            dt_to_utc(state.get(const.DATA_SENIOR_LAST_MISSED)), now
        ):
            consecutive += 1

        last_escalation = dt_to_utc(state.get(const.DATA_SENIOR_LAST_ESCALATION))
        escalated = consecutive >= const.ESCALATION_THRESHOLD_DAYS and (
            last_escalation is None
            or now - last_escalation
            >= timedelta(hours=const.ESCALATION_RATE_LIMIT_HOURS)
        )

        now_iso = dt_to_iso(now)
        for entry in new_entries:
            txn.set(
                f"{logs}/{missed_activity_id(senior_id, entry, today_iso)}",
                {
                    const.DATA_ACTIVITY_TYPE: const.ACTIVITY_TYPE_MISSED_CHECK_IN,
                    const.DATA_ACTIVITY_TIMESTAMP: now_iso,
                    const.DATA_ACTIVITY_SCHEDULE: entry,
                },
            )

        fields: dict[str, Any] = {
            const.DATA_SENIOR_MISSED_TODAY: missed_today,
            const.DATA_SENIOR_MISSED_DATE: today_iso,
            const.DATA_SENIOR_LAST_MISSED: now_iso,
            const.DATA_SENIOR_CONSECUTIVE_MISSED_DAYS: consecutive,
            const.DATA_SENIOR_UPDATED_AT: SERVER_TIMESTAMP,
        }
        if escalated:
            fields[const.DATA_SENIOR_LAST_ESCALATION] = now_iso
            escalation_id = const.ACTIVITY_ID_ESCALATION_FMT.format(
                user_id=senior_id, date=today_iso
            )
            txn.set(
                f"{logs}/{escalation_id}",
                {
                    const.DATA_ACTIVITY_TYPE: const.ACTIVITY_TYPE_ESCALATION,
                    const.DATA_ACTIVITY_TIMESTAMP: now_iso,
                    const.DATA_ACTIVITY_CONSECUTIVE_DAYS: consecutive,
                },
            )
        txn.update(state_path, fields)

        return MissedOutcome(
            newly_missed=new_entries,
            missed_today=missed_today,
            consecutive_missed_days=consecutive,
            escalated=escalated,
        )

    async def _async_alert(self, senior_id: str, missed_today: int) -> None:
        """Request the self and family alerts; delivery failures are logged."""
        notifications = self.coordinator.notification_manager
        results = await asyncio.gather(
            notifications.async_fire_self_missed_check_in(senior_id, missed_today),
            notifications.async_fire_family_missed_check_in(senior_id, missed_today),
            return_exceptions=True,
        )
        for alert_class, result in zip(
            (const.ALERT_CLASS_SELF_MISSED, const.ALERT_CLASS_FAMILY_MISSED),
            results,
            strict=True,
        ):
            if isinstance(result, Exception):
                const.LOGGER.error(
                    "ERROR: Missed check-in alert '%s' for senior %s failed: %s",
                    alert_class,
                    senior_id,
                    result,
                )
