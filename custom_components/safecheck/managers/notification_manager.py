# File: notification_manager.py
"""Notification Manager for SafeCheck integration.

This manager decides whether a local alert fires and delivers it:
- Missed check-in reminders to the senior
- Missed check-in alerts to the family
- SOS alerts to the family (critical priority)

Alerts can be triggered from several paths for the same underlying event: the
deadline timer, the state change feed, and an external push relay. Duplicates
are suppressed by a persisted cooldown ledger keyed by alert class and subject,
not by mutual exclusion, so the decision survives restarts:
- 30 s cooldown for missed check-in alerts, 5 min for SOS
- an alert is skipped when the external push channel delivered the same class
  for the same subject within the last 5 s
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from homeassistant.components import persistent_notification
from homeassistant.core import Event, callback

from .. import const
from ..exceptions import InvalidArgumentError
from ..helpers.entity_helpers import get_senior_name
from ..utils.dt_utils import dt_now_utc
from .base_manager import BaseManager
from .checkin_manager import senior_state_path

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import SafeCheckDataCoordinator
    from ..store import CooldownLedger


# =============================================================================
# Module-level helpers for testability
# =============================================================================


async def async_send_notification(
    hass: HomeAssistant,
    service: str,
    title: str,
    message: str,
    extra_data: dict[str, Any] | None = None,
) -> None:
    """Send a notification via a Home Assistant notify service.

    Args:
        hass: Home Assistant instance
        service: "notify.service_name" or just the service name
        title: Notification title
        message: Notification message
        extra_data: Optional data (tag, priority, ...)
    """
    if "." in service:
        domain, svc = service.split(".", 1)
    else:
        domain = const.NOTIFY_DOMAIN
        svc = service

    payload: dict[str, Any] = {
        const.NOTIFY_TITLE: title,
        const.NOTIFY_MESSAGE: message,
    }
    if extra_data:
        payload[const.NOTIFY_DATA] = dict(extra_data)

    const.LOGGER.debug(
        "async_send_notification: %s.%s - title='%s', message='%s'",
        domain,
        svc,
        title,
        message,
    )
    await hass.services.async_call(domain, svc, payload, blocking=True)


def build_notification_tag(alert_class: str, subject_id: str) -> str:
    """Build the tag that lets a later alert replace or clear an earlier one.

    Identifiers are truncated to 8 characters to stay under the 64-byte
    collapse-id limit of mobile push services.
    """
    return f"{const.DOMAIN}-{alert_class}-{subject_id[:8]}"


class NotificationManager(BaseManager):
    """Manager that gates and delivers SafeCheck alerts.

    The cooldown ledger and the clock are injected so the gate can be driven
    deterministically in tests. Until the ledger has loaded the manager is not
    initialized and every fire request is a logged no-op.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: SafeCheckDataCoordinator,
        ledger: CooldownLedger,
        clock: Callable[[], datetime] = dt_now_utc,
    ) -> None:
        """Initialize the notification manager."""
        super().__init__(hass, coordinator)
        self._ledger = ledger
        self._clock = clock
        self._initialized = False

    @property
    def initialized(self) -> bool:
        """True once the cooldown ledger has been loaded."""
        return self._initialized

    async def async_setup(self) -> None:
        """Load persisted cooldowns and subscribe to domain events."""
        if not self._ledger.loaded:
            await self._ledger.async_load()
        self._initialized = True

        self.listen(const.SIGNAL_SUFFIX_CHECK_IN_RECORDED, self._on_check_in_recorded)
        self.listen(const.SIGNAL_SUFFIX_SOS_CHANGED, self._on_sos_changed)
        self.coordinator.config_entry.async_on_unload(
            self.hass.bus.async_listen(const.EVENT_PUSH_RECEIVED, self._on_push_event)
        )

    # =========================================================================
    # Cooldown ledger keys
    # =========================================================================

    @staticmethod
    def cooldown_key(alert_class: str, subject_id: str) -> str:
        """Ledger key of an alert class for one subject."""
        return f"{alert_class}_{subject_id}"

    @staticmethod
    def external_push_key(alert_class: str, subject_id: str) -> str:
        """Ledger key recording the last external push of a class for a subject."""
        return f"{const.ALERT_CLASS_EXTERNAL_PUSH}_{alert_class}_{subject_id}"

    def _within(self, key: str, window_seconds: int, now: datetime) -> bool:
        last = self._ledger.last_fired(key)
        if last is None:
            return False
        return timedelta(0) <= now - last < timedelta(seconds=window_seconds)

    # =========================================================================
    # Gate
    # =========================================================================

    def _check_gate(
        self,
        alert_class: str,
        subject_id: str,
        now: datetime,
        *,
        count: int = 1,
        vacation_mode: bool = False,
        cooldown_seconds: int = const.NOTIFICATION_COOLDOWN_SECONDS,
    ) -> str | None:
        """Return a skip reason, or None when the alert may fire."""
        if not subject_id:
            raise InvalidArgumentError(const.ERROR_EMPTY_SUBJECT_ID)
        if count < 1:
            return const.FIRE_RESULT_SKIPPED_COUNT
        if not self._initialized:
            return const.FIRE_RESULT_SKIPPED_NOT_INITIALIZED
        if vacation_mode:
            return const.FIRE_RESULT_SKIPPED_VACATION
        if self._within(
            self.cooldown_key(alert_class, subject_id), cooldown_seconds, now
        ):
            return const.FIRE_RESULT_SKIPPED_COOLDOWN
        if self._within(
            self.external_push_key(alert_class, subject_id),
            const.EXTERNAL_PUSH_DEDUP_SECONDS,
            now,
        ):
            return const.FIRE_RESULT_SKIPPED_EXTERNAL_PUSH
        return None

    async def _async_fire(
        self,
        alert_class: str,
        subject_id: str,
        service: str | None,
        title: str,
        message: str,
        *,
        count: int = 1,
        vacation_mode: bool = False,
        cooldown_seconds: int = const.NOTIFICATION_COOLDOWN_SECONDS,
        priority: str = const.PRIORITY_NORMAL,
    ) -> str:
        """Run the gate, deliver, and persist the cooldown on success."""
        now = self._clock()
        skip_reason = self._check_gate(
            alert_class,
            subject_id,
            now,
            count=count,
            vacation_mode=self._vacation_mode(subject_id, vacation_mode),
            cooldown_seconds=cooldown_seconds,
        )
        if skip_reason is not None:
            const.LOGGER.debug(
                "DEBUG: Alert '%s' for '%s' not sent: %s",
                alert_class,
                subject_id,
                skip_reason,
            )
            return skip_reason

        # Reserve the slot before awaiting so a concurrent trigger sees it
        key = self.cooldown_key(alert_class, subject_id)
        previous = self._ledger.reserve(key, now)
        try:
            await self._async_deliver(
                service,
                title,
                message,
                build_notification_tag(alert_class, subject_id),
                priority,
            )
        except Exception as err:  # pylint: disable=broad-exception-caught
            # Any delivery failure frees the slot; the error still propagates
            self._ledger.release(key, previous)
            const.LOGGER.error(
                "ERROR: Failed to deliver alert '%s' for '%s': %s",
                alert_class,
                subject_id,
                err,
            )
            raise

        await self._ledger.async_save()
        const.LOGGER.info(
            "INFO: Sent alert '%s' for subject '%s'", alert_class, subject_id
        )
        return const.FIRE_RESULT_SENT

    async def _async_deliver(
        self,
        service: str | None,
        title: str,
        message: str,
        tag: str,
        priority: str,
    ) -> None:
        """Deliver through a notify service, or as a persistent notification."""
        if service:
            domain, _sep, svc = service.partition(".")
            if not _sep:
                domain, svc = const.NOTIFY_DOMAIN, service
            if self.hass.services.has_service(domain, svc):
                extra_data: dict[str, Any] = {const.NOTIFY_TAG: tag}
                if priority == const.PRIORITY_CRITICAL:
                    extra_data[const.NOTIFY_PRIORITY] = "high"
                    extra_data[const.NOTIFY_TTL] = 0
                await async_send_notification(
                    self.hass, service, title, message, extra_data
                )
                return
            const.LOGGER.warning(
                "WARNING: Notification service '%s' not available, "
                "falling back to a persistent notification",
                service,
            )
        persistent_notification.async_create(
            self.hass, message, title=title, notification_id=tag
        )

    # =========================================================================
    # Public fire API
    # =========================================================================

    def _vacation_mode(self, subject_id: str, override: bool | None) -> bool:
        if override is not None:
            return override
        state = self.store.get_document(senior_state_path(subject_id)) or {}
        return bool(state.get(const.DATA_SENIOR_VACATION_MODE, False))

    async def async_fire_self_missed_check_in(
        self, subject_id: str, count: int, vacation_mode: bool | None = None
    ) -> str:
        """Remind the senior about `count` missed check-ins today."""
        if count > 1:
            title = const.TITLE_MULTIPLE_MISSED
            message = const.MSG_SELF_MISSED_MULTIPLE_FMT.format(count=count)
        else:
            title = const.TITLE_CHECK_IN_REMINDER
            message = const.MSG_SELF_MISSED_SINGLE
        return await self._async_fire(
            const.ALERT_CLASS_SELF_MISSED,
            subject_id,
            self.coordinator.get_senior_notify_service(subject_id),
            title,
            message,
            count=count,
            vacation_mode=self._vacation_mode(subject_id, vacation_mode),
        )

    async def async_fire_family_missed_check_in(
        self, subject_id: str, count: int, vacation_mode: bool | None = None
    ) -> str:
        """Alert the family that the senior missed `count` check-ins."""
        name = get_senior_name(self.coordinator, subject_id)
        if count > 1:
            message = const.MSG_FAMILY_MISSED_MULTIPLE_FMT.format(
                name=name, count=count
            )
        else:
            message = const.MSG_FAMILY_MISSED_SINGLE_FMT.format(name=name)
        return await self._async_fire(
            const.ALERT_CLASS_FAMILY_MISSED,
            subject_id,
            self.coordinator.family_notify_service,
            const.TITLE_FAMILY_MISSED,
            message,
            count=count,
            vacation_mode=self._vacation_mode(subject_id, vacation_mode),
        )

    async def async_fire_sos(self, subject_id: str) -> str:
        """Alert the family of an SOS. Ignores vacation mode."""
        name = get_senior_name(self.coordinator, subject_id)
        return await self._async_fire(
            const.ALERT_CLASS_SOS,
            subject_id,
            self.coordinator.family_notify_service,
            const.TITLE_SOS,
            const.MSG_SOS_FMT.format(name=name),
            cooldown_seconds=const.SOS_NOTIFICATION_COOLDOWN_SECONDS,
            priority=const.PRIORITY_CRITICAL,
        )

    async def async_record_external_push(
        self, alert_class: str, subject_id: str
    ) -> None:
        """Record that the external push channel delivered an alert."""
        if not subject_id:
            raise InvalidArgumentError(const.ERROR_EMPTY_SUBJECT_ID)
        key = self.external_push_key(alert_class, subject_id)
        self._ledger.reserve(key, self._clock())
        await self._ledger.async_save()
        const.LOGGER.debug(
            "DEBUG: External push '%s' recorded for '%s'", alert_class, subject_id
        )

    async def async_clear_missed_alert(self, subject_id: str) -> None:
        """Dismiss the senior's missed check-in reminder after a check-in."""
        tag = build_notification_tag(const.ALERT_CLASS_SELF_MISSED, subject_id)
        persistent_notification.async_dismiss(self.hass, tag)
        service = self.coordinator.get_senior_notify_service(subject_id)
        if not service:
            return
        domain, _sep, svc = service.partition(".")
        if not _sep:
            domain, svc = const.NOTIFY_DOMAIN, service
        if not self.hass.services.has_service(domain, svc):
            return
        try:
            await async_send_notification(
                self.hass, service, "", const.NOTIFY_CLEAR, {const.NOTIFY_TAG: tag}
            )
        except Exception as err:  # pylint: disable=broad-exception-caught
            # Runs from a dispatcher listener task; a failed clear is only logged
            const.LOGGER.warning(
                "WARNING: Failed to clear missed check-in alert for '%s': %s",
                subject_id,
                err,
            )

    # =========================================================================
    # Event handlers
    # =========================================================================

    async def _on_check_in_recorded(self, payload: dict[str, Any]) -> None:
        await self.async_clear_missed_alert(payload["senior_id"])

    async def _on_sos_changed(self, payload: dict[str, Any]) -> None:
        if payload.get("active"):
            await self.async_fire_sos(payload["senior_id"])

    @callback
    def _on_push_event(self, event: Event) -> None:
        alert_class = event.data.get(const.ATTR_ALERT_CLASS)
        subject_id = event.data.get(const.ATTR_SUBJECT_ID)
        if alert_class not in const.ALERT_CLASSES or not subject_id:
            const.LOGGER.warning(
                "WARNING: Ignoring malformed push event: %s", dict(event.data)
            )
            return
        self.hass.async_create_task(
            self.async_record_external_push(alert_class, subject_id)
        )
