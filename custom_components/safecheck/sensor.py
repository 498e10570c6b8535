# File: sensor.py
"""Sensors for the SafeCheck integration.

Sensors Defined in This File (3), one set per senior:
01. SeniorStatusSensor - safe / running_late / sos_active
02. SeniorNextExpectedCheckInSensor - timestamp of the next expected check-in
03. SeniorCheckInStreakSensor - consecutive days with a check-in
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from . import const
from .coordinator import SafeCheckDataCoordinator
from .entity import SafeCheckCoordinatorEntity
from .helpers.entity_helpers import get_event_signal, get_senior_name
from .utils.dt_utils import dt_to_iso


def _senior_sensors(
    coordinator: SafeCheckDataCoordinator,
    entry: ConfigEntry,
    senior_id: str,
    senior_name: str,
) -> list[SensorEntity]:
    return [
        SeniorStatusSensor(coordinator, entry, senior_id, senior_name),
        SeniorNextExpectedCheckInSensor(coordinator, entry, senior_id, senior_name),
        SeniorCheckInStreakSensor(coordinator, entry, senior_id, senior_name),
    ]


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up sensors for SafeCheck integration."""
    coordinator: SafeCheckDataCoordinator = hass.data[const.DOMAIN][entry.entry_id][
        const.COORDINATOR
    ]

    entities: list[SensorEntity] = []
    for senior_id in coordinator.senior_ids:
        entities.extend(
            _senior_sensors(
                coordinator, entry, senior_id, get_senior_name(coordinator, senior_id)
            )
        )
    async_add_entities(entities)

    @callback
    def _on_senior_registered(payload: dict[str, Any]) -> None:
        senior_id = payload["senior_id"]
        async_add_entities(
            _senior_sensors(
                coordinator, entry, senior_id, get_senior_name(coordinator, senior_id)
            )
        )

    entry.async_on_unload(
        async_dispatcher_connect(
            hass,
            get_event_signal(entry.entry_id, const.SIGNAL_SUFFIX_SENIOR_REGISTERED),
            _on_senior_registered,
        )
    )


class SeniorStatusSensor(SafeCheckCoordinatorEntity, SensorEntity):
    """Sensor for a senior's derived check-in status.

    SOS overrides everything; vacation mode always reads safe. The schedule
    breakdown for today is exposed in attributes.
    """

    _attr_translation_key = const.TRANS_KEY_SENSOR_STATUS
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = const.STATUS_OPTIONS

    def __init__(
        self,
        coordinator: SafeCheckDataCoordinator,
        entry: ConfigEntry,
        senior_id: str,
        senior_name: str,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(
            coordinator, entry, senior_id, senior_name, const.SENSOR_SUFFIX_STATUS
        )

    @property
    def native_value(self) -> str | None:
        """Return the status string."""
        status = self.senior_status
        return status.status if status else None

    @property
    def icon(self) -> str:
        """Return an icon matching the status."""
        value = self.native_value
        if value == const.STATUS_SOS_ACTIVE:
            return "mdi:alarm-light"
        if value == const.STATUS_RUNNING_LATE:
            return "mdi:clock-alert-outline"
        return "mdi:shield-check"

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Expose today's schedule breakdown."""
        status = self.senior_status
        if status is None:
            return {const.ATTR_SENIOR_ID: self._senior_id}
        return {
            const.ATTR_SENIOR_ID: self._senior_id,
            const.ATTR_SCHEDULES: status.schedules,
            const.ATTR_COMPLETED_TODAY: status.completed_today,
            const.ATTR_PENDING: status.pending,
            const.ATTR_OVERDUE: status.overdue,
            const.ATTR_VACATION_MODE: status.vacation_mode,
            const.ATTR_LAST_CHECK_IN: dt_to_iso(status.last_check_in),
            const.ATTR_MISSED_TODAY: status.missed_check_ins_today,
        }


class SeniorNextExpectedCheckInSensor(SafeCheckCoordinatorEntity, SensorEntity):
    """Sensor for the next instant a check-in is expected (unknown on vacation)."""

    _attr_translation_key = const.TRANS_KEY_SENSOR_NEXT_EXPECTED
    _attr_device_class = SensorDeviceClass.TIMESTAMP
    _attr_icon = "mdi:calendar-clock"

    def __init__(
        self,
        coordinator: SafeCheckDataCoordinator,
        entry: ConfigEntry,
        senior_id: str,
        senior_name: str,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(
            coordinator, entry, senior_id, senior_name, const.SENSOR_SUFFIX_NEXT_EXPECTED
        )

    @property
    def native_value(self) -> datetime | None:
        """Return the next expected check-in."""
        status = self.senior_status
        return status.next_expected_check_in if status else None


class SeniorCheckInStreakSensor(SafeCheckCoordinatorEntity, SensorEntity):
    """Sensor for the senior's check-in streak in days.

    Shows 0 once a full local calendar day passed without a check-in, even
    before the next check-in resets the stored counter.
    """

    _attr_translation_key = const.TRANS_KEY_SENSOR_STREAK
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = const.UNIT_DAYS
    _attr_icon = "mdi:fire"

    def __init__(
        self,
        coordinator: SafeCheckDataCoordinator,
        entry: ConfigEntry,
        senior_id: str,
        senior_name: str,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(
            coordinator, entry, senior_id, senior_name, const.SENSOR_SUFFIX_STREAK
        )

    @property
    def native_value(self) -> int:
        """Return the displayed streak."""
        status = self.senior_status
        return status.current_streak if status else 0

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Expose when the streak started and the last check-in."""
        status = self.senior_status
        if status is None:
            return {}
        return {
            const.ATTR_STREAK_START_DATE: (
                status.streak_start_date.isoformat()
                if status.streak_start_date and status.current_streak
                else None
            ),
            const.ATTR_LAST_CHECK_IN: dt_to_iso(status.last_check_in),
        }
