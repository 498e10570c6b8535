# File: button.py
"""Buttons for SafeCheck integration.

One "I'm OK" check-in button per senior. Pressing it records a check-in
with no wellness details, exactly like the record_check_in service.
"""

from __future__ import annotations

from typing import Any

from homeassistant.components.button import ButtonEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from . import const
from .coordinator import SafeCheckDataCoordinator
from .entity import SafeCheckCoordinatorEntity
from .helpers.entity_helpers import get_event_signal, get_senior_name

# Set to 1 (serialized) for action buttons that modify state
PARALLEL_UPDATES = 1


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up buttons for SafeCheck integration."""
    coordinator: SafeCheckDataCoordinator = hass.data[const.DOMAIN][entry.entry_id][
        const.COORDINATOR
    ]

    async_add_entities(
        SeniorCheckInButton(
            coordinator, entry, senior_id, get_senior_name(coordinator, senior_id)
        )
        for senior_id in coordinator.senior_ids
    )

    @callback
    def _on_senior_registered(payload: dict[str, Any]) -> None:
        senior_id = payload["senior_id"]
        async_add_entities(
            [
                SeniorCheckInButton(
                    coordinator,
                    entry,
                    senior_id,
                    get_senior_name(coordinator, senior_id),
                )
            ]
        )

    entry.async_on_unload(
        async_dispatcher_connect(
            hass,
            get_event_signal(entry.entry_id, const.SIGNAL_SUFFIX_SENIOR_REGISTERED),
            _on_senior_registered,
        )
    )


class SeniorCheckInButton(SafeCheckCoordinatorEntity, ButtonEntity):
    """Button recording an "I'm OK" check-in for a senior."""

    _attr_translation_key = const.TRANS_KEY_BUTTON_CHECK_IN
    _attr_icon = "mdi:hand-wave"

    def __init__(
        self,
        coordinator: SafeCheckDataCoordinator,
        entry: ConfigEntry,
        senior_id: str,
        senior_name: str,
    ) -> None:
        """Initialize the check-in button."""
        super().__init__(
            coordinator, entry, senior_id, senior_name, const.BUTTON_SUFFIX_CHECK_IN
        )

    async def async_press(self) -> None:
        """Handle the button press event."""
        try:
            record = await self.coordinator.checkin_manager.async_record_check_in(
                self._senior_id
            )
        except HomeAssistantError as err:
            const.LOGGER.error(
                "ERROR: Failed to record check-in for senior '%s': %s",
                self._senior_name,
                err,
            )
            raise
        const.LOGGER.info(
            "INFO: Check-in button pressed for senior '%s' (%s)",
            self._senior_name,
            record.id,
        )
