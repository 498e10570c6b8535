"""Diagnostics support for SafeCheck integration.

The config entry diagnostics return the raw document store, identical to the
safecheck_data storage file, plus the notification cooldown ledger.
"""

from __future__ import annotations

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.device_registry import DeviceEntry

from . import const
from .coordinator import SafeCheckDataCoordinator
from .managers.checkin_manager import profile_path, senior_state_path


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator: SafeCheckDataCoordinator = hass.data[const.DOMAIN][entry.entry_id][
        const.COORDINATOR
    ]
    return {
        const.STORE: coordinator.store.data,
        const.DATA_COOLDOWNS: dict(coordinator.ledger.entries),
    }


async def async_get_device_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry, device: DeviceEntry
) -> dict[str, Any]:
    """Return diagnostics for one senior's device."""
    coordinator: SafeCheckDataCoordinator = hass.data[const.DOMAIN][entry.entry_id][
        const.COORDINATOR
    ]

    senior_id = None
    for identifier in device.identifiers:
        if identifier[0] == const.DOMAIN:
            senior_id = identifier[1]
            break

    if not senior_id:
        return {"error": "Could not determine senior_id from device identifiers"}

    state = coordinator.store.get_document(senior_state_path(senior_id))
    if state is None:
        return {"error": f"Senior state not found for senior_id: {senior_id}"}

    return {
        "senior_id": senior_id,
        "profile": coordinator.store.get_document(profile_path(senior_id)),
        "senior_state": state,
    }
