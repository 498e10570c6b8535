# File: helpers/device_helpers.py
"""Device registry helper functions for SafeCheck.

Functions that construct DeviceInfo objects for Home Assistant's device registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.helpers.device_registry import DeviceEntryType, DeviceInfo

from .. import const

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry


def create_senior_device_info(
    senior_id: str, senior_name: str, config_entry: ConfigEntry
) -> DeviceInfo:
    """Create device info for a senior profile.

    Args:
        senior_id: Internal ID (UUID) of the senior
        senior_name: Display name of the senior
        config_entry: Config entry for this integration instance
    """
    return DeviceInfo(
        identifiers={(const.DOMAIN, senior_id)},
        name=f"{senior_name} ({config_entry.title})",
        manufacturer=const.SAFECHECK_TITLE,
        model="Senior Profile",
        entry_type=DeviceEntryType.SERVICE,
    )
