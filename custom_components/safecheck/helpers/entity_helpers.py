# File: helpers/entity_helpers.py
"""Entity and instance helper functions for SafeCheck.

Functions that build instance-scoped signal names and resolve seniors for
services and platforms.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .. import const

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import SafeCheckDataCoordinator


# ==============================================================================
# Event Signal Helpers (Manager Communication)
# ==============================================================================


def get_event_signal(entry_id: str, suffix: str) -> str:
    """Build instance-scoped event signal name for dispatcher.

    Format: 'safecheck_{entry_id}_{suffix}'

    Args:
        entry_id: ConfigEntry.entry_id from coordinator
        suffix: Signal suffix constant from const.py (e.g., SIGNAL_SUFFIX_CHECK_IN_RECORDED)
    """
    return f"{const.DOMAIN}_{entry_id}_{suffix}"


# ==============================================================================
# Lookups
# ==============================================================================


def get_first_safecheck_entry(hass: HomeAssistant) -> str | None:
    """Get the entry_id of the first loaded SafeCheck config entry."""
    for entry in hass.config_entries.async_entries(const.DOMAIN):
        if entry.state.name == "LOADED":
            return entry.entry_id
    return None


def get_senior_id_by_name(
    coordinator: SafeCheckDataCoordinator, senior_name: str
) -> str | None:
    """Retrieve the senior_id for a display name (case-insensitive)."""
    wanted = senior_name.strip().casefold()
    for senior_id, profile in coordinator.profiles.items():
        if str(profile.get(const.DATA_PROFILE_NAME, "")).casefold() == wanted:
            return senior_id
    return None


def get_senior_name(coordinator: SafeCheckDataCoordinator, senior_id: str) -> str:
    """Retrieve the display name of a senior, or the generic subject name."""
    profile = coordinator.profiles.get(senior_id) or {}
    return profile.get(const.DATA_PROFILE_NAME) or const.DEFAULT_SUBJECT_NAME
