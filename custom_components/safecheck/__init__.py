# File: __init__.py
"""Initialization file for the SafeCheck integration.

Handles setting up the integration, including loading configuration entries,
initializing the document store and cooldown ledger, and preparing the
coordinator and its managers.

Key Features:
- Config entry setup and unload support.
- Coordinator initialization for status snapshots.
- Storage management for persistent data handling.
"""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady

from . import const
from .coordinator import SafeCheckDataCoordinator
from .exceptions import StoreError
from .services import async_setup_services, async_unload_services
from .store import CooldownLedger, SafeCheckStore


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info("INFO: Starting setup for SafeCheck entry: %s", entry.entry_id)

    const.set_default_timezone(hass)

    store = SafeCheckStore(hass, entry.entry_id, const.STORAGE_KEY)
    await store.async_initialize()
    ledger = CooldownLedger(hass, const.STORAGE_KEY_COOLDOWNS)

    coordinator = SafeCheckDataCoordinator(hass, entry, store, ledger)

    # Entities and services look the coordinator up while the first refresh runs
    hass.data.setdefault(const.DOMAIN, {})[entry.entry_id] = {
        const.COORDINATOR: coordinator,
        const.STORE: store,
    }

    try:
        await coordinator.async_config_entry_first_refresh()
    except StoreError as err:
        hass.data[const.DOMAIN].pop(entry.entry_id, None)
        const.LOGGER.error("ERROR: Failed to initialize SafeCheck data: %s", err)
        raise ConfigEntryNotReady(str(err)) from err
    except ConfigEntryNotReady:
        hass.data[const.DOMAIN].pop(entry.entry_id, None)
        raise

    async_setup_services(hass)

    await hass.config_entries.async_forward_entry_setups(entry, const.PLATFORMS)

    const.LOGGER.info("INFO: SafeCheck setup complete for entry: %s", entry.entry_id)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("INFO: Unloading SafeCheck entry: %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, const.PLATFORMS)

    if unload_ok:
        hass.data[const.DOMAIN].pop(entry.entry_id)

        await async_unload_services(hass)

    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle removal of a config entry."""
    const.LOGGER.info("INFO: Removing SafeCheck entry: %s", entry.entry_id)

    store = SafeCheckStore(hass, entry.entry_id, const.STORAGE_KEY)
    await store.async_delete_storage()
    await CooldownLedger(hass, const.STORAGE_KEY_COOLDOWNS).async_remove()

    const.LOGGER.info("INFO: SafeCheck entry data cleared: %s", entry.entry_id)
