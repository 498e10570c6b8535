# File: coordinator.py
"""Coordinator for the SafeCheck integration.

Owns the document store and the managers, and publishes a derived status
snapshot per senior to the entities. The snapshot is refreshed periodically,
at local midnight (daily reset of completed schedules) and whenever a senior
document changes.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import CALLBACK_TYPE, HomeAssistant, callback
from homeassistant.helpers.event import async_track_time_change
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from . import const
from .engines.status_engine import SeniorStatus, StatusEngine
from .managers import (
    CheckInManager,
    MonitorManager,
    NotificationManager,
    ScheduleManager,
)
from .managers.checkin_manager import profile_path, senior_state_path
from .store import CooldownLedger, SafeCheckStore
from .utils.dt_utils import dt_now_utc


class SafeCheckDataCoordinator(DataUpdateCoordinator[dict[str, SeniorStatus]]):
    """Coordinator for SafeCheck integration.

    `data` maps senior id to the SeniorStatus derived at the last refresh.
    """

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        store: SafeCheckStore,
        ledger: CooldownLedger,
    ) -> None:
        """Initialize the SafeCheckDataCoordinator."""
        super().__init__(
            hass,
            const.LOGGER,
            config_entry=config_entry,
            name=f"{const.DOMAIN}{const.COORDINATOR_SUFFIX}",
            update_interval=timedelta(minutes=const.DEFAULT_UPDATE_INTERVAL),
        )
        self.store = store
        self.ledger = ledger
        self._unsub_midnight: CALLBACK_TYPE | None = None
        self._unsub_documents: dict[str, CALLBACK_TYPE] = {}

        self.checkin_manager = CheckInManager(hass, self)
        self.schedule_manager = ScheduleManager(hass, self)
        self.notification_manager = NotificationManager(hass, self, ledger)
        self.monitor_manager = MonitorManager(hass, self)

    # -------------------------------------------------------------------------------------
    # Read-only views over the store
    # -------------------------------------------------------------------------------------

    @property
    def senior_ids(self) -> list[str]:
        """Registered senior ids, in registration order."""
        registry = self.store.get_document(const.DOC_SENIOR_REGISTRY) or {}
        return list(registry.get(const.DATA_REGISTRY_SENIOR_IDS, []))

    @property
    def profiles(self) -> dict[str, dict[str, Any]]:
        """Senior id -> profile document."""
        return {
            senior_id: self.store.get_document(profile_path(senior_id)) or {}
            for senior_id in self.senior_ids
        }

    @property
    def senior_states(self) -> dict[str, dict[str, Any]]:
        """Senior id -> state document (seniors without one are omitted)."""
        states: dict[str, dict[str, Any]] = {}
        for senior_id in self.senior_ids:
            state = self.store.get_document(senior_state_path(senior_id))
            if state is not None:
                states[senior_id] = state
        return states

    @property
    def family_notify_service(self) -> str | None:
        """Notify service receiving family alerts."""
        return self.config_entry.data.get(const.CONF_FAMILY_NOTIFY_SERVICE) or None

    def get_senior_notify_service(self, senior_id: str) -> str | None:
        """Notify service reaching the senior, if one is configured."""
        profile = self.store.get_document(profile_path(senior_id)) or {}
        return profile.get(const.DATA_PROFILE_NOTIFY_SERVICE) or None

    # -------------------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------------------

    async def async_config_entry_first_refresh(self) -> None:
        """Register the configured senior, start managers, then refresh."""
        senior_name = self.config_entry.data.get(const.CONF_SENIOR_NAME)
        if senior_name:
            await self.checkin_manager.async_register_senior(
                senior_name,
                self.config_entry.data.get(const.CONF_SENIOR_NOTIFY_SERVICE),
            )

        await self.notification_manager.async_setup()
        await self.checkin_manager.async_setup()
        await self.schedule_manager.async_setup()
        await self.monitor_manager.async_setup()

        self._subscribe_documents()
        self._unsub_midnight = async_track_time_change(
            self.hass, self._on_midnight, hour=0, minute=0, second=0
        )
        self.config_entry.async_on_unload(self.async_shutdown_listeners)

        await super().async_config_entry_first_refresh()

    @callback
    def async_shutdown_listeners(self) -> None:
        """Cancel the midnight timer and document subscriptions."""
        if self._unsub_midnight is not None:
            self._unsub_midnight()
            self._unsub_midnight = None
        for unsub in self._unsub_documents.values():
            unsub()
        self._unsub_documents.clear()

    def _subscribe_documents(self) -> None:
        """Refresh statuses whenever a senior or the registry changes."""
        paths = [const.DOC_SENIOR_REGISTRY]
        for senior_id in self.senior_ids:
            paths.extend((senior_state_path(senior_id), profile_path(senior_id)))
        for path in paths:
            if path not in self._unsub_documents:
                self._unsub_documents[path] = self.store.async_subscribe(
                    path, self._on_document_changed
                )

    @callback
    def _on_document_changed(self, path: str, _document: dict[str, Any] | None) -> None:
        if path == const.DOC_SENIOR_REGISTRY:
            self._subscribe_documents()
        self.async_update_statuses()

    @callback
    def _on_midnight(self, _now: datetime) -> None:
        const.LOGGER.debug("DEBUG: Midnight rollover, refreshing senior statuses")
        self.async_update_statuses()

    # -------------------------------------------------------------------------------------
    # Status derivation
    # -------------------------------------------------------------------------------------

    def derive_statuses(self, now: datetime | None = None) -> dict[str, SeniorStatus]:
        """Derive the status snapshot of every senior at `now`."""
        now = now or dt_now_utc()
        return {
            senior_id: StatusEngine.derive_status(state, now)
            for senior_id, state in self.senior_states.items()
        }

    @callback
    def async_update_statuses(self) -> None:
        """Push a freshly derived snapshot to listeners."""
        self.async_set_updated_data(self.derive_statuses())

    async def _async_update_data(self) -> dict[str, SeniorStatus]:
        """Periodic update."""
        try:
            return self.derive_statuses()
        except (KeyError, TypeError, ValueError) as err:
            raise UpdateFailed(f"Error updating SafeCheck data: {err}") from err
