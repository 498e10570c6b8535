"""Base entity classes for SafeCheck integration."""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from . import const
from .coordinator import SafeCheckDataCoordinator
from .engines.status_engine import SeniorStatus
from .helpers.device_helpers import create_senior_device_info


class SafeCheckCoordinatorEntity(CoordinatorEntity[SafeCheckDataCoordinator]):
    """Base entity class for SafeCheck entities with typed coordinator access.

    Every SafeCheck entity belongs to one senior and is grouped under that
    senior's device.
    """

    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: SafeCheckDataCoordinator,
        entry: ConfigEntry,
        senior_id: str,
        senior_name: str,
        unique_suffix: str,
    ) -> None:
        """Initialize the entity for one senior."""
        super().__init__(coordinator)
        self._entry = entry
        self._senior_id = senior_id
        self._senior_name = senior_name
        self._attr_unique_id = f"{entry.entry_id}_{senior_id}{unique_suffix}"
        self._attr_translation_placeholders = {
            const.TRANS_KEY_ATTR_SENIOR_NAME: senior_name,
        }
        self._attr_device_info = create_senior_device_info(
            senior_id, senior_name, entry
        )

    @property
    def coordinator(self) -> SafeCheckDataCoordinator:
        """Return typed coordinator.

        Uses object.__getattribute__ to access the private _coordinator attribute
        set by the parent CoordinatorEntity class.
        """
        return object.__getattribute__(self, "_coordinator")

    @coordinator.setter
    def coordinator(self, value: SafeCheckDataCoordinator) -> None:
        """Set coordinator with proper typing."""
        object.__setattr__(self, "_coordinator", value)

    @property
    def senior_status(self) -> SeniorStatus | None:
        """Status snapshot of this entity's senior from the last refresh."""
        return (self.coordinator.data or {}).get(self._senior_id)
