"""Base manager class for SafeCheck managers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.dispatcher import (
    async_dispatcher_connect,
    async_dispatcher_send,
)

from .. import const
from ..helpers.entity_helpers import get_event_signal

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant

    from ..coordinator import SafeCheckDataCoordinator
    from ..store import SafeCheckStore


class BaseManager(ABC):
    """Base class for all SafeCheck managers with scoped event support.

    Provides:
    - Instance-scoped event emitting (emit)
    - Instance-scoped event listening (listen)
    - Automatic cleanup via coordinator's config_entry.async_on_unload

    Data Persistence:
    - All shared state goes through the coordinator's SafeCheckStore, either
      in a transaction or with an atomic field update. Managers never write
      documents they read outside a transaction.

    Subclasses must implement:
    - async_setup(): Subscribe to events, initialize state
    """

    def __init__(
        self, hass: HomeAssistant, coordinator: SafeCheckDataCoordinator
    ) -> None:
        """Initialize manager.

        Args:
            hass: Home Assistant instance
            coordinator: Parent coordinator managing this integration instance
        """
        self.hass = hass
        self.coordinator = coordinator
        self.entry_id = coordinator.config_entry.entry_id

    @property
    def store(self) -> SafeCheckStore:
        """Document store shared by all managers of this instance."""
        return self.coordinator.store

    def emit(self, suffix: str, **payload: Any) -> None:
        """Emit instance-scoped event to other managers.

        Args:
            suffix: Signal suffix constant (e.g., const.SIGNAL_SUFFIX_CHECK_IN_RECORDED)
            **payload: Event data dict passed to listeners (must be JSON-serializable)
        """
        signal = get_event_signal(self.entry_id, suffix)
        const.LOGGER.debug(
            "Emitting event '%s' for instance %s with payload keys: %s",
            suffix,
            self.entry_id,
            list(payload.keys()),
        )
        # Pass payload as single dict argument (dispatcher only supports *args)
        async_dispatcher_send(self.hass, signal, payload)

    def listen(self, suffix: str, callback: Callable[..., Any]) -> None:
        """Subscribe to instance-scoped event with automatic cleanup.

        The subscription is cleaned up when the config entry is unloaded.
        Callbacks receive the payload dict and may be sync or async.
        """
        signal = get_event_signal(self.entry_id, suffix)
        unsub = async_dispatcher_connect(self.hass, signal, callback)
        self.coordinator.config_entry.async_on_unload(unsub)
        const.LOGGER.debug(
            "Manager %s listening to event '%s' for instance %s",
            self.__class__.__name__,
            suffix,
            self.entry_id,
        )

    @abstractmethod
    async def async_setup(self) -> None:
        """Set up the manager (subscribe to events, initialize state).

        Called once during coordinator initialization.
        """
