"""Home Assistant-bound helper functions for SafeCheck.

This module contains functions that REQUIRE Home Assistant dependencies.

NOTE: Functions that need `hass` object belong here, NOT in utils/.

Submodules:
    - entity_helpers: Instance-scoped signals, senior lookups
    - device_helpers: DeviceInfo construction
    - retry_helpers: Bounded retry of transient store failures

Usage:
    from .helpers.entity_helpers import get_event_signal
    from .helpers.retry_helpers import async_retry_transient
"""

from . import device_helpers, entity_helpers, retry_helpers

__all__ = ["device_helpers", "entity_helpers", "retry_helpers"]
