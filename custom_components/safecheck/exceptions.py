"""Exceptions raised by the SafeCheck integration.

All derive from HomeAssistantError so service calls surface them to the caller.
Store failures are split into transient (worth retrying) and permanent.
"""

from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError


class SafeCheckError(HomeAssistantError):
    """Base error for SafeCheck."""


class InvalidArgumentError(SafeCheckError):
    """Input rejected before any I/O (empty id, unknown senior, bad schedule)."""


class StoreError(SafeCheckError):
    """Base error for document store failures."""


class TransientStoreError(StoreError):
    """Store failure that may succeed on retry (timeout, unavailable disk)."""


class PermanentStoreError(StoreError):
    """Store failure that will not succeed on retry."""


class StoreContentionError(PermanentStoreError):
    """Transaction kept conflicting with concurrent writers and was abandoned."""


class TransactionStateError(PermanentStoreError):
    """Transaction used incorrectly (read after write, use after commit)."""
