# File: store.py
"""Handles persistent data storage for the SafeCheck integration.

Uses Home Assistant's Storage helper to persist a small document database:
every piece of shared state lives in a JSON document addressed by a
slash-separated path (``users/{uid}/data/senior_state``,
``users/{uid}/check_ins/{id}``).

On top of the raw storage this module provides:
- Optimistic, serializable multi-document transactions (`async_run_transaction`)
- Atomic field updates with set operations (`ArrayUnion`, `ArrayRemove`,
  `DELETE_FIELD`, `SERVER_TIMESTAMP`) that never need a client-side
  read-modify-write
- A per-document change feed delivered through the HA dispatcher
- Range queries over a collection
- `CooldownLedger`: the separately persisted notification cooldown timestamps
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import copy
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, TypeVar
import uuid

from homeassistant.core import callback
from homeassistant.helpers.dispatcher import (
    async_dispatcher_connect,
    async_dispatcher_send,
)
from homeassistant.helpers.storage import Store
from homeassistant.util.file import WriteError
from homeassistant.util.json import SerializationError

from . import const
from .exceptions import (
    PermanentStoreError,
    StoreContentionError,
    TransactionStateError,
    TransientStoreError,
)
from .utils.dt_utils import dt_now_utc, dt_to_iso, dt_to_utc

if TYPE_CHECKING:
    from homeassistant.core import CALLBACK_TYPE, HomeAssistant

_T = TypeVar("_T")

DocumentCallback = Callable[[str, dict[str, Any] | None], Any]


# ==============================================================================
# Field transforms
# ==============================================================================


@dataclass(frozen=True)
class ArrayUnion:
    """Add values to a list field, skipping ones already present."""

    values: tuple[Any, ...]

    def __init__(self, *values: Any) -> None:
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class ArrayRemove:
    """Remove every occurrence of the given values from a list field."""

    values: tuple[Any, ...]

    def __init__(self, *values: Any) -> None:
        object.__setattr__(self, "values", tuple(values))


class _FieldSentinel:
    """Marker value resolved when a write is committed."""

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


DELETE_FIELD = _FieldSentinel("DELETE_FIELD")
SERVER_TIMESTAMP = _FieldSentinel("SERVER_TIMESTAMP")


def apply_field_transforms(
    current: dict[str, Any] | None, fields: dict[str, Any], commit_time: str
) -> dict[str, Any]:
    """Return a new document with `fields` merged into `current`.

    Args:
        current: Existing document, or None when creating
        fields: Plain values or ArrayUnion / ArrayRemove / DELETE_FIELD /
                SERVER_TIMESTAMP transforms
        commit_time: ISO instant substituted for SERVER_TIMESTAMP
    """
    result = copy.deepcopy(current) if current else {}
    for key, value in fields.items():
        if value is DELETE_FIELD:
            result.pop(key, None)
        elif value is SERVER_TIMESTAMP:
            result[key] = commit_time
        elif isinstance(value, ArrayUnion):
            existing = list(result.get(key) or [])
            existing.extend(v for v in value.values if v not in existing)
            result[key] = existing
        elif isinstance(value, ArrayRemove):
            result[key] = [v for v in result.get(key) or [] if v not in value.values]
        else:
            result[key] = copy.deepcopy(value)
    return result


def collection_of(path: str) -> str:
    """Return the collection part of a document path."""
    return path.rsplit("/", 1)[0]


# ==============================================================================
# Transaction
# ==============================================================================


@dataclass
class _PendingWrite:
    fields: dict[str, Any] | None
    merge: bool


class Transaction:
    """A single attempt of a read-then-write transaction.

    Reads are recorded with the version they observed; all reads must happen
    before the first write. Writes are buffered and applied atomically on
    commit only if no document read here changed in the meantime.
    """

    def __init__(self, store: SafeCheckStore) -> None:
        """Initialize the transaction against the store's committed state."""
        self._store = store
        self._read_versions: dict[str, int] = {}
        self._writes: dict[str, _PendingWrite] = {}
        self._closed = False

    @property
    def read_versions(self) -> dict[str, int]:
        """Versions of every document read by this transaction."""
        return self._read_versions

    @property
    def writes(self) -> dict[str, _PendingWrite]:
        """Buffered writes, keyed by document path."""
        return self._writes

    def _check_open(self) -> None:
        if self._closed:
            raise TransactionStateError("Transaction already finished")

    def get(self, path: str) -> dict[str, Any] | None:
        """Read a document, recording its version for conflict detection."""
        self._check_open()
        if self._writes:
            raise TransactionStateError(const.ERROR_TRANSACTION_READ_AFTER_WRITE)
        self._read_versions[path] = self._store.version_of(path)
        return self._store.get_document(path)

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        """Create or replace a document (or merge fields into it)."""
        self._check_open()
        if merge and path in self._writes:
            previous = self._writes[path]
            combined = dict(previous.fields or {})
            combined.update(data)
            self._writes[path] = _PendingWrite(combined, previous.merge)
            return
        self._writes[path] = _PendingWrite(dict(data), merge)

    def update(self, path: str, fields: dict[str, Any]) -> None:
        """Merge fields (and field transforms) into a document."""
        self.set(path, fields, merge=True)

    def delete(self, path: str) -> None:
        """Delete a document."""
        self._check_open()
        self._writes[path] = _PendingWrite(None, False)

    @staticmethod
    def new_id() -> str:
        """Return a fresh document id."""
        return uuid.uuid4().hex

    def close(self) -> None:
        """Mark the attempt as finished."""
        self._closed = True


# ==============================================================================
# Store
# ==============================================================================


class DocumentStorage(Store[dict[str, Any]]):
    """Home Assistant Store whose save reports write failures to the caller.

    `Store.async_save` logs `WriteError` and `SerializationError` and returns
    normally, so a full disk would look like a successful commit.
    """

    async def async_save_checked(self, data: dict[str, Any]) -> None:
        """Write `data` now, raising WriteError, SerializationError or OSError."""
        async with self._write_lock:
            await self._async_write_data(
                self.path,
                {
                    "version": self.version,
                    "minor_version": self.minor_version,
                    "key": self.key,
                    "data": data,
                },
            )


class SafeCheckStore:
    """Transactional document store persisted through Home Assistant's Store.

    Committed documents are held in memory; every commit writes the full
    snapshot to disk before it becomes visible. A commit that cannot be
    persisted is discarded and surfaces as a TransientStoreError (disk or
    timeout) or a PermanentStoreError (data JSON cannot encode).
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry_id: str,
        storage_key: str = const.STORAGE_KEY,
        clock: Callable[[], datetime] = dt_now_utc,
    ) -> None:
        """Initialize the store.

        Args:
            hass: Home Assistant core object.
            entry_id: Config entry id, used to scope change feed signals.
            storage_key: Key to identify storage location.
            clock: Source of commit timestamps (SERVER_TIMESTAMP).
        """
        self.hass = hass
        self.entry_id = entry_id
        self._store = DocumentStorage(hass, const.STORAGE_VERSION, storage_key)
        self._clock = clock
        self._data: dict[str, Any] = SafeCheckStore.get_default_structure()
        self._versions: dict[str, int] = {}
        self._sequence = 0
        self._lock = asyncio.Lock()

    @staticmethod
    def get_default_structure() -> dict[str, Any]:
        """Return canonical empty data structure for fresh installations."""
        return {
            const.DATA_META: {
                const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION,
                const.DATA_META_SAVED_AT: None,
            },
            const.DATA_DOCUMENTS: {},
        }

    async def async_initialize(self) -> None:
        """Load data from storage during startup.

        If no data exists, initializes with an empty structure.
        """
        const.LOGGER.debug("DEBUG: SafeCheckStore: Loading data from storage")
        existing_data = await self._store.async_load()

        if existing_data is None:
            const.LOGGER.info("INFO: No existing storage found. Initializing new data")
            self._data = SafeCheckStore.get_default_structure()
        else:
            self._data = existing_data
            self._data.setdefault(const.DATA_DOCUMENTS, {})
            const.LOGGER.debug(
                "DEBUG: Loaded existing data from storage: %s documents",
                len(self._data[const.DATA_DOCUMENTS]),
            )

    @property
    def data(self) -> dict[str, Any]:
        """Retrieve the in-memory data cache."""
        return self._data

    @property
    def _documents(self) -> dict[str, dict[str, Any]]:
        return self._data[const.DATA_DOCUMENTS]

    def get_storage_path(self) -> str:
        """Get the storage file path."""
        return self._store.path

    def version_of(self, path: str) -> int:
        """Return the commit sequence number of a document (0 if never written)."""
        return self._versions.get(path, 0)

    def get_document(self, path: str) -> dict[str, Any] | None:
        """Return a copy of a committed document, or None."""
        document = self._documents.get(path)
        return copy.deepcopy(document) if document is not None else None

    def document_signal(self, path: str) -> str:
        """Dispatcher signal carrying changes of one document."""
        return const.SIGNAL_DOCUMENT_CHANGED_FMT.format(
            entry_id=self.entry_id, path=path
        )

    # --------------------------------------------------------------------------
    # Queries
    # --------------------------------------------------------------------------

    def query(
        self,
        collection: str,
        field: str,
        start: datetime | None = None,
        end: datetime | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents of a collection filtered by an instant field.

        `start` is inclusive, `end` exclusive. Documents without a parsable
        value in `field` are skipped.
        """
        matches: list[tuple[datetime, dict[str, Any]]] = []
        for path, document in self._documents.items():
            if collection_of(path) != collection:
                continue
            value = dt_to_utc(document.get(field))
            if value is None:
                continue
            if start is not None and value < start:
                continue
            if end is not None and value >= end:
                continue
            matches.append((value, document))

        matches.sort(key=lambda item: item[0], reverse=descending)
        if limit is not None:
            matches = matches[:limit]
        return [copy.deepcopy(document) for _value, document in matches]

    # --------------------------------------------------------------------------
    # Writes
    # --------------------------------------------------------------------------

    async def async_run_transaction(
        self,
        transaction_fn: Callable[[Transaction], Awaitable[_T]],
        max_attempts: int = const.TRANSACTION_MAX_ATTEMPTS,
    ) -> _T:
        """Run `transaction_fn` atomically, re-running it on conflict.

        Raises:
            StoreContentionError: conflicts persisted for every attempt.
            TransientStoreError: the commit could not be persisted.
        """
        for attempt in range(1, max_attempts + 1):
            transaction = Transaction(self)
            try:
                result = await transaction_fn(transaction)
            finally:
                transaction.close()

            async with self._lock:
                conflicts = [
                    path
                    for path, version in transaction.read_versions.items()
                    if self.version_of(path) != version
                ]
                if not conflicts:
                    await self._async_commit(transaction.writes)
                    return result

            const.LOGGER.debug(
                "DEBUG: Transaction attempt %s/%s conflicted on %s, retrying",
                attempt,
                max_attempts,
                conflicts,
            )

        const.LOGGER.warning(
            "WARNING: %s",
            const.ERROR_TRANSACTION_CONTENTION_FMT.format(max_attempts),
        )
        raise StoreContentionError(
            const.ERROR_TRANSACTION_CONTENTION_FMT.format(max_attempts)
        )

    async def async_set(
        self, path: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        """Write a single document atomically."""
        async with self._lock:
            await self._async_commit({path: _PendingWrite(dict(data), merge)})

    async def async_update(self, path: str, fields: dict[str, Any]) -> None:
        """Atomically merge fields and field transforms into a document.

        Transforms are resolved against the latest committed value under the
        commit lock, so concurrent ArrayUnion / ArrayRemove calls never lose
        each other's changes.
        """
        await self.async_set(path, fields, merge=True)

    async def async_delete(self, path: str) -> None:
        """Delete a single document."""
        async with self._lock:
            await self._async_commit({path: _PendingWrite(None, False)})

    async def _async_commit(self, writes: dict[str, _PendingWrite]) -> None:
        """Persist buffered writes, then publish them. Caller holds the lock."""
        if not writes:
            return

        commit_time = dt_to_iso(self._clock())
        staged = dict(self._documents)
        changed: dict[str, dict[str, Any] | None] = {}
        for path, write in writes.items():
            if write.fields is None:
                staged.pop(path, None)
                changed[path] = None
                continue
            base = staged.get(path) if write.merge else None
            staged[path] = apply_field_transforms(base, write.fields, commit_time)
            changed[path] = staged[path]

        snapshot = {
            const.DATA_META: {
                **self._data.get(const.DATA_META, {}),
                const.DATA_META_SAVED_AT: commit_time,
            },
            const.DATA_DOCUMENTS: staged,
        }
        await self._async_persist(snapshot)

        self._data = snapshot
        for path in changed:
            self._sequence += 1
            self._versions[path] = self._sequence

        for path, document in changed.items():
            async_dispatcher_send(
                self.hass,
                self.document_signal(path),
                path,
                copy.deepcopy(document),
            )

    async def _async_persist(self, snapshot: dict[str, Any]) -> None:
        """Write a snapshot to disk, classifying failures."""
        try:
            async with asyncio.timeout(const.STORE_COMMIT_TIMEOUT):
                await self._store.async_save_checked(snapshot)
        except TimeoutError as err:
            const.LOGGER.warning("WARNING: %s", const.ERROR_STORE_TIMEOUT)
            raise TransientStoreError(const.ERROR_STORE_TIMEOUT) from err
        except (WriteError, OSError) as err:
            const.LOGGER.warning(
                "WARNING: Failed to save storage due to file system error: %s. "
                "Check disk space and file permissions for %s",
                err,
                self._store.path,
            )
            raise TransientStoreError(const.ERROR_STORE_WRITE_FMT.format(err)) from err
        except (SerializationError, TypeError, ValueError) as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to non-serializable data: %s", err
            )
            raise PermanentStoreError(const.ERROR_STORE_WRITE_FMT.format(err)) from err
        const.LOGGER.debug("DEBUG: Data saved successfully to storage")

    # --------------------------------------------------------------------------
    # Change feed
    # --------------------------------------------------------------------------

    @callback
    def async_subscribe(
        self, path: str, document_callback: DocumentCallback
    ) -> CALLBACK_TYPE:
        """Subscribe to changes of one document.

        The callback receives (path, document); document is None on delete.
        Returns the unsubscribe function.
        """
        return async_dispatcher_connect(
            self.hass, self.document_signal(path), document_callback
        )

    # --------------------------------------------------------------------------
    # Maintenance
    # --------------------------------------------------------------------------

    async def async_delete_storage(self) -> None:
        """Clear all documents and remove the storage file from disk."""
        const.LOGGER.warning("WARNING: Clearing all SafeCheck data and storage")
        async with self._lock:
            self._data = SafeCheckStore.get_default_structure()
            self._versions.clear()
            try:
                await self._store.async_remove()
                const.LOGGER.info(
                    "INFO: Storage file removed successfully: %s", self._store.path
                )
            except OSError as err:
                const.LOGGER.error(
                    "ERROR: Failed to remove storage file %s: %s. Check file permissions",
                    self._store.path,
                    err,
                )


# ==============================================================================
# Notification cooldown ledger
# ==============================================================================


class CooldownLedger:
    """Persisted mapping of alert key → instant the alert last fired.

    Kept in its own storage file so notification bookkeeping never contends
    with check-in transactions. Survives restarts: loaded once at setup and
    saved after every recorded fire.
    """

    def __init__(
        self, hass: HomeAssistant, storage_key: str = const.STORAGE_KEY_COOLDOWNS
    ) -> None:
        """Initialize the ledger."""
        self._store: Store = Store(hass, const.STORAGE_VERSION, storage_key)
        self._entries: dict[str, str] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        """True once async_load() has completed."""
        return self._loaded

    @property
    def entries(self) -> dict[str, str]:
        """Raw key → ISO instant mapping."""
        return self._entries

    async def async_load(self) -> None:
        """Load persisted cooldown timestamps."""
        existing = await self._store.async_load()
        self._entries = dict((existing or {}).get(const.DATA_COOLDOWNS, {}))
        self._loaded = True
        const.LOGGER.debug(
            "DEBUG: Loaded %s notification cooldown entries", len(self._entries)
        )

    def last_fired(self, key: str) -> datetime | None:
        """Return when the alert key last fired."""
        return dt_to_utc(self._entries.get(key))

    def reserve(self, key: str, instant: datetime) -> str | None:
        """Mark the key as fired in memory and return the previous value.

        Synchronous so a concurrent trigger evaluated after this call sees the
        reservation without awaiting.
        """
        previous = self._entries.get(key)
        self._entries[key] = dt_to_iso(instant)
        return previous

    def release(self, key: str, previous: str | None) -> None:
        """Undo a reservation whose delivery failed."""
        if previous is None:
            self._entries.pop(key, None)
        else:
            self._entries[key] = previous

    async def async_save(self) -> None:
        """Persist the ledger."""
        try:
            await self._store.async_save({const.DATA_COOLDOWNS: dict(self._entries)})
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to persist notification cooldowns: %s. "
                "Duplicate alerts are possible after a restart",
                err,
            )

    async def async_record(self, key: str, instant: datetime) -> None:
        """Record a fire and persist the ledger immediately."""
        self.reserve(key, instant)
        await self.async_save()

    async def async_remove(self) -> None:
        """Remove the ledger file."""
        self._entries.clear()
        await self._store.async_remove()
