# File: helpers/retry_helpers.py
"""Bounded retry for transient store failures.

Only failures that may succeed on a later attempt are retried: store timeouts,
an unavailable disk, and connection errors raised by delivery paths. Everything
else, including transaction contention, propagates on the first attempt.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .. import const
from ..exceptions import TransientStoreError

_T = TypeVar("_T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    TransientStoreError,
    TimeoutError,
    ConnectionError,
)


async def async_retry_transient(
    operation: Callable[[], Awaitable[_T]],
    *,
    attempts: int = const.RETRY_MAX_ATTEMPTS,
    base_delay: float = const.RETRY_BASE_DELAY,
    description: str = "operation",
) -> _T:
    """Run `operation`, retrying transient failures with linear backoff.

    Waits base_delay * attempt between attempts (0.5s, 1.0s with defaults).
    The last transient failure is re-raised once attempts are exhausted.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except TRANSIENT_ERRORS as err:
            if attempt >= attempts:
                const.LOGGER.error(
                    "ERROR: %s failed after %s attempts: %s", description, attempts, err
                )
                raise
            delay = base_delay * attempt
            const.LOGGER.warning(
                "WARNING: %s failed (attempt %s/%s): %s. Retrying in %.1fs",
                description,
                attempt,
                attempts,
                err,
                delay,
            )
            await asyncio.sleep(delay)
    raise ValueError("attempts must be at least 1")
