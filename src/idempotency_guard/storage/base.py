"""Capability contracts for the guard's external collaborators.

The guard only needs three things from its host environment:

- a Response Cache that can get and put-with-TTL a StoredRecord,
- a Distributed Lock with bounded-wait acquisition and owner-only release,
- optionally, a cache that can purge its own expired entries.

The cache and the lock are independent resources. No combined atomic
primitive is assumed, which is why the guard re-reads the cache after the
lock is acquired.

Examples:
    Implementing a custom cache::

        from idempotency_guard.models import StoredRecord

        class MyCache:
            async def get(self, key: str) -> StoredRecord | None:
                raw = await self.backend.read(key)
                return None if raw is None else StoredRecord.model_validate_json(raw)

            async def put(self, key: str, record: StoredRecord, ttl_seconds: int) -> None:
                await self.backend.write(key, record.model_dump_json(), ttl_seconds)

Error Handling:
    Implementations should raise StorageError for backend failures and must
    not leak backend-specific exceptions.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar, runtime_checkable

from idempotency_guard.models import LockToken, StoredRecord

T = TypeVar("T")


@runtime_checkable
class ResponseCache(Protocol):
    """Key-value store for memoized responses."""

    async def get(self, key: str) -> StoredRecord | None:
        """Return the record stored at key, or None if absent or expired."""
        ...

    async def put(self, key: str, record: StoredRecord, ttl_seconds: int) -> None:
        """Store record at key; it must disappear after ttl_seconds."""
        ...


@runtime_checkable
class DistributedLock(Protocol):
    """Mutual exclusion keyed by lock name.

    acquire() must never block indefinitely: it resolves to a token or None
    within wait_seconds (plus one backend round trip).
    """

    async def acquire(
        self,
        name: str,
        lease_seconds: int,
        wait_seconds: float = 0.0,
    ) -> LockToken | None:
        """Try to take the lock, retrying until wait_seconds elapse."""
        ...

    async def release(self, token: LockToken) -> None:
        """Release the lock if token still owns it; otherwise do nothing."""
        ...


@runtime_checkable
class ExpiringCache(Protocol):
    """A cache that needs an external sweep to drop expired entries."""

    async def cleanup_expired(self) -> int:
        """Remove expired entries and return how many were removed."""
        ...


async def retry_until(
    attempt: Callable[[], Awaitable[T | None]],
    wait_seconds: float,
    interval_seconds: float = 0.05,
) -> T | None:
    """Call attempt until it returns a value or wait_seconds elapse.

    The first attempt always runs. With wait_seconds == 0 there is exactly
    one attempt.

    Args:
        attempt: Coroutine function returning a value on success, None otherwise
        wait_seconds: Total time budget for retries
        interval_seconds: Delay between attempts

    Returns:
        The first non-None result, or None on timeout
    """
    deadline = time.monotonic() + wait_seconds

    while True:
        result = await attempt()
        if result is not None:
            return result

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return None

        await asyncio.sleep(min(interval_seconds, remaining))
