"""In-memory response cache and lock.

Suitable for:
    - Single-process applications
    - Development and testing

For several processes or machines sharing keys, use the Redis backends.

Thread Safety:
    - Each structure is protected by a threading.Lock
    - The lock is held only for dictionary access, never across an await
    - This keeps both classes usable from any thread and any event loop,
      which matters when a test client runs each request on its own loop

Expiry:
    - Entries carry an absolute expiry taken from an injectable clock
    - Expired entries are invisible to get() and evicted on access
    - cleanup_expired() sweeps whatever was never read again

Examples:
    Basic usage::

        from idempotency_guard.storage.memory import MemoryLock, MemoryResponseCache

        cache = MemoryResponseCache()
        lock = MemoryLock()

        token = await lock.acquire("idempotency_lock:idempotency:abc", lease_seconds=30)
        if token is not None:
            try:
                await cache.put("idempotency:abc", record, ttl_seconds=86400)
            finally:
                await lock.release(token)
"""

import threading
import time
from collections.abc import Callable

from idempotency_guard.models import LockToken, StoredRecord
from idempotency_guard.storage.base import retry_until


class MemoryResponseCache:
    """Dictionary-backed response cache with per-entry TTL.

    Attributes:
        _store: Cache key to (record, expires_at) pairs.
        _mutex: Protects _store.
        _clock: Monotonic time source in seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[str, tuple[StoredRecord, float]] = {}
        self._mutex = threading.Lock()
        self._clock = clock

    async def get(self, key: str) -> StoredRecord | None:
        """Retrieve a record by cache key.

        Returns:
            The record if present and not expired, None otherwise.
        """
        with self._mutex:
            entry = self._store.get(key)
            if entry is None:
                return None

            record, expires_at = entry
            if expires_at <= self._clock():
                del self._store[key]
                return None

            return record

    async def put(self, key: str, record: StoredRecord, ttl_seconds: int) -> None:
        """Store a record for ttl_seconds.

        Raises:
            ValueError: If ttl_seconds is not positive.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        with self._mutex:
            self._store[key] = (record, self._clock() + ttl_seconds)

    async def cleanup_expired(self) -> int:
        """Remove expired records.

        Returns:
            The number of records removed.
        """
        now = self._clock()
        with self._mutex:
            expired_keys = [key for key, (_, expires_at) in self._store.items() if expires_at <= now]
            for key in expired_keys:
                del self._store[key]

        return len(expired_keys)

    def __len__(self) -> int:
        with self._mutex:
            return len(self._store)


class MemoryLock:
    """Process-local lock table with leases.

    A lock whose lease has lapsed counts as free, so a holder that died
    without releasing cannot block a key forever.

    Attributes:
        _held: Lock name to (owner value, lease expiry) pairs.
        _mutex: Protects _held.
        _clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        retry_interval_seconds: float = 0.05,
    ) -> None:
        self._held: dict[str, tuple[str, float]] = {}
        self._mutex = threading.Lock()
        self._clock = clock
        self._retry_interval_seconds = retry_interval_seconds

    async def acquire(
        self,
        name: str,
        lease_seconds: int,
        wait_seconds: float = 0.0,
    ) -> LockToken | None:
        """Acquire the named lock, retrying for up to wait_seconds.

        Returns:
            A LockToken if acquired, None if still held by someone else.
        """

        async def attempt() -> LockToken | None:
            return self._try_acquire(name, lease_seconds)

        return await retry_until(attempt, wait_seconds, self._retry_interval_seconds)

    async def release(self, token: LockToken) -> None:
        """Release the lock if token still owns it."""
        with self._mutex:
            current = self._held.get(token.name)
            if current is not None and current[0] == token.value:
                del self._held[token.name]

    def is_locked(self, name: str) -> bool:
        with self._mutex:
            current = self._held.get(name)
            return current is not None and current[1] > self._clock()

    def _try_acquire(self, name: str, lease_seconds: int) -> LockToken | None:
        now = self._clock()
        with self._mutex:
            current = self._held.get(name)
            if current is not None and current[1] > now:
                return None

            token = LockToken(name=name, lease_seconds=lease_seconds)
            self._held[name] = (token.value, now + lease_seconds)
            return token
