"""Redis-backed response cache and lock.

Records are stored as JSON under the cache key with a native Redis TTL, so
no cleanup task is needed. Locks use ``SET name value NX EX lease``; release
runs a Lua compare-and-delete so only the current owner can free the lock,
even after its lease lapsed and someone else took it.

Examples:
    Wiring both backends to one client::

        from redis.asyncio import Redis
        from idempotency_guard.storage.redis_store import RedisLock, RedisResponseCache

        client = Redis.from_url("redis://localhost:6379/0")
        cache = RedisResponseCache(client)
        lock = RedisLock(client)
"""

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from idempotency_guard.exceptions import StorageError
from idempotency_guard.models import LockToken, StoredRecord
from idempotency_guard.observability.logging import get_logger
from idempotency_guard.storage.base import retry_until

logger = get_logger(__name__)

# Only the owner may delete the lock
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


def _sanitize_url(url: str) -> str:
    """Strip credentials from a Redis URL before logging it."""
    return url.split("@")[-1]


class RedisResponseCache:
    """Response cache on top of a redis.asyncio client."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisResponseCache":
        logger.debug("redis.connecting", url=_sanitize_url(url))
        return cls(Redis.from_url(url))

    async def get(self, key: str) -> StoredRecord | None:
        """Fetch and parse the record at key.

        Raises:
            StorageError: If Redis fails or the stored payload is corrupt.
        """
        try:
            raw = await self._client.get(key)
        except RedisError as e:
            raise StorageError(f"Failed to read {key} from Redis: {e}", cause=e) from e

        if raw is None:
            return None

        try:
            return StoredRecord.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt record stored at {key}", cause=e) from e

    async def put(self, key: str, record: StoredRecord, ttl_seconds: int) -> None:
        """Write the record with a native expiry.

        Raises:
            StorageError: If Redis fails.
        """
        try:
            await self._client.set(key, record.model_dump_json(), ex=ttl_seconds)
        except RedisError as e:
            raise StorageError(f"Failed to write {key} to Redis: {e}", cause=e) from e


class RedisLock:
    """Lease-based lock on top of a redis.asyncio client."""

    def __init__(self, client: Redis, retry_interval_seconds: float = 0.05) -> None:
        self._client = client
        self._retry_interval_seconds = retry_interval_seconds

    @classmethod
    def from_url(cls, url: str, retry_interval_seconds: float = 0.05) -> "RedisLock":
        return cls(Redis.from_url(url), retry_interval_seconds=retry_interval_seconds)

    async def acquire(
        self,
        name: str,
        lease_seconds: int,
        wait_seconds: float = 0.0,
    ) -> LockToken | None:
        """Acquire the named lock, retrying for up to wait_seconds.

        Raises:
            StorageError: If Redis fails.
        """

        async def attempt() -> LockToken | None:
            token = LockToken(name=name, lease_seconds=lease_seconds)
            try:
                acquired = await self._client.set(name, token.value, nx=True, ex=lease_seconds)
            except RedisError as e:
                raise StorageError(f"Failed to acquire lock {name}: {e}", cause=e) from e
            return token if acquired else None

        return await retry_until(attempt, wait_seconds, self._retry_interval_seconds)

    async def release(self, token: LockToken) -> None:
        """Release the lock if token still owns it.

        Raises:
            StorageError: If Redis fails.
        """
        try:
            await self._client.eval(_RELEASE_SCRIPT, 1, token.name, token.value)
        except RedisError as e:
            raise StorageError(f"Failed to release lock {token.name}: {e}", cause=e) from e
