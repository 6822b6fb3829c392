"""Storage backends for the idempotency guard.

All backends implement the ResponseCache and DistributedLock protocols
defined in base.py.

Available Backends:
    - MemoryResponseCache / MemoryLock: process-local, thread-safe
    - RedisResponseCache / RedisLock: shared across processes and machines
"""

from redis.asyncio import Redis

from idempotency_guard.config import GuardConfig
from idempotency_guard.storage.base import DistributedLock, ExpiringCache, ResponseCache
from idempotency_guard.storage.memory import MemoryLock, MemoryResponseCache
from idempotency_guard.storage.redis_store import RedisLock, RedisResponseCache


def create_backends(config: GuardConfig) -> tuple[ResponseCache, DistributedLock]:
    """Build the cache and lock selected by config.store.

    Both Redis backends share one client.

    Raises:
        ValueError: If the configured store is unknown.
    """
    if config.store == "memory":
        return MemoryResponseCache(), MemoryLock(
            retry_interval_seconds=config.lock_retry_interval_seconds
        )

    if config.store == "redis":
        client = Redis.from_url(config.redis_url)
        return RedisResponseCache(client), RedisLock(
            client, retry_interval_seconds=config.lock_retry_interval_seconds
        )

    raise ValueError(f"Unknown store: {config.store}")


__all__ = [
    "DistributedLock",
    "ExpiringCache",
    "MemoryLock",
    "MemoryResponseCache",
    "RedisLock",
    "RedisResponseCache",
    "ResponseCache",
    "create_backends",
]
