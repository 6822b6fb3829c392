"""Unit tests for storage helpers and backend selection."""

import asyncio

import pytest

from idempotency_guard.config import GuardConfig
from idempotency_guard.storage import create_backends
from idempotency_guard.storage.base import retry_until
from idempotency_guard.storage.memory import MemoryLock, MemoryResponseCache
from idempotency_guard.storage.redis_store import RedisLock, RedisResponseCache


@pytest.mark.asyncio
async def test_retry_until_immediate_success() -> None:
    """Test that a successful first attempt returns at once."""
    calls = 0

    async def attempt() -> str | None:
        nonlocal calls
        calls += 1
        return "ok"

    assert await retry_until(attempt, wait_seconds=1.0) == "ok"
    assert calls == 1


@pytest.mark.asyncio
async def test_retry_until_zero_wait_single_attempt() -> None:
    """Test that a zero wait means exactly one attempt."""
    calls = 0

    async def attempt() -> None:
        nonlocal calls
        calls += 1
        return None

    assert await retry_until(attempt, wait_seconds=0) is None
    assert calls == 1


@pytest.mark.asyncio
async def test_retry_until_eventual_success() -> None:
    """Test retrying until a value appears."""
    results = iter([None, None, 7])

    async def attempt() -> int | None:
        return next(results)

    assert await retry_until(attempt, wait_seconds=1.0, interval_seconds=0.01) == 7


@pytest.mark.asyncio
async def test_retry_until_bounded() -> None:
    """Test that retrying stops at the deadline."""

    async def attempt() -> None:
        return None

    loop = asyncio.get_running_loop()
    start = loop.time()
    result = await retry_until(attempt, wait_seconds=0.1, interval_seconds=0.02)
    elapsed = loop.time() - start

    assert result is None
    assert 0.09 <= elapsed < 1.0


def test_create_memory_backends() -> None:
    """Test the default in-memory backends."""
    cache, lock = create_backends(GuardConfig())

    assert isinstance(cache, MemoryResponseCache)
    assert isinstance(lock, MemoryLock)


def test_create_redis_backends() -> None:
    """Test that the Redis backends share one client."""
    cache, lock = create_backends(GuardConfig(store="redis", redis_url="redis://cache:6379/2"))

    assert isinstance(cache, RedisResponseCache)
    assert isinstance(lock, RedisLock)
    assert cache._client is lock._client
