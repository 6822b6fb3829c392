"""Scenario 4: TTL Expiry

This module tests what happens once a stored response outlives its TTL:
- Before expiry, repeats are replayed
- After expiry, the same key executes again as a fresh request
- The new execution replaces the old record
- After expiry, a different body is accepted under the old key
- The cleanup sweep removes records that are never retried
"""

import json

import pytest

from idempotency_guard.config import GuardConfig
from idempotency_guard.core.middleware import IdempotencyGuard, Request
from idempotency_guard.core.replay import GuardResponse

TTL_MINUTES = 10
TTL_SECONDS = TTL_MINUTES * 60


class CountingHandler:
    """Handler numbering its executions."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, request: Request) -> GuardResponse:
        self.calls += 1
        return GuardResponse.json(201, {"call": self.calls})


@pytest.fixture
def config() -> GuardConfig:
    """Use a short TTL."""
    return GuardConfig(ttl_minutes=TTL_MINUTES)


@pytest.mark.asyncio
async def test_replayed_before_expiry(guard, clock, make_req) -> None:
    """Test that a repeat just inside the TTL is replayed."""
    handler = CountingHandler()

    await guard.process(make_req(), handler)
    clock.advance(TTL_SECONDS - 1)
    response = await guard.process(make_req(), handler)

    assert handler.calls == 1
    assert response.get_header("Idempotent-Replayed") == "true"


@pytest.mark.asyncio
async def test_executes_again_after_expiry(guard, clock, make_req) -> None:
    """Test that an expired key behaves like a new one."""
    handler = CountingHandler()

    await guard.process(make_req(), handler)
    clock.advance(TTL_SECONDS)
    response = await guard.process(make_req(), handler)

    assert handler.calls == 2
    assert response.get_header("Idempotent-Replayed") == "false"
    assert json.loads(response.body) == {"call": 2}


@pytest.mark.asyncio
async def test_new_record_replaces_old(guard, clock, make_req) -> None:
    """Test that the re-execution is what gets replayed afterwards."""
    handler = CountingHandler()

    await guard.process(make_req(), handler)
    clock.advance(TTL_SECONDS + 1)
    await guard.process(make_req(), handler)
    replay = await guard.process(make_req(), handler)

    assert handler.calls == 2
    assert json.loads(replay.body) == {"call": 2}


@pytest.mark.asyncio
async def test_different_body_after_expiry(guard, clock, make_req) -> None:
    """Test that the expired fingerprint no longer constrains the key."""
    handler = CountingHandler()

    await guard.process(make_req(body=b'{"amount": 1}'), handler)
    clock.advance(TTL_SECONDS)
    response = await guard.process(make_req(body=b'{"amount": 2}'), handler)

    assert response.status == 201
    assert handler.calls == 2


@pytest.mark.asyncio
async def test_ttl_is_not_extended_by_replays(guard, clock, make_req) -> None:
    """Test that replays do not refresh the record's lifetime."""
    handler = CountingHandler()

    await guard.process(make_req(), handler)
    clock.advance(TTL_SECONDS - 10)
    await guard.process(make_req(), handler)
    clock.advance(10)
    response = await guard.process(make_req(), handler)

    assert handler.calls == 2
    assert response.get_header("Idempotent-Replayed") == "false"


@pytest.mark.asyncio
async def test_cleanup_removes_unretried_records(cache, lock, clock, config, make_req) -> None:
    """Test that a sweep drops expired records nobody asked for again."""
    guard = IdempotencyGuard(cache, lock, config)
    handler = CountingHandler()

    for i in range(3):
        await guard.process(make_req(key=f"sweep-key-{i:04d}"), handler)
    clock.advance(TTL_SECONDS)

    assert len(cache) == 3
    assert await cache.cleanup_expired() == 3
    assert len(cache) == 0
