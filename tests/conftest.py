"""
Pytest configuration and shared fixtures for idempotency_guard tests.
"""

import pytest

from idempotency_guard.config import GuardConfig
from idempotency_guard.core.middleware import IdempotencyGuard, Request
from idempotency_guard.storage.memory import MemoryLock, MemoryResponseCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_request(
    body: bytes = b'{"amount": 100}',
    key: str | None = "test-key-12345",
    method: str = "POST",
    path: str = "/api/payments",
    header_name: str = "Idempotency-Key",
) -> Request:
    """Build a guard Request with an optional idempotency key header."""
    headers = {"content-type": "application/json"}
    if key is not None:
        headers[header_name] = key
    return Request(method=method, path=path, query_string="", headers=headers, body=body)


@pytest.fixture
def make_req():
    """Provide the make_request builder."""
    return make_request


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> MemoryResponseCache:
    """Provide a fresh in-memory cache on the fake clock."""
    return MemoryResponseCache(clock=clock)


@pytest.fixture
def lock(clock: FakeClock) -> MemoryLock:
    """Provide a fresh in-memory lock on the fake clock."""
    return MemoryLock(clock=clock, retry_interval_seconds=0.01)


@pytest.fixture
def config() -> GuardConfig:
    """Provide the default configuration."""
    return GuardConfig()


@pytest.fixture
def guard(cache: MemoryResponseCache, lock: MemoryLock, config: GuardConfig) -> IdempotencyGuard:
    """Provide a guard wired to the in-memory backends."""
    return IdempotencyGuard(cache, lock, config)


@pytest.fixture
def sample_idempotency_key() -> str:
    """Provide a sample idempotency key for tests."""
    return "test-key-12345"


@pytest.fixture
def sample_request_body() -> bytes:
    """Provide a sample request body for tests."""
    return b'{"amount": 100}'
