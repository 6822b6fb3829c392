"""Scenario 2: Body Conflicts

This module tests reuse of a key with a different request body:
- A different body under a stored key is rejected with 422
- The handler does not run again
- The stored record is left intact and still replays for the original body
- With enforce_body_match off, the stored response is replayed regardless
"""

from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from idempotency_guard.adapters.asgi import ASGIIdempotencyMiddleware
from idempotency_guard.config import GuardConfig
from idempotency_guard.storage.memory import MemoryLock, MemoryResponseCache

MISMATCH_MESSAGE = "Idempotency key already used with a different request body."


def build_app(config: GuardConfig, calls: list[dict[str, Any]]) -> FastAPI:
    test_app = FastAPI()
    test_app.add_middleware(
        ASGIIdempotencyMiddleware,
        cache=MemoryResponseCache(),
        lock=MemoryLock(),
        config=config,
    )

    @test_app.post("/api/transfers", status_code=201)
    async def create_transfer(data: dict[str, Any]) -> dict[str, Any]:
        calls.append(data)
        return {"transfer": len(calls), **data}

    return test_app


@pytest.fixture
def calls() -> list[dict[str, Any]]:
    """Collect the bodies the handler received."""
    return []


@pytest.fixture
def client(calls: list[dict[str, Any]]) -> TestClient:
    """Create a client with body matching enforced."""
    return TestClient(build_app(GuardConfig(), calls))


@pytest.fixture
def lenient_client(calls: list[dict[str, Any]]) -> TestClient:
    """Create a client with body matching disabled."""
    return TestClient(build_app(GuardConfig(enforce_body_match=False), calls))


def test_different_body_rejected(client: TestClient, calls: list[dict[str, Any]]) -> None:
    """Test that a reused key with another body gives 422."""
    headers = {"Idempotency-Key": "transfer-key-01"}

    client.post("/api/transfers", json={"amount": 100}, headers=headers)
    conflict = client.post("/api/transfers", json={"amount": 999}, headers=headers)

    assert conflict.status_code == 422
    assert conflict.json() == {"message": MISMATCH_MESSAGE}
    assert conflict.headers["content-type"] == "application/json"
    assert len(calls) == 1


def test_record_intact_after_conflict(client: TestClient, calls: list[dict[str, Any]]) -> None:
    """Test that the original body still replays after a conflict."""
    headers = {"Idempotency-Key": "transfer-key-02"}

    original = client.post("/api/transfers", json={"amount": 100}, headers=headers)
    client.post("/api/transfers", json={"amount": 999}, headers=headers)
    replay = client.post("/api/transfers", json={"amount": 100}, headers=headers)

    assert replay.status_code == 201
    assert replay.json() == original.json() == {"transfer": 1, "amount": 100}
    assert replay.headers["idempotent-replayed"] == "true"
    assert len(calls) == 1


def test_whitespace_change_is_a_different_body(
    client: TestClient, calls: list[dict[str, Any]]
) -> None:
    """Test that bodies are compared byte-for-byte."""
    headers = {"Idempotency-Key": "transfer-key-03", "Content-Type": "application/json"}

    client.post("/api/transfers", content=b'{"amount":100}', headers=headers)
    conflict = client.post("/api/transfers", content=b'{"amount": 100}', headers=headers)

    assert conflict.status_code == 422
    assert len(calls) == 1


def test_matching_disabled_replays(
    lenient_client: TestClient, calls: list[dict[str, Any]]
) -> None:
    """Test that without body matching the stored response is replayed."""
    headers = {"Idempotency-Key": "transfer-key-04"}

    original = lenient_client.post("/api/transfers", json={"amount": 100}, headers=headers)
    replay = lenient_client.post("/api/transfers", json={"amount": 999}, headers=headers)

    assert replay.status_code == 201
    assert replay.json() == original.json()
    assert replay.headers["idempotent-replayed"] == "true"
    assert len(calls) == 1
