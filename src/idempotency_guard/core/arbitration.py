"""Cache lookup and lock arbitration for guarded requests.

For one cache key this module guarantees at most one handler execution in
flight. The flow is a check-lock-check:

    1. Read the cache. Hit: replay, no lock taken.
    2. Miss: acquire the per-key lock with a bounded wait. Timeout: 409.
    3. Lock held: read the cache again. A holder that finished while we
       waited has written its record, so hit means replay.
    4. Still a miss: run the handler once, memoize the response, release.

The second read is needed because the cache and the lock are independent
resources: two requests can both miss in step 1 and then serialize on the
lock, and without it the second holder would execute the handler again.

Examples:
    Processing a request::

        result = await process_request(
            cache=cache,
            lock=lock,
            cache_key="idempotency:abc-123-def",
            fingerprint=compute_fingerprint(request.body),
            handler=handler,
            request=request,
            config=config,
        )
        result.response.get_header("Idempotent-Replayed")  # "false" or "true"
"""

import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from idempotency_guard.config import GuardConfig
from idempotency_guard.core.replay import (
    GuardResponse,
    build_stored_record,
    mark_fresh,
    replay_response,
)
from idempotency_guard.exceptions import (
    FingerprintMismatchError,
    LockContentionError,
    StorageError,
)
from idempotency_guard.models import LockToken, StoredRecord
from idempotency_guard.observability.logging import get_logger
from idempotency_guard.observability.metrics import (
    decrement_locks_held,
    increment_locks_held,
    record_execution_time,
)
from idempotency_guard.storage.base import DistributedLock, ResponseCache

logger = get_logger(__name__)

LOCK_PREFIX = "idempotency_lock:"


class StateResult:
    """Result of arbitration.

    Attributes:
        response: The response object (either new or replayed)
        was_replayed: True if response was replayed from cache
        memoized: True if a new record was written for this response
        execution_time_ms: Handler time in milliseconds (None for replays)
    """

    def __init__(
        self,
        response: GuardResponse,
        was_replayed: bool,
        memoized: bool = False,
        execution_time_ms: int | None = None,
    ) -> None:
        self.response = response
        self.was_replayed = was_replayed
        self.memoized = memoized
        self.execution_time_ms = execution_time_ms


def lock_name_for(cache_key: str) -> str:
    return f"{LOCK_PREFIX}{cache_key}"


@asynccontextmanager
async def hold_lock(
    lock: DistributedLock,
    name: str,
    lease_seconds: int,
    wait_seconds: float,
) -> AsyncIterator[LockToken]:
    """Hold the named lock for the duration of the block.

    Release happens on every exit path: normal return, exception or
    cancellation.

    Raises:
        LockContentionError: If the lock was not acquired within wait_seconds.
        StorageError: If the lock backend fails while acquiring.
    """
    token = await lock.acquire(name, lease_seconds, wait_seconds)
    if token is None:
        raise LockContentionError(lock_name=name)

    increment_locks_held()
    try:
        yield token
    finally:
        decrement_locks_held()
        try:
            await lock.release(token)
        except StorageError as e:
            # The lease bounds how long the key stays blocked
            logger.error(
                "lock.release_failed",
                lock_name=name,
                lease_seconds=lease_seconds,
                error=e.message,
            )


def _replay(
    record: StoredRecord,
    cache_key: str,
    fingerprint: str,
    config: GuardConfig,
) -> StateResult:
    if config.enforce_body_match and record.fingerprint != fingerprint:
        raise FingerprintMismatchError(
            cache_key=cache_key,
            stored_fingerprint=record.fingerprint,
            request_fingerprint=fingerprint,
        )

    return StateResult(
        response=replay_response(record, config.replay_header_name),
        was_replayed=True,
    )


async def process_request(
    cache: ResponseCache,
    lock: DistributedLock,
    cache_key: str,
    fingerprint: str,
    handler: Callable[[Any], Awaitable[GuardResponse]],
    request: Any,
    config: GuardConfig,
) -> StateResult:
    """Run one guarded request through check-lock-check.

    Args:
        cache: Response cache holding memoized records
        lock: Distributed lock used to serialize first executions
        cache_key: Identity-scoped cache key
        fingerprint: Fingerprint of the request body
        handler: Async function producing the response on first execution
        request: The request object passed to handler
        config: Guard configuration

    Returns:
        StateResult with the response and metadata

    Raises:
        FingerprintMismatchError: If a stored record exists for a different body
        LockContentionError: If another request holds the lock past the wait
        StorageError: If the cache or lock fails before the handler runs
        Exception: Anything the handler raises, unchanged
    """
    record = await cache.get(cache_key)
    if record is not None:
        logger.debug("cache.hit", cache_key=cache_key, phase="first_read")
        return _replay(record, cache_key, fingerprint, config)

    async with hold_lock(
        lock,
        lock_name_for(cache_key),
        lease_seconds=config.lock_lease_seconds,
        wait_seconds=config.lock_wait_seconds,
    ):
        record = await cache.get(cache_key)
        if record is not None:
            logger.debug("cache.hit", cache_key=cache_key, phase="after_lock")
            return _replay(record, cache_key, fingerprint, config)

        start_time = time.monotonic()
        response = await handler(request)
        execution_time_ms = int((time.monotonic() - start_time) * 1000)
        record_execution_time(execution_time_ms)

        memoized = False
        if response.status < 500:
            stored = build_stored_record(
                response,
                fingerprint,
                stripped_headers=config.stripped_response_headers,
                replay_header_name=config.replay_header_name,
            )
            try:
                await cache.put(cache_key, stored, config.ttl_seconds)
                memoized = True
            except StorageError as e:
                # The handler already ran; its response still goes out
                logger.error("record.store_failed", cache_key=cache_key, error=e.message)
        else:
            logger.warning(
                "response.not_memoized",
                cache_key=cache_key,
                status=response.status,
            )

        return StateResult(
            response=mark_fresh(response, config.replay_header_name),
            was_replayed=False,
            memoized=memoized,
            execution_time_ms=execution_time_ms,
        )
