"""Background sweep of expired records.

Caches without native expiry (the in-memory cache) only evict an expired
record when its key is read again. This task periodically calls
cleanup_expired() so records that are never retried do not pile up. Redis
expires keys itself and does not need it.

Examples:
    Start and stop with the application::

        from idempotency_guard.core.cleanup import start_cleanup_task, stop_cleanup_task
        from idempotency_guard.storage.memory import MemoryResponseCache

        cache = MemoryResponseCache()

        task = await start_cleanup_task(cache=cache, interval_seconds=300)
        ...
        await stop_cleanup_task(task)
"""

import asyncio

from idempotency_guard.observability.logging import get_logger
from idempotency_guard.observability.metrics import record_cleanup
from idempotency_guard.storage.base import ExpiringCache

logger = get_logger(__name__)


async def cleanup_loop(
    cache: ExpiringCache,
    interval_seconds: float = 300,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Call cache.cleanup_expired() every interval until stop_event is set.

    A failing sweep is logged and retried on the next interval.

    Args:
        cache: Cache to sweep
        interval_seconds: Time between sweeps (default 300s = 5 minutes)
        stop_event: Event that ends the loop (optional)
    """
    if stop_event is None:
        stop_event = asyncio.Event()

    logger.info("cleanup.started", interval_seconds=interval_seconds)

    while not stop_event.is_set():
        try:
            count = await cache.cleanup_expired()
            record_cleanup(count)

            if count > 0:
                logger.info("cleanup.completed", records_removed=count)
            else:
                logger.debug("cleanup.completed", records_removed=0)

        except Exception as e:
            logger.error(
                "cleanup.failed",
                error=str(e),
                error_type=type(e).__name__,
            )

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

    logger.info("cleanup.stopped")


async def start_cleanup_task(
    cache: ExpiringCache,
    interval_seconds: float = 300,
) -> asyncio.Task[None]:
    """Start the sweep as a background task.

    Returns:
        The asyncio Task running the loop; pass it to stop_cleanup_task
    """
    stop_event = asyncio.Event()

    task = asyncio.create_task(
        cleanup_loop(
            cache=cache,
            interval_seconds=interval_seconds,
            stop_event=stop_event,
        )
    )
    task._stop_event = stop_event  # type: ignore[attr-defined]

    return task


async def stop_cleanup_task(task: asyncio.Task[None], timeout_seconds: float = 5.0) -> None:
    """Signal the sweep to stop and wait for it, cancelling if it hangs."""
    stop_event: asyncio.Event | None = getattr(task, "_stop_event", None)

    if stop_event:
        stop_event.set()

    try:
        await asyncio.wait_for(task, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("cleanup.stop_timeout", timeout_seconds=timeout_seconds)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("cleanup.cancelled")
