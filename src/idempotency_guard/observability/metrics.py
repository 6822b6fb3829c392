"""Prometheus metrics for the idempotency guard.

Metrics include:

- Request counters by outcome (executed, replayed, contention, mismatch, ...)
- Handler execution time histogram
- Locks currently held by this process
- Cleanup operation tracking

Examples:
    Recording a replayed request::

        from idempotency_guard.observability.metrics import record_request

        record_request(result="replayed", status_code=201)
"""

from prometheus_client import Counter, Gauge, Histogram

# Labels: result (executed, replayed, contention, mismatch, invalid_key,
# storage_error, not_memoized), status_code
requests_total = Counter(
    "idempotency_requests_total",
    "Total number of requests decided by the idempotency guard",
    ["result", "status_code"],
)

# Only first executions are timed, replays are not
execution_time_ms = Histogram(
    "idempotency_execution_time_ms",
    "Handler execution time in milliseconds (first executions only)",
    buckets=[10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

locks_held = Gauge(
    "idempotency_locks_held",
    "Number of idempotency locks currently held by this process",
)

cleanup_operations = Counter(
    "idempotency_cleanup_operations_total",
    "Total number of cleanup operations performed",
)

cleanup_records_removed = Counter(
    "idempotency_cleanup_records_removed_total",
    "Total number of expired records removed by cleanup",
)


def record_request(result: str, status_code: int) -> None:
    """Record a guarded request in metrics.

    Args:
        result: The outcome of the guard's decision
        status_code: HTTP status code of the response
    """
    requests_total.labels(result=result, status_code=str(status_code)).inc()


def record_execution_time(exec_time_ms: int) -> None:
    """Record handler execution time for a first execution."""
    execution_time_ms.observe(exec_time_ms)


def increment_locks_held() -> None:
    locks_held.inc()


def decrement_locks_held() -> None:
    locks_held.dec()


def record_cleanup(records_removed: int) -> None:
    """Record a cleanup operation.

    Args:
        records_removed: Number of expired records removed
    """
    cleanup_operations.inc()
    cleanup_records_removed.inc(records_removed)
