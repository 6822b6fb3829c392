"""Observability utilities for the idempotency guard.

This package provides:
- Prometheus metrics for guard decisions and handler timings
- Structured logging with contextual information
"""

from idempotency_guard.observability.logging import configure_logging, get_logger
from idempotency_guard.observability.metrics import (
    record_cleanup,
    record_execution_time,
    record_request,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "record_request",
    "record_execution_time",
    "record_cleanup",
]
