"""
Idempotency guard for Python web applications.

This package makes mutating HTTP requests safe to retry: a request repeated
with the same idempotency key is executed once and every retry receives the
original response.
"""

__version__ = "0.1.0"

from idempotency_guard.config import GuardConfig
from idempotency_guard.core.middleware import IdempotencyGuard, Request
from idempotency_guard.core.replay import GuardResponse
from idempotency_guard.models import LockToken, StoredRecord

__all__ = [
    "__version__",
    "GuardConfig",
    "GuardResponse",
    "IdempotencyGuard",
    "LockToken",
    "Request",
    "StoredRecord",
]
