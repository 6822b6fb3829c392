"""Core guard logic.

- Middleware: the framework-agnostic guard (eligibility, key validation, error mapping)
- Arbitration: check-lock-check around the first execution
- Replay: response memoization and reconstruction
- Cleanup: periodic sweep of expired records

The core is framework-agnostic and is wrapped by adapters for web frameworks.
"""

from idempotency_guard.core.middleware import IdempotencyGuard, Request
from idempotency_guard.core.replay import GuardResponse, replay_response

__all__ = ["GuardResponse", "IdempotencyGuard", "Request", "replay_response"]
