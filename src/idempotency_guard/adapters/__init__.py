"""Framework adapters for the idempotency guard.

- asgi.py: ASGI middleware for FastAPI, Starlette, etc.

The adapters handle the conversion between framework-specific request/response
objects and the guard's internal representation.
"""

from idempotency_guard.adapters.asgi import ASGIIdempotencyMiddleware, default_identity_resolver

__all__ = ["ASGIIdempotencyMiddleware", "default_identity_resolver"]
