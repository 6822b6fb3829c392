"""End-to-end scenario tests for the idempotency guard.

Each scenario exercises one observable property of the guard, either
against IdempotencyGuard directly or through the ASGI middleware.
"""
