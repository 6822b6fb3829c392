"""Custom exceptions for the idempotency guard.

Every error the guard produces on its own is a subclass of IdempotencyError
carrying the HTTP status it maps to. The guard raises them internally and
turns them into JSON responses at its boundary. Exceptions raised by the
guarded handler are not wrapped and propagate unchanged.

Examples:
    Mapping an error to a response::

        from idempotency_guard.exceptions import IdempotencyError

        try:
            ...
        except IdempotencyError as e:
            return GuardResponse.json(e.status_code, {"message": e.message})

    Wrapping a backend failure::

        from idempotency_guard.exceptions import StorageError

        try:
            raw = await redis.get(key)
        except RedisError as e:
            raise StorageError(f"Failed to read {key} from Redis", cause=e) from e
"""


class IdempotencyError(Exception):
    """Base exception for all idempotency guard errors.

    Attributes:
        message: Human-readable error description, safe to return to clients.
        status_code: HTTP status the error maps to.
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class InvalidKeyError(IdempotencyError):
    """The idempotency key failed validation (empty, too short or too long).

    The client can recover by resubmitting with a valid key.

    Attributes:
        message: Human-readable error description.
        key: The rejected key.
    """

    status_code = 422

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key


class LockContentionError(IdempotencyError):
    """Another request holds the lock for this key.

    Raised when the lock could not be acquired within the configured wait.
    The client can recover by retrying with backoff.

    Attributes:
        message: Human-readable error description.
        lock_name: Name of the contended lock.
    """

    status_code = 409

    def __init__(
        self,
        lock_name: str,
        message: str = "A request with this idempotency key is already being processed.",
    ) -> None:
        super().__init__(message)
        self.lock_name = lock_name


class FingerprintMismatchError(IdempotencyError):
    """The key was reused with a different request body.

    Not recoverable without changing the key.

    Attributes:
        message: Human-readable error description.
        cache_key: The cache key whose stored record did not match.
        stored_fingerprint: Fingerprint kept on the stored record.
        request_fingerprint: Fingerprint of the incoming request body.

    Examples:
        Raising a mismatch::

            if record.fingerprint != request_fingerprint:
                raise FingerprintMismatchError(
                    cache_key=cache_key,
                    stored_fingerprint=record.fingerprint,
                    request_fingerprint=request_fingerprint,
                )
    """

    status_code = 422

    def __init__(
        self,
        cache_key: str,
        stored_fingerprint: str,
        request_fingerprint: str,
        message: str = "Idempotency key already used with a different request body.",
    ) -> None:
        super().__init__(message)
        self.cache_key = cache_key
        self.stored_fingerprint = stored_fingerprint
        self.request_fingerprint = request_fingerprint


class StorageError(IdempotencyError):
    """Storage or lock backend operation failed.

    This could be due to:

    1. Network failures (connection timeouts, DNS resolution)
    2. Backend service unavailability (Redis down)
    3. Corrupt data that no longer parses as a stored record

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the storage error.
    """

    status_code = 503

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the storage error with details.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused the storage error.
        """
        super().__init__(message)
        self.cause = cause
