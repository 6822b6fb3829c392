"""Framework-agnostic idempotency guard.

The guard is a single linear decision procedure per request:

1. Eligibility: only configured methods (POST and PATCH by default) are guarded
2. Key extraction: no key header means the request passes through untouched
3. Key validation: empty, too short or too long keys get a 422
4. Arbitration: replay a stored response, or execute once under a lock
5. Error mapping: guard errors become JSON responses; handler errors propagate

It holds no state of its own beyond the injected cache, lock and config, so
any number of guard instances can run side by side.

Examples:
    Using the guard directly::

        from idempotency_guard.core.middleware import IdempotencyGuard, Request
        from idempotency_guard.core.replay import GuardResponse
        from idempotency_guard.storage.memory import MemoryLock, MemoryResponseCache

        guard = IdempotencyGuard(MemoryResponseCache(), MemoryLock())

        async def handler(request: Request) -> GuardResponse:
            return GuardResponse.json(201, {"id": 42})

        response = await guard.process(request, handler, identity="user-7")
"""

from collections.abc import Awaitable, Callable

from idempotency_guard.config import GuardConfig
from idempotency_guard.core.arbitration import process_request
from idempotency_guard.core.replay import GuardResponse
from idempotency_guard.exceptions import (
    FingerprintMismatchError,
    IdempotencyError,
    InvalidKeyError,
    LockContentionError,
    StorageError,
)
from idempotency_guard.fingerprint import compute_fingerprint
from idempotency_guard.observability.logging import get_logger
from idempotency_guard.observability.metrics import record_request
from idempotency_guard.storage.base import DistributedLock, ResponseCache
from idempotency_guard.utils.headers import get_header_value

logger = get_logger(__name__)

CACHE_KEY_PREFIX = "idempotency"

STORAGE_UNAVAILABLE_MESSAGE = "Idempotency store is unavailable."

# Outcome label per error type, for metrics
_ERROR_RESULTS: dict[type[IdempotencyError], str] = {
    InvalidKeyError: "invalid_key",
    LockContentionError: "contention",
    FingerprintMismatchError: "mismatch",
    StorageError: "storage_error",
}


class Request:
    """Abstract request representation.

    Framework adapters convert their framework-specific request objects
    into this format.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: URL path
        query_string: Query string without leading '?'
        headers: Request headers as dict
        body: Raw request body as bytes
    """

    def __init__(
        self,
        method: str,
        path: str,
        query_string: str,
        headers: dict[str, str],
        body: bytes,
    ) -> None:
        self.method = method
        self.path = path
        self.query_string = query_string
        self.headers = headers
        self.body = body


Handler = Callable[[Request], Awaitable[GuardResponse]]


class IdempotencyGuard:
    """Idempotency guard for mutating HTTP requests.

    Attributes:
        cache: Response cache for memoized records
        lock: Distributed lock serializing first executions per key
        config: Immutable guard configuration
    """

    def __init__(
        self,
        cache: ResponseCache,
        lock: DistributedLock,
        config: GuardConfig | None = None,
    ) -> None:
        """Initialize the guard.

        Args:
            cache: Response cache for memoized records
            lock: Distributed lock
            config: Configuration object (defaults if not provided)
        """
        self.cache = cache
        self.lock = lock
        self.config = config or GuardConfig()

    def should_process(self, method: str) -> bool:
        """Return True if requests with this method go through the guard."""
        return method.upper() in self.config.enforced_methods

    def build_cache_key(self, key: str, identity: str | None = None) -> str:
        """Derive the cache key, scoped to the requester when known.

        Example:
            >>> guard.build_cache_key("abc-123-def")
            'idempotency:abc-123-def'
            >>> guard.build_cache_key("abc-123-def", identity="42")
            'idempotency:abc-123-def:user_42'
        """
        parts = [CACHE_KEY_PREFIX, key]
        if identity:
            parts.append(f"user_{identity}")
        return ":".join(parts)

    async def process(
        self,
        request: Request,
        handler: Handler,
        identity: str | None = None,
    ) -> GuardResponse:
        """Process a request with idempotency handling.

        Args:
            request: The incoming request
            handler: Async function producing the response if not replayed
            identity: Optional requester identity used to scope the key

        Returns:
            GuardResponse: the handler's response, a replay, or a JSON error

        Raises:
            Exception: Whatever the handler raises, unchanged
        """
        if not self.should_process(request.method):
            return await handler(request)

        key = self._extract_key(request)
        if key is None:
            logger.debug("guard.bypassed", method=request.method, path=request.path)
            return await handler(request)

        try:
            self._validate_key(key)

            cache_key = self.build_cache_key(key, identity)
            result = await process_request(
                cache=self.cache,
                lock=self.lock,
                cache_key=cache_key,
                fingerprint=compute_fingerprint(request.body),
                handler=handler,
                request=request,
                config=self.config,
            )
        except IdempotencyError as e:
            return self._error_response(e, request)

        response = result.response
        if result.was_replayed:
            logger.info("request.replayed", cache_key=cache_key, status=response.status)
            record_request("replayed", response.status)
        else:
            logger.info(
                "request.executed",
                cache_key=cache_key,
                status=response.status,
                memoized=result.memoized,
                execution_time_ms=result.execution_time_ms,
            )
            record_request("executed" if result.memoized else "not_memoized", response.status)

        return response

    def _extract_key(self, request: Request) -> str | None:
        """Return the raw key header value, or None when absent.

        The value is not trimmed: keys compare byte-for-byte.
        """
        return get_header_value(request.headers, self.config.header_name)

    def _validate_key(self, key: str) -> None:
        """Validate idempotency key length.

        Raises:
            InvalidKeyError: If key is empty, too short or too long
        """
        min_length = self.config.min_key_length
        if min_length > 0 and len(key) < min_length:
            raise InvalidKeyError(
                f"Idempotency key must be at least {min_length} characters.",
                key=key,
            )

        if not key:
            raise InvalidKeyError("Idempotency key must not be empty.", key=key)

        max_length = self.config.max_key_length
        if max_length > 0 and len(key) > max_length:
            raise InvalidKeyError(
                f"Idempotency key must be at most {max_length} characters.",
                key=key,
            )

    def _error_response(self, error: IdempotencyError, request: Request) -> GuardResponse:
        result = _ERROR_RESULTS.get(type(error), "error")

        if isinstance(error, StorageError):
            logger.error(
                "storage.unavailable",
                method=request.method,
                path=request.path,
                error=error.message,
            )
            message = STORAGE_UNAVAILABLE_MESSAGE
        else:
            logger.warning(
                "request.rejected",
                result=result,
                status=error.status_code,
                path=request.path,
            )
            message = error.message

        record_request(result, error.status_code)

        return GuardResponse.json(error.status_code, {"message": message})
