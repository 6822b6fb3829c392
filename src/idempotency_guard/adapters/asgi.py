"""ASGI middleware adapter for FastAPI and Starlette applications.

The middleware:
1. Lets requests with non-enforced methods straight through
2. Converts Starlette requests to the internal Request format
3. Resolves the requester identity used to scope keys
4. Processes through the core guard
5. Converts the guard's response back to a Starlette Response

Examples:
    FastAPI integration::

        from fastapi import FastAPI
        from idempotency_guard.adapters.asgi import ASGIIdempotencyMiddleware
        from idempotency_guard.config import GuardConfig
        from idempotency_guard.storage import create_backends

        app = FastAPI()
        config = GuardConfig.from_env()
        cache, lock = create_backends(config)

        app.add_middleware(
            ASGIIdempotencyMiddleware,
            cache=cache,
            lock=lock,
            config=config,
        )

    Scoping keys to an API client instead of the authenticated user::

        app.add_middleware(
            ASGIIdempotencyMiddleware,
            cache=cache,
            lock=lock,
            identity_resolver=lambda request: request.headers.get("x-api-client"),
        )
"""

from collections.abc import Awaitable, Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response

from idempotency_guard.config import GuardConfig
from idempotency_guard.core.middleware import IdempotencyGuard, Request
from idempotency_guard.core.replay import GuardResponse
from idempotency_guard.storage.base import DistributedLock, ResponseCache

IdentityResolver = Callable[[StarletteRequest], str | None]


def default_identity_resolver(request: StarletteRequest) -> str | None:
    """Return the authenticated user's identity, if any.

    Reads the user set by Starlette's AuthenticationMiddleware, falling back
    to display_name for user classes that do not implement identity. Without
    that middleware, or for anonymous users, keys are not scoped.
    """
    user = request.scope.get("user")
    if user is None or not getattr(user, "is_authenticated", False):
        return None

    try:
        identity = user.identity
    except (AttributeError, NotImplementedError):
        identity = getattr(user, "display_name", None)

    return str(identity) if identity else None


class ASGIIdempotencyMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for idempotency handling.

    Attributes:
        guard: Core guard instance
        identity_resolver: Callable returning the requester identity
    """

    def __init__(
        self,
        app: Any,
        cache: ResponseCache,
        lock: DistributedLock,
        config: GuardConfig | None = None,
        identity_resolver: IdentityResolver = default_identity_resolver,
    ) -> None:
        """Initialize the ASGI middleware.

        Args:
            app: The ASGI application
            cache: Response cache for memoized records
            lock: Distributed lock for first executions
            config: Configuration object (uses defaults if not provided)
            identity_resolver: Callable returning the requester identity
        """
        super().__init__(app)
        self.guard = IdempotencyGuard(cache, lock, config or GuardConfig())
        self.identity_resolver = identity_resolver

    async def dispatch(
        self,
        request: StarletteRequest,
        call_next: Callable[[StarletteRequest], Awaitable[Response]],
    ) -> Response:
        """Process an ASGI request with idempotency handling."""
        if not self.guard.should_process(request.method):
            return await call_next(request)

        internal_request = await self._convert_request(request)

        async def handler(_req: Request) -> GuardResponse:
            response = await call_next(request)
            return await self._read_response(response)

        result = await self.guard.process(
            internal_request,
            handler,
            identity=self.identity_resolver(request),
        )

        return self._convert_response(result)

    async def _convert_request(self, request: StarletteRequest) -> Request:
        body = await request.body()

        return Request(
            method=request.method,
            path=request.url.path,
            query_string=request.url.query or "",
            headers=dict(request.headers.items()),
            body=body,
        )

    async def _read_response(self, response: Response) -> GuardResponse:
        """Drain a downstream response into a GuardResponse."""
        body = b""
        if hasattr(response, "body_iterator"):
            async for chunk in response.body_iterator:
                if isinstance(chunk, str):
                    chunk = chunk.encode(getattr(response, "charset", "utf-8"))
                body += bytes(chunk)
        else:
            body = bytes(getattr(response, "body", b""))

        headers = [
            (key.decode("latin-1"), value.decode("latin-1"))
            for key, value in response.raw_headers
        ]

        return GuardResponse(status=response.status_code, headers=headers, body=body)

    def _convert_response(self, response: GuardResponse) -> Response:
        """Convert a GuardResponse to a Starlette Response.

        Raw headers are set directly so repeated headers survive.
        """
        raw_headers = [
            (key.lower().encode("latin-1"), value.encode("latin-1"))
            for key, value in response.headers
            if key.lower() != "content-length"
        ]
        raw_headers.append((b"content-length", str(len(response.body)).encode("latin-1")))

        result = Response(content=response.body, status_code=response.status)
        result.raw_headers = raw_headers
        return result
