"""Response memoization and replay.

A first execution's response is turned into a StoredRecord with
per-response headers (Set-Cookie, Date, Transfer-Encoding by default)
stripped. A later request with the same key gets a response rebuilt from
that record, marked as replayed.

Examples:
    Storing and replaying::

        from idempotency_guard.core.replay import GuardResponse, build_stored_record, replay_response

        original = GuardResponse.json(201, {"id": 42})
        record = build_stored_record(original, fingerprint="0" * 32)

        replayed = replay_response(record)
        # replayed.status == 201
        # replayed.get_header("Idempotent-Replayed") == "true"
"""

import json
from collections.abc import Iterable
from typing import Any

from idempotency_guard.models import StoredRecord
from idempotency_guard.utils.headers import (
    DEFAULT_STRIPPED_HEADERS,
    HeaderPairs,
    filter_response_headers,
    flatten_headers,
    group_headers,
    set_header,
)

DEFAULT_REPLAY_HEADER = "Idempotent-Replayed"


class GuardResponse:
    """HTTP response as seen by the guard.

    Framework adapters convert their own response objects into this form
    and back.

    Attributes:
        status: HTTP status code
        headers: Response headers as ordered (name, value) pairs
        body: Response body as bytes
    """

    def __init__(
        self,
        status: int,
        headers: Iterable[tuple[str, str]] | dict[str, str] | None = None,
        body: bytes = b"",
    ) -> None:
        if isinstance(headers, dict):
            headers = headers.items()
        self.status = status
        self.headers: HeaderPairs = list(headers or [])
        self.body = body

    @classmethod
    def json(cls, status: int, payload: Any) -> "GuardResponse":
        """Build a JSON response."""
        return cls(
            status=status,
            headers=[("content-type", "application/json")],
            body=json.dumps(payload).encode("utf-8"),
        )

    def get_header(self, name: str, default: str | None = None) -> str | None:
        """Return the first value of a header (case-insensitive)."""
        name_lower = name.lower()
        for key, value in self.headers:
            if key.lower() == name_lower:
                return value
        return default

    def __repr__(self) -> str:
        return f"GuardResponse(status={self.status}, headers={self.headers!r}, body={len(self.body)} bytes)"


def build_stored_record(
    response: GuardResponse,
    fingerprint: str,
    stripped_headers: Iterable[str] = DEFAULT_STRIPPED_HEADERS,
    replay_header_name: str = DEFAULT_REPLAY_HEADER,
) -> StoredRecord:
    """Capture a response for later replay.

    The replay marker is never stored; replay sets it afresh.

    Args:
        response: The response produced by the first execution
        fingerprint: Fingerprint of the request body that produced it
        stripped_headers: Header names to leave out (case-insensitive)
        replay_header_name: Name of the replay marker header

    Returns:
        StoredRecord ready to be written to the cache
    """
    headers = filter_response_headers(response.headers, [*stripped_headers, replay_header_name])

    return StoredRecord.from_response(
        status=response.status,
        headers=group_headers(headers),
        body=response.body,
        fingerprint=fingerprint,
    )


def replay_response(
    record: StoredRecord,
    replay_header_name: str = DEFAULT_REPLAY_HEADER,
) -> GuardResponse:
    """Reconstruct the original response from a stored record.

    Args:
        record: The memoized record
        replay_header_name: Name of the replay marker header

    Returns:
        GuardResponse with the stored status, headers and body, and the
        replay marker set to "true"
    """
    headers = set_header(flatten_headers(record.headers), replay_header_name, "true")

    return GuardResponse(
        status=record.status,
        headers=headers,
        body=record.get_body_bytes(),
    )


def mark_fresh(response: GuardResponse, replay_header_name: str = DEFAULT_REPLAY_HEADER) -> GuardResponse:
    """Set the replay marker to "false" on a first-execution response."""
    response.headers = set_header(response.headers, replay_header_name, "false")
    return response

