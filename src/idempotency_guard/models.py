"""Core type definitions for the idempotency guard.

This module provides the data structures persisted or handed around by the
guard: the memoized response record and the distributed lock token.

Examples:
    Creating a stored record::

        import base64
        from idempotency_guard.models import StoredRecord

        record = StoredRecord(
            status=201,
            headers={"content-type": ["application/json"]},
            body_b64=base64.b64encode(b'{"id": 42}').decode("ascii"),
            fingerprint="0" * 32,
        )
        record.get_body_bytes()  # b'{"id": 42}'

    Round-tripping through a string-valued store::

        payload = record.model_dump_json()
        restored = StoredRecord.model_validate_json(payload)
"""

import base64
import binascii
import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

FINGERPRINT_HEX_LENGTH = 32


class StoredRecord(BaseModel):
    """Memoized outcome of the first execution for a cache key.

    The record is written once, never mutated and replaced only after its TTL
    lapses and a new first request recreates it. The body is base64-encoded so
    binary content survives any storage backend.

    Attributes:
        status: HTTP status code of the original response.
        headers: Response headers, each name mapped to its ordered values.
        body_b64: Base64-encoded response body.
        fingerprint: Fingerprint of the request body that produced the response.
        created_at: When the record was written.
    """

    status: int = Field(
        ...,
        description="HTTP status code",
        ge=100,
        le=599,
        examples=[200, 201, 422],
    )
    headers: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Response headers as name to ordered values",
        examples=[{"content-type": ["application/json"]}],
    )
    body_b64: str = Field(
        ...,
        description="Base64-encoded response body",
        examples=["eyJpZCI6IDQyfQ=="],
    )
    fingerprint: str = Field(
        ...,
        description="Fingerprint of the originating request body",
        examples=["0f" * 16],
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp when the record was written",
    )

    model_config = {"frozen": True}

    @field_validator("body_b64")
    @classmethod
    def validate_base64(cls, v: str) -> str:
        """Validate that the body is properly base64-encoded.

        Raises:
            ValueError: If the string is not valid base64.
        """
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 encoding: {e}") from e
        return v

    @field_validator("fingerprint")
    @classmethod
    def validate_fingerprint(cls, v: str) -> str:
        """Validate that the fingerprint is a 128-bit lowercase hex digest."""
        if len(v) != FINGERPRINT_HEX_LENGTH:
            raise ValueError(
                f"Fingerprint must be exactly {FINGERPRINT_HEX_LENGTH} characters, got {len(v)}"
            )
        if not all(c in "0123456789abcdef" for c in v):
            raise ValueError("Fingerprint must contain only lowercase hex characters")
        return v

    @classmethod
    def from_response(
        cls,
        status: int,
        headers: dict[str, list[str]],
        body: bytes,
        fingerprint: str,
    ) -> "StoredRecord":
        """Build a record from raw response parts."""
        return cls(
            status=status,
            headers=headers,
            body_b64=base64.b64encode(body).decode("ascii"),
            fingerprint=fingerprint,
        )

    def get_body_bytes(self) -> bytes:
        """Decode and return the response body as bytes.

        Examples:
            >>> StoredRecord(status=200, body_b64="SGVsbG8=", fingerprint="a" * 32).get_body_bytes()
            b'Hello'
        """
        return base64.b64decode(self.body_b64)


class LockToken(BaseModel):
    """Handle of a held distributed lock.

    Attributes:
        name: Lock name, derived from the cache key.
        value: Owner marker; release only succeeds for the current owner.
        lease_seconds: Lease granted at acquisition.
    """

    name: str = Field(..., min_length=1, description="Lock name")
    value: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Owner marker for the lock",
    )
    lease_seconds: int = Field(..., ge=1, description="Lease in seconds")

    model_config = {"frozen": True}
