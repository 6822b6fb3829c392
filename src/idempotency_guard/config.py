"""Configuration module for the idempotency guard.

This module provides the GuardConfig class, an immutable value passed into the
guard's constructor. It covers which requests are guarded, how keys are
validated, how long responses are memoized and how the per-key lock behaves.

Example:
    Basic usage with defaults:

        >>> config = GuardConfig()
        >>> config.enforced_methods
        ['POST', 'PATCH']
        >>> config.ttl_seconds
        86400

    Custom configuration:

        >>> config = GuardConfig(
        ...     enforced_methods=["POST", "PUT"],
        ...     ttl_minutes=60,
        ...     store="redis",
        ...     redis_url="redis://cache:6379/1",
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['IDEMPOTENCY_TTL_MINUTES'] = '60'
        >>> os.environ['IDEMPOTENCY_ENFORCE_BODY_MATCH'] = 'false'
        >>> config = GuardConfig.from_env()
"""

import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_HTTP_METHODS = {
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "CONNECT",
    "OPTIONS",
    "TRACE",
    "PATCH",
}

# One year
MAX_TTL_MINUTES = 525600

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class GuardConfig(BaseModel):
    """Configuration for the idempotency guard.

    Attributes:
        header_name: Request header carrying the idempotency key. Looked up
            case-insensitively. Default is "Idempotency-Key".
        replay_header_name: Response header set to "true" or "false" on guarded
            responses. Default is "Idempotent-Replayed".
        ttl_minutes: How long a stored response is kept. After this the same key
            is treated as a fresh request. Default is 1440 (24 hours).
        store: Backend for records and locks: "memory" or "redis".
        redis_url: Connection URL used when store is "redis".
        enforced_methods: HTTP methods the guard applies to. GET, PUT and DELETE
            are idempotent by protocol, so the default is POST and PATCH.
        min_key_length: Minimum accepted key length. 0 disables the check.
        max_key_length: Maximum accepted key length. 0 disables the check.
        enforce_body_match: Reject a reused key whose request body differs from
            the body that produced the stored response.
        lock_lease_seconds: Lease of the per-key lock. Bounds how long a crashed
            holder can block a key.
        lock_wait_seconds: How long a contending request keeps retrying the lock
            before getting a 409. 0 means a single attempt.
        lock_retry_interval_seconds: Delay between lock attempts while waiting.
        stripped_response_headers: Response headers never stored for replay.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    header_name: str = Field(
        default="Idempotency-Key",
        description="Request header carrying the idempotency key",
    )
    replay_header_name: str = Field(
        default="Idempotent-Replayed",
        description="Response header marking replayed responses",
    )
    ttl_minutes: int = Field(
        default=1440,
        description="Lifetime of stored responses in minutes (1-525600)",
    )
    store: Literal["memory", "redis"] = Field(
        default="memory",
        description="Backend for stored records and locks",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL for the Redis backend",
    )
    enforced_methods: list[str] | str = Field(
        default=["POST", "PATCH"],
        description="HTTP methods that go through the guard",
    )
    min_key_length: int = Field(
        default=8,
        description="Minimum idempotency key length (0 disables)",
    )
    max_key_length: int = Field(
        default=255,
        description="Maximum idempotency key length (0 disables)",
    )
    enforce_body_match: bool = Field(
        default=True,
        description="Reject reused keys sent with a different body",
    )
    lock_lease_seconds: int = Field(
        default=30,
        description="Lease of the per-key lock in seconds (1-3600)",
    )
    lock_wait_seconds: float = Field(
        default=0.0,
        description="How long to retry the lock before answering 409",
    )
    lock_retry_interval_seconds: float = Field(
        default=0.05,
        description="Delay between lock attempts while waiting",
    )
    stripped_response_headers: list[str] | str = Field(
        default=["set-cookie", "date", "transfer-encoding"],
        description="Response headers that are not stored for replay",
    )

    model_config = {"frozen": True}

    @property
    def ttl_seconds(self) -> int:
        """Stored record lifetime in seconds."""
        return self.ttl_minutes * 60

    @field_validator("header_name", "replay_header_name")
    @classmethod
    def validate_header_name(cls, v: str) -> str:
        """Reject blank header names."""
        if not v or not v.strip():
            raise ValueError("header names must not be empty")
        return v.strip()

    @field_validator("enforced_methods", mode="before")
    @classmethod
    def validate_enforced_methods(cls, v: Any) -> list[str]:
        """Validate and normalize enforced HTTP methods.

        Args:
            v: List of HTTP method strings or comma-separated string.

        Returns:
            List of uppercase, validated HTTP methods.

        Raises:
            ValueError: If any method is not a valid HTTP method.

        Example:
            >>> GuardConfig(enforced_methods="post, patch").enforced_methods
            ['POST', 'PATCH']
        """
        if isinstance(v, str):
            v = [method.strip() for method in v.split(",") if method.strip()]

        if not isinstance(v, list):
            raise ValueError("enforced_methods must be a list or comma-separated string")

        methods = [method.upper() for method in v]

        invalid_methods = set(methods) - VALID_HTTP_METHODS
        if invalid_methods:
            raise ValueError(
                f"Invalid HTTP methods: {', '.join(sorted(invalid_methods))}. "
                f"Valid methods are: {', '.join(sorted(VALID_HTTP_METHODS))}"
            )

        return methods

    @field_validator("ttl_minutes")
    @classmethod
    def validate_ttl_minutes(cls, v: int) -> int:
        if not (1 <= v <= MAX_TTL_MINUTES):
            raise ValueError(f"ttl_minutes must be between 1 and {MAX_TTL_MINUTES}, got {v}")
        return v

    @field_validator("min_key_length", "max_key_length")
    @classmethod
    def validate_key_length(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"key length limits must be >= 0, got {v}")
        return v

    @field_validator("lock_lease_seconds")
    @classmethod
    def validate_lock_lease_seconds(cls, v: int) -> int:
        if not (1 <= v <= 3600):
            raise ValueError(f"lock_lease_seconds must be between 1 and 3600, got {v}")
        return v

    @field_validator("lock_wait_seconds")
    @classmethod
    def validate_lock_wait_seconds(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"lock_wait_seconds must be >= 0, got {v}")
        return v

    @field_validator("lock_retry_interval_seconds")
    @classmethod
    def validate_lock_retry_interval_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"lock_retry_interval_seconds must be > 0, got {v}")
        return v

    @field_validator("stripped_response_headers", mode="before")
    @classmethod
    def validate_stripped_response_headers(cls, v: Any) -> list[str]:
        """Normalize stripped header names to lowercase.

        Example:
            >>> GuardConfig(stripped_response_headers=["Set-Cookie", "X-Trace"]).stripped_response_headers
            ['set-cookie', 'x-trace']
        """
        if isinstance(v, str):
            v = [header.strip() for header in v.split(",") if header.strip()]

        if not isinstance(v, list):
            raise ValueError("stripped_response_headers must be a list or comma-separated string")

        return [header.lower() for header in v]

    @model_validator(mode="after")
    def validate_cross_field_limits(self) -> "GuardConfig":
        """Check limits that depend on more than one field.

        Raises:
            ValueError: If the key length bounds or lock timings contradict each other.
        """
        if self.min_key_length and self.max_key_length and self.min_key_length > self.max_key_length:
            raise ValueError(
                f"min_key_length ({self.min_key_length}) must not exceed "
                f"max_key_length ({self.max_key_length})"
            )
        if self.lock_wait_seconds >= self.lock_lease_seconds:
            raise ValueError(
                f"lock_wait_seconds ({self.lock_wait_seconds}) must be shorter than "
                f"lock_lease_seconds ({self.lock_lease_seconds})"
            )
        if self.lock_lease_seconds >= self.ttl_seconds:
            raise ValueError("lock_lease_seconds must be shorter than the record TTL")
        return self

    @classmethod
    def from_env(cls, prefix: str = "IDEMPOTENCY_") -> "GuardConfig":
        """Create configuration from environment variables.

        Variable names are the uppercase field names with the prefix, e.g.
        IDEMPOTENCY_HEADER_NAME or IDEMPOTENCY_LOCK_WAIT_SECONDS.

        Args:
            prefix: Prefix for environment variable names.

        Returns:
            GuardConfig populated from the environment; missing variables
            keep their defaults.

        Raises:
            ValueError: If a boolean or numeric variable cannot be parsed.
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "header_name": str,
            "replay_header_name": str,
            "ttl_minutes": int,
            "store": str,
            "redis_url": str,
            "enforced_methods": list,
            "min_key_length": int,
            "max_key_length": int,
            "enforce_body_match": bool,
            "lock_lease_seconds": int,
            "lock_wait_seconds": float,
            "lock_retry_interval_seconds": float,
            "stripped_response_headers": list,
        }

        for field_name, field_type in field_types.items():
            env_var = f"{prefix}{field_name.upper()}"
            env_value = os.environ.get(env_var)

            if env_value is None:
                continue

            if field_type is int:
                config_dict[field_name] = int(env_value)
            elif field_type is float:
                config_dict[field_name] = float(env_value)
            elif field_type is bool:
                config_dict[field_name] = _parse_bool(env_var, env_value)
            else:
                # Lists stay comma-separated strings; validators split them
                config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "GuardConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")
