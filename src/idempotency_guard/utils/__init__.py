"""Utility modules for the idempotency guard."""

from .headers import (
    DEFAULT_STRIPPED_HEADERS,
    filter_response_headers,
    flatten_headers,
    get_header_value,
    group_headers,
    set_header,
)

__all__ = [
    "DEFAULT_STRIPPED_HEADERS",
    "filter_response_headers",
    "flatten_headers",
    "get_header_value",
    "group_headers",
    "set_header",
]
