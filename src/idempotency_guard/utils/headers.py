"""Header helpers for the idempotency guard.

Response headers travel through the guard as ordered (name, value) pairs so
repeated headers survive. Stored records keep them grouped as name to list of
values. This module converts between the two shapes and provides the
case-insensitive lookups and filtering the guard needs.
"""

from collections.abc import Iterable

HeaderPairs = list[tuple[str, str]]

DEFAULT_STRIPPED_HEADERS = frozenset({"set-cookie", "date", "transfer-encoding"})


def get_header_value(
    headers: dict[str, str],
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Get header value with case-insensitive lookup.

    Args:
        headers: Headers dictionary
        header_name: Name of header to find (case-insensitive)
        default: Default value if header not found

    Returns:
        Header value or default

    Example:
        >>> get_header_value({"Idempotency-Key": "abc"}, "idempotency-key")
        'abc'
        >>> get_header_value({}, "missing", "default")
        'default'
    """
    header_name_lower = header_name.lower()

    for key, value in headers.items():
        if key.lower() == header_name_lower:
            return value

    return default


def filter_response_headers(
    headers: Iterable[tuple[str, str]],
    stripped: Iterable[str] = DEFAULT_STRIPPED_HEADERS,
) -> HeaderPairs:
    """Drop per-response headers that must not be replayed.

    Args:
        headers: Original response headers as (name, value) pairs
        stripped: Header names to remove (case-insensitive)

    Returns:
        Remaining pairs, in their original order

    Example:
        >>> filter_response_headers([("Content-Type", "text/plain"), ("Date", "Mon")])
        [('Content-Type', 'text/plain')]
    """
    headers_to_remove = {name.lower() for name in stripped}
    return [(key, value) for key, value in headers if key.lower() not in headers_to_remove]


def group_headers(headers: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    """Group header pairs into name to ordered values.

    Names are grouped case-insensitively; the first spelling seen is kept.

    Example:
        >>> group_headers([("Vary", "Accept"), ("vary", "Origin"), ("X-A", "1")])
        {'Vary': ['Accept', 'Origin'], 'X-A': ['1']}
    """
    canonical_keys: dict[str, str] = {}
    grouped: dict[str, list[str]] = {}

    for key, value in headers:
        name = canonical_keys.setdefault(key.lower(), key)
        grouped.setdefault(name, []).append(value)

    return grouped


def flatten_headers(headers: dict[str, list[str]]) -> HeaderPairs:
    """Inverse of group_headers."""
    return [(key, value) for key, values in headers.items() for value in values]


def set_header(headers: Iterable[tuple[str, str]], name: str, value: str) -> HeaderPairs:
    """Return headers with every occurrence of name replaced by a single value.

    Example:
        >>> set_header([("x-a", "1"), ("X-A", "2")], "X-A", "3")
        [('X-A', '3')]
    """
    name_lower = name.lower()
    result = [(key, val) for key, val in headers if key.lower() != name_lower]
    result.append((name, value))
    return result
