"""Unit tests for request body fingerprinting.

Includes property-based tests using Hypothesis.
"""

import hashlib

from hypothesis import given
from hypothesis import strategies as st

from idempotency_guard.fingerprint import compute_fingerprint
from idempotency_guard.models import FINGERPRINT_HEX_LENGTH


def test_known_digest() -> None:
    """Test that the fingerprint is a 128-bit BLAKE2b digest."""
    body = b'{"amount": 100}'
    assert compute_fingerprint(body) == hashlib.blake2b(body, digest_size=16).hexdigest()


def test_empty_body() -> None:
    """Test that an empty body still has a fingerprint."""
    fingerprint = compute_fingerprint(b"")

    assert len(fingerprint) == FINGERPRINT_HEX_LENGTH
    assert fingerprint == compute_fingerprint(b"")


def test_different_bodies_differ() -> None:
    """Test that different bodies give different fingerprints."""
    assert compute_fingerprint(b'{"amount": 100}') != compute_fingerprint(b'{"amount": 200}')


def test_no_canonicalization() -> None:
    """Test that reformatted JSON is a different body."""
    assert compute_fingerprint(b'{"a":1}') != compute_fingerprint(b'{"a": 1}')


@given(body=st.binary(max_size=4096))
def test_deterministic(body: bytes) -> None:
    """Property: the same body always gives the same fingerprint."""
    assert compute_fingerprint(body) == compute_fingerprint(bytes(body))


@given(body=st.binary(max_size=4096))
def test_format(body: bytes) -> None:
    """Property: fingerprints are 32 lowercase hex characters."""
    fingerprint = compute_fingerprint(body)

    assert len(fingerprint) == FINGERPRINT_HEX_LENGTH
    assert set(fingerprint) <= set("0123456789abcdef")


@given(first=st.binary(max_size=256), second=st.binary(max_size=256))
def test_distinct_bodies(first: bytes, second: bytes) -> None:
    """Property: distinct bodies do not collide."""
    if first != second:
        assert compute_fingerprint(first) != compute_fingerprint(second)
