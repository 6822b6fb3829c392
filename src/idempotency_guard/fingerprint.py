"""Request body fingerprinting.

The fingerprint is a 128-bit BLAKE2b digest of the raw request body. It is
only ever compared for equality, so the body is hashed byte-for-byte with no
canonicalization: a reformatted JSON payload is a different body.
"""

import hashlib

DIGEST_SIZE = 16


def compute_fingerprint(body: bytes) -> str:
    """Compute a deterministic fingerprint for a request body.

    Args:
        body: Raw request body bytes.

    Returns:
        Lowercase hex digest, 32 characters long.

    Examples:
        >>> compute_fingerprint(b"") == compute_fingerprint(b"")
        True
        >>> len(compute_fingerprint(b'{"amount": 100}'))
        32
    """
    return hashlib.blake2b(body, digest_size=DIGEST_SIZE).hexdigest()
