"""Signature utilities for WeCom callbacks and internal bearer auth."""
from __future__ import annotations

import hashlib
import hmac


def compute_signature(token: str, timestamp: str, nonce: str, payload: str) -> str:
    """Return the WeCom callback signature for the given fields.

    The four strings are sorted lexicographically, concatenated without a
    separator and hashed with SHA-1.

    Args:
        token: Shared callback token configured in the WeCom console.
        timestamp: ``timestamp`` query parameter.
        nonce: ``nonce`` query parameter.
        payload: The signed value (``echostr`` or the ``Encrypt`` element).

    Returns:
        Lowercase hex SHA-1 digest.
    """
    joined = "".join(sorted((token, timestamp, nonce, payload)))
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()


def verify_signature(
    token: str,
    timestamp: str,
    nonce: str,
    signature: str,
    payload: str,
) -> bool:
    """Verify a WeCom callback signature.

    Callers must reject requests with empty fields before calling this.

    Returns:
        True only when ``signature`` equals the recomputed digest exactly.
    """
    expected = compute_signature(token, timestamp, nonce, payload)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def bearer_matches(authorization: str | None, secret: str | None) -> bool:
    """Return True if ``authorization`` is ``Bearer <secret>`` for a configured secret."""
    if not secret or not authorization:
        return False
    expected = f"Bearer {secret}"
    return hmac.compare_digest(expected.encode("utf-8"), authorization.encode("utf-8"))
