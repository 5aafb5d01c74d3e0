"""Tests for WeCom callback signature verification."""

import hashlib
import itertools

from wecom_relay.core.security import bearer_matches, compute_signature, verify_signature

TOKEN = "tok"
TIMESTAMP = "1700000000"
NONCE = "abc123"
PAYLOAD = "challengeXYZ"


def _expected_sha1(*parts: str) -> str:
    return hashlib.sha1("".join(sorted(parts)).encode()).hexdigest()


def _flip_hex(value: str, index: int = 0) -> str:
    replacement = "0" if value[index] != "0" else "1"
    return value[:index] + replacement + value[index + 1:]


def test_verify_signature_accepts_expected_digest() -> None:
    """A signature computed over the sorted fields verifies."""
    signature = _expected_sha1(TOKEN, TIMESTAMP, NONCE, PAYLOAD)
    assert verify_signature(TOKEN, TIMESTAMP, NONCE, signature, PAYLOAD) is True


def test_verify_signature_rejects_flipped_character() -> None:
    signature = _expected_sha1(TOKEN, TIMESTAMP, NONCE, PAYLOAD)
    assert verify_signature(TOKEN, TIMESTAMP, NONCE, _flip_hex(signature), PAYLOAD) is False
    assert verify_signature(TOKEN, TIMESTAMP, NONCE, _flip_hex(signature, 39), PAYLOAD) is False


def test_verify_signature_rejects_uppercase_hex() -> None:
    signature = _expected_sha1(TOKEN, TIMESTAMP, NONCE, PAYLOAD).upper()
    assert verify_signature(TOKEN, TIMESTAMP, NONCE, signature, PAYLOAD) is False


def test_compute_signature_is_order_invariant() -> None:
    """Permuting timestamp/nonce/payload does not change the digest."""
    digests = {
        compute_signature(TOKEN, *permutation)
        for permutation in itertools.permutations((TIMESTAMP, NONCE, PAYLOAD))
    }
    assert digests == {_expected_sha1(TOKEN, TIMESTAMP, NONCE, PAYLOAD)}


def test_compute_signature_is_sensitive_to_every_field() -> None:
    baseline = compute_signature(TOKEN, TIMESTAMP, NONCE, PAYLOAD)
    assert compute_signature(TOKEN + "x", TIMESTAMP, NONCE, PAYLOAD) != baseline
    assert compute_signature(TOKEN, "1700000001", NONCE, PAYLOAD) != baseline
    assert compute_signature(TOKEN, TIMESTAMP, "abc124", PAYLOAD) != baseline
    assert compute_signature(TOKEN, TIMESTAMP, NONCE, "challengeXYz") != baseline


def test_bearer_matches() -> None:
    assert bearer_matches("Bearer s3cret", "s3cret") is True
    assert bearer_matches("Bearer other", "s3cret") is False
    assert bearer_matches("bearer s3cret", "s3cret") is False
    assert bearer_matches(None, "s3cret") is False
    assert bearer_matches("Bearer ", None) is False
    assert bearer_matches("Bearer ", "") is False
