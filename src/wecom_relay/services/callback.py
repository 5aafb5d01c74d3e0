"""URL-verification handshake for WeCom callbacks.

WeCom verifies a callback URL by sending ``msg_signature``, ``timestamp``,
``nonce`` and an encrypted ``echostr``. The receiver proves it holds the
token and EncodingAESKey by answering with the decrypted ``echostr``.
The signature is always checked before any ciphertext is decrypted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, fields

from wecom_relay.core.errors import ConfigError, MissingParameters, VerificationFailure
from wecom_relay.core.security import verify_signature
from wecom_relay.services.crypto import decrypt_challenge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationRequest:
    """Verification fields extracted from a callback query string."""

    timestamp: str
    nonce: str
    signature: str
    payload: str

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> VerificationRequest:
        """Build a request from WeCom's query parameter names."""
        return cls(
            timestamp=query.get("timestamp", ""),
            nonce=query.get("nonce", ""),
            signature=query.get("msg_signature", ""),
            payload=query.get("echostr", ""),
        )

    def missing_fields(self) -> list[str]:
        return [field.name for field in fields(self) if not getattr(self, field.name)]


def open_challenge(
    token: str | None,
    key_material: str | None,
    tenant_id: str | None,
    request: VerificationRequest,
) -> str:
    """Verify a callback handshake and return the plaintext ``echostr``.

    Args:
        token: Shared callback token.
        key_material: 43-character EncodingAESKey.
        tenant_id: Expected corp id, or None to skip the receive id check.
        request: Verification fields from the inbound request.

    Returns:
        The decrypted challenge, to be sent back verbatim.

    Raises:
        MissingParameters: If any verification field is empty.
        ConfigError: If the token or key material is missing or malformed.
        VerificationFailure: If the signature does not match.
        DecryptError: If the challenge cannot be decrypted.
    """
    missing = request.missing_fields()
    if missing:
        raise MissingParameters(missing)
    if not token or not key_material:
        raise ConfigError("callback token or EncodingAESKey not configured")

    if not verify_signature(
        token,
        request.timestamp,
        request.nonce,
        request.signature,
        request.payload,
    ):
        raise VerificationFailure("signature mismatch")

    plaintext = decrypt_challenge(key_material, tenant_id, request.payload)
    logger.debug("Callback handshake verified (timestamp=%s)", request.timestamp)
    return plaintext
