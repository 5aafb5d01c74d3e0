"""Decryption of WeCom encrypted callback payloads."""

from __future__ import annotations

import base64
import binascii
import struct
from dataclasses import dataclass

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from wecom_relay.core.errors import ConfigError, DecryptError

KEY_MATERIAL_LENGTH = 43
AES_KEY_BYTES = 32
IV_BYTES = 16
RANDOM_PREFIX_BYTES = 16
LENGTH_FIELD_BYTES = 4
HEADER_BYTES = RANDOM_PREFIX_BYTES + LENGTH_FIELD_BYTES

# WeCom pads plaintext to 32-byte blocks, not the AES block size.
PAD_BLOCK_BITS = 256

_DECRYPTION_FAILED = "decryption failed"


@dataclass(frozen=True)
class DecryptedPayload:
    """Plaintext recovered from an encrypted callback."""

    message: str
    receive_id: str


def decode_key_material(key_material: str) -> bytes:
    """Decode a 43-character EncodingAESKey into a 32-byte AES key.

    Args:
        key_material: EncodingAESKey as shown in the WeCom console (base64
            without its trailing ``=``).

    Returns:
        The raw AES-256 key.

    Raises:
        ConfigError: If the key material is not 43 characters or does not
            decode to 32 bytes.
    """
    cleaned = key_material.strip()
    if len(cleaned) != KEY_MATERIAL_LENGTH:
        raise ConfigError("key material malformed")
    try:
        key = base64.b64decode(cleaned + "=", validate=True)
    except (binascii.Error, ValueError) as err:
        raise ConfigError("key material malformed") from err
    if len(key) != AES_KEY_BYTES:
        raise ConfigError("key material malformed")
    return key


class CallbackCrypto:
    """Opens encrypted payloads for one corp's callback configuration."""

    def __init__(self, key_material: str, receive_id: str | None = None) -> None:
        self._key = decode_key_material(key_material)
        # External protocol constraint: WeCom derives the IV from the key
        # prefix. Do not reuse this convention outside WeCom interop.
        self._iv = self._key[:IV_BYTES]
        self.receive_id = receive_id or None

    def _decrypt_raw(self, encrypted_b64: str) -> bytes:
        try:
            ciphertext = base64.b64decode(encrypted_b64, validate=True)
        except (binascii.Error, ValueError) as err:
            raise DecryptError(_DECRYPTION_FAILED) from err

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(self._iv)).decryptor()
        try:
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(PAD_BLOCK_BITS).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as err:
            raise DecryptError(_DECRYPTION_FAILED) from err

    def open(self, encrypted_b64: str) -> DecryptedPayload:
        """Decrypt and parse an encrypted payload.

        The plaintext layout is 16 random bytes, a 4-byte big-endian message
        length, the message and finally the receive id (corp id).

        Raises:
            DecryptError: On any cipher, padding, layout or receive id failure.
        """
        plaintext = self._decrypt_raw(encrypted_b64)
        if len(plaintext) < HEADER_BYTES:
            raise DecryptError(_DECRYPTION_FAILED)

        (length,) = struct.unpack(">I", plaintext[RANDOM_PREFIX_BYTES:HEADER_BYTES])
        end = HEADER_BYTES + length
        if end > len(plaintext):
            raise DecryptError("length field exceeds buffer")

        try:
            message = plaintext[HEADER_BYTES:end].decode("utf-8")
            receive_id = plaintext[end:].decode("utf-8")
        except UnicodeDecodeError as err:
            raise DecryptError(_DECRYPTION_FAILED) from err

        # An empty recovered receive id is accepted.
        if self.receive_id and receive_id and receive_id != self.receive_id:
            raise DecryptError("tenant mismatch")

        return DecryptedPayload(message=message, receive_id=receive_id)

    def decrypt(self, encrypted_b64: str) -> str:
        """Return only the message part of an encrypted payload."""
        return self.open(encrypted_b64).message


def decrypt_challenge(key_material: str, tenant_id: str | None, encrypted_b64: str) -> str:
    """Decrypt a WeCom ``echostr`` challenge.

    Args:
        key_material: 43-character EncodingAESKey.
        tenant_id: Expected corp id; skipped when empty or None.
        encrypted_b64: Base64 ciphertext from the ``echostr`` parameter.

    Returns:
        The plaintext challenge to echo back.

    Raises:
        ConfigError: If the key material is malformed.
        DecryptError: If the ciphertext cannot be opened.
    """
    return CallbackCrypto(key_material, tenant_id).decrypt(encrypted_b64)
