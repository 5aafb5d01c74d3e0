"""Exception hierarchy shared by the relay services and API layer."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class RelayError(RuntimeError):
    """Base exception for all relay failures."""


class ConfigError(RelayError):
    """Raised when required configuration is missing or malformed.

    Not retryable: the same configuration always fails the same way.
    """


class MissingParameters(RelayError):
    """Raised when a callback request lacks one of its verification fields."""

    def __init__(self, fields: list[str]) -> None:
        self.fields = fields
        super().__init__(f"Missing parameters: {', '.join(fields)}")


class VerificationFailure(RelayError):
    """Raised when a callback signature does not match."""


class DecryptError(RelayError):
    """Raised for any failure while opening an encrypted challenge.

    Padding, alignment, length-field and tenant failures all share this
    type so callers cannot tell them apart from the outside.
    """


class UpstreamError(RelayError):
    """Raised when WeCom or the backend cannot be reached."""


class WeComAPIError(UpstreamError):
    """Raised when the WeCom API answers with a non-zero ``errcode``."""

    def __init__(self, operation: str, payload: Mapping[str, Any] | None) -> None:
        self.operation = operation
        self.payload = dict(payload or {})
        super().__init__(f"{operation} failed: {self.payload}")

    @property
    def errcode(self) -> int | None:
        value = self.payload.get("errcode")
        return int(value) if value is not None else None
