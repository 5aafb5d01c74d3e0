"""Business logic services for the WeCom relay."""

from .callback import VerificationRequest, open_challenge
from .crypto import CallbackCrypto, decrypt_challenge
from .forwarder import BackendForwarder
from .token_cache import AccessTokenCache
from .wecom import WeComClient

__all__ = [
    "AccessTokenCache",
    "BackendForwarder",
    "CallbackCrypto",
    "VerificationRequest",
    "WeComClient",
    "decrypt_challenge",
    "open_challenge",
]
