"""
Pydantic schemas for API request/response models.
"""

from .wecom import (
    KfCustomerBatchGetRequest,
    KfSendRequest,
    KfSyncRequest,
    KfTokenResponse,
    SendTextRequest,
    SendTextResponse,
)

__all__ = [
    "KfCustomerBatchGetRequest",
    "KfSendRequest",
    "KfSyncRequest",
    "KfTokenResponse",
    "SendTextRequest",
    "SendTextResponse",
]
