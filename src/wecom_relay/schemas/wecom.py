"""Request and response schemas for the WeCom relay routes."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SendTextRequest(BaseModel):
    """Outbound enterprise text message requested by the backend."""

    model_config = ConfigDict(populate_by_name=True)

    to_user: str | None = Field(None, alias="toUser", description="WeCom user id(s)")
    content: str | None = Field(None, description="Message text")


class SendTextResponse(BaseModel):
    ok: bool = True
    result: dict[str, Any]


class KfTokenResponse(BaseModel):
    access_token: str


class KfSyncRequest(BaseModel):
    """Parameters for ``kf/sync_msg``."""

    cursor: str | None = None
    token: str | None = Field(None, description="Sync token from the KF callback event")
    open_kfid: str | None = None
    limit: int | None = Field(None, ge=1, le=1000)


class KfSendRequest(BaseModel):
    """Parameters for ``kf/send_msg``."""

    touser: str | None = None
    open_kfid: str | None = None
    msgtype: str | None = None
    text: dict[str, Any] | None = None


class KfCustomerBatchGetRequest(BaseModel):
    """Parameters for ``kf/customer/batchget``."""

    external_userid_list: list[str] = Field(default_factory=list)
