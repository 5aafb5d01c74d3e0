"""Backend-facing endpoints that call the WeCom API on the backend's behalf.

All routes here require ``Authorization: Bearer <PROXY_SHARED_SECRET>``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from wecom_relay.api.dependencies import ProxyAuthDep, WeComClientDep
from wecom_relay.schemas.wecom import (
    KfCustomerBatchGetRequest,
    KfSendRequest,
    KfSyncRequest,
    KfTokenResponse,
    SendTextRequest,
    SendTextResponse,
)

router = APIRouter(prefix="/wecom", tags=["messages"], dependencies=[ProxyAuthDep])


@router.post("/send", response_model=SendTextResponse)
async def send_text(
    client: WeComClientDep,
    payload: SendTextRequest | None = None,
) -> Any:
    """Send an enterprise text message to a WeCom user.

    Args:
        client: WeCom API client
        payload: Recipient and message text

    Returns:
        ``{"ok": true, "result": <WeCom response>}`` or a 400 error body
    """
    if payload is None or not payload.to_user or not payload.content:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing toUser or content"},
        )
    result = await client.send_text(payload.to_user, payload.content)
    return SendTextResponse(result=result)


@router.get("/kf-token", response_model=KfTokenResponse)
async def get_kf_token(client: WeComClientDep) -> KfTokenResponse:
    """Return the cached customer service access token."""
    return KfTokenResponse(access_token=await client.get_kf_access_token())


@router.post("/kf-sync")
async def kf_sync(
    client: WeComClientDep,
    payload: KfSyncRequest | None = None,
) -> dict[str, Any]:
    """Pull customer service messages from WeCom."""
    payload = payload or KfSyncRequest()
    return await client.kf_sync_messages(
        cursor=payload.cursor,
        token=payload.token,
        open_kfid=payload.open_kfid,
        limit=payload.limit,
    )


@router.post("/kf-send")
async def kf_send(
    client: WeComClientDep,
    payload: KfSendRequest | None = None,
) -> dict[str, Any]:
    """Send a customer service message through WeCom."""
    payload = payload or KfSendRequest()
    return await client.kf_send_message(
        touser=payload.touser,
        open_kfid=payload.open_kfid,
        msgtype=payload.msgtype,
        text=payload.text,
    )


@router.post("/kf-customers")
async def kf_customers(
    client: WeComClientDep,
    payload: KfCustomerBatchGetRequest,
) -> dict[str, Any]:
    """Look up KF customer profiles by external user id."""
    try:
        return await client.kf_customer_batch_get(payload.external_userid_list)
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
