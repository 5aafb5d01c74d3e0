"""Inbound WeCom callback endpoints.

WeCom calls these routes directly. GET requests are URL-verification
handshakes, answered locally when the callback token and EncodingAESKey are
configured and otherwise forwarded to the backend. POST requests carry
encrypted message XML and are always forwarded untouched.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse

from wecom_relay.api.dependencies import ForwarderDep, SettingsDep
from wecom_relay.core.errors import (
    ConfigError,
    DecryptError,
    MissingParameters,
    VerificationFailure,
)
from wecom_relay.core.settings import Settings
from wecom_relay.services.callback import VerificationRequest, open_challenge

logger = logging.getLogger(__name__)

# One body for every verification or decryption failure.
FORBIDDEN_BODY = "forbidden"
MISCONFIGURED_BODY = "server misconfigured"
KF_ACK_BODY = "success"
HTTP_PAYLOAD_TOO_LARGE = 413

router = APIRouter(prefix="/wecom", tags=["callbacks"])


def answer_handshake(app_settings: Settings, request: VerificationRequest) -> PlainTextResponse:
    """Run the local handshake and map its outcome to a plain-text response."""
    try:
        plaintext = open_challenge(
            app_settings.wecom_token,
            app_settings.wecom_encoding_aes_key,
            app_settings.wecom_corp_id,
            request,
        )
    except MissingParameters as err:
        logger.warning("Callback handshake rejected: %s", err)
        return PlainTextResponse(str(err), status_code=status.HTTP_400_BAD_REQUEST)
    except VerificationFailure:
        logger.warning("Callback handshake rejected: signature verification failed")
        return PlainTextResponse(FORBIDDEN_BODY, status_code=status.HTTP_403_FORBIDDEN)
    except DecryptError as err:
        logger.warning("Callback handshake rejected: decryption failed (%s)", err)
        return PlainTextResponse(FORBIDDEN_BODY, status_code=status.HTTP_403_FORBIDDEN)
    except ConfigError as err:
        logger.error("Callback handshake misconfigured: %s", err)
        return PlainTextResponse(
            MISCONFIGURED_BODY,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return PlainTextResponse(plaintext)


async def read_limited_body(request: Request, limit: int) -> bytes | None:
    """Read the request body, or return None as soon as it exceeds ``limit`` bytes.

    Chunked uploads are counted while streaming, so an oversized body is
    never buffered in full.
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        return None

    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


def _too_large() -> PlainTextResponse:
    return PlainTextResponse(
        "payload too large",
        status_code=HTTP_PAYLOAD_TOO_LARGE,
    )


@router.get("/callback", response_class=PlainTextResponse)
async def verify_app_callback(
    request: Request,
    app_settings: SettingsDep,
    forwarder: ForwarderDep,
) -> PlainTextResponse:
    """Answer the enterprise app URL verification."""
    if app_settings.local_handshake_enabled:
        return answer_handshake(app_settings, VerificationRequest.from_query(request.query_params))

    url = forwarder.inbound_url(request.url.query)
    forwarded = await forwarder.forward("GET", url)
    return PlainTextResponse(forwarded.text, status_code=forwarded.status_code)


@router.post("/callback", response_class=PlainTextResponse)
async def relay_app_callback(
    request: Request,
    app_settings: SettingsDep,
    forwarder: ForwarderDep,
) -> PlainTextResponse:
    """Forward an inbound enterprise app message to the backend."""
    body = await read_limited_body(request, app_settings.max_body_bytes)
    if body is None:
        return _too_large()

    url = forwarder.inbound_url(request.url.query)
    forwarded = await forwarder.forward(
        "POST",
        url,
        body=body,
        content_type=request.headers.get("content-type"),
    )
    return PlainTextResponse(forwarded.text, status_code=forwarded.status_code)


@router.get("/kf-callback", response_class=PlainTextResponse)
async def verify_kf_callback(
    request: Request,
    app_settings: SettingsDep,
    forwarder: ForwarderDep,
) -> PlainTextResponse:
    """Answer the customer service (KF) URL verification."""
    if app_settings.local_handshake_enabled:
        return answer_handshake(app_settings, VerificationRequest.from_query(request.query_params))

    query = request.query_params
    url = forwarder.kf_url(
        {
            "msg_signature": query.get("msg_signature"),
            "timestamp": query.get("timestamp"),
            "nonce": query.get("nonce"),
            "echostr": query.get("echostr"),
        }
    )
    forwarded = await forwarder.forward("GET", url)
    return PlainTextResponse(forwarded.text, status_code=forwarded.status_code)


@router.post("/kf-callback", response_class=PlainTextResponse)
async def relay_kf_callback(
    request: Request,
    app_settings: SettingsDep,
    forwarder: ForwarderDep,
) -> PlainTextResponse:
    """Forward a KF event to the backend and acknowledge it to WeCom.

    WeCom only needs ``success``; the backend's own answer is not relayed.
    """
    body = await read_limited_body(request, app_settings.max_body_bytes)
    if body is None:
        return _too_large()

    query = request.query_params
    url = forwarder.kf_url(
        {
            "msg_signature": query.get("msg_signature"),
            "timestamp": query.get("timestamp"),
            "nonce": query.get("nonce"),
        }
    )
    forwarded = await forwarder.forward(
        "POST",
        url,
        body=body,
        content_type=request.headers.get("content-type"),
    )
    if forwarded.status_code >= status.HTTP_400_BAD_REQUEST:
        logger.warning("KF event forward answered %d", forwarded.status_code)
    return PlainTextResponse(KF_ACK_BODY)
