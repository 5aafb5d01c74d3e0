# tests/conftest.py
from __future__ import annotations

import base64
import json
import struct
from collections.abc import Callable, Iterator
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from fastapi import FastAPI
from fastapi.testclient import TestClient

from wecom_relay.api.dependencies import get_forwarder_dep, get_wecom_client_dep
from wecom_relay.core.settings import Settings, get_settings
from wecom_relay.main import app as fastapi_app
from wecom_relay.services.forwarder import BackendForwarder, ForwardConfig
from wecom_relay.services.wecom import WeComClient

KEY_BYTES = bytes(range(32))
KEY_MATERIAL = base64.b64encode(KEY_BYTES).decode().rstrip("=")
CORP_ID = "wxCORP123"
CALLBACK_TOKEN = "tok"
PROXY_SECRET = "proxy-secret"
INBOUND_URL = "https://backend.test/functions/v1/inbound-wecom"
FUNCTIONS_URL = "https://backend.test/functions/v1"


def encrypt_payload(
    message: str,
    receive_id: str = CORP_ID,
    *,
    key_material: str = KEY_MATERIAL,
    random_prefix: bytes = b"R" * 16,
    declared_length: int | None = None,
) -> str:
    """Encrypt a payload the way WeCom does, for feeding the decryptor."""
    key = base64.b64decode(key_material + "=")
    body = message.encode("utf-8")
    length = len(body) if declared_length is None else declared_length
    plaintext = random_prefix + struct.pack(">I", length) + body + receive_id.encode("utf-8")
    padder = padding.PKCS7(256).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(key[:16])).encryptor()
    return base64.b64encode(encryptor.update(padded) + encryptor.finalize()).decode()


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "proxy_shared_secret": PROXY_SECRET,
        "supabase_inbound_forward_url": INBOUND_URL,
        "supabase_functions_url": FUNCTIONS_URL,
        "wecom_corp_id": CORP_ID,
        "wecom_token": CALLBACK_TOKEN,
        "wecom_encoding_aes_key": KEY_MATERIAL,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class RecordingBackend:
    """httpx transport double that records requests and replies with a fixed response."""

    def __init__(self, status_code: int = 200, text: str = "ok") -> None:
        self.status_code = status_code
        self.text = text
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.text)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def json_transport(
    routes: dict[str, Callable[[httpx.Request], dict[str, Any]]],
    calls: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """Build a MockTransport that answers JSON per request path."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        build = routes.get(request.url.path)
        if build is None:
            return httpx.Response(404, json={"errcode": 404, "errmsg": "not found"})
        return httpx.Response(200, content=json.dumps(build(request)).encode())

    return httpx.MockTransport(handler)


@pytest.fixture()
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture()
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture()
def wecom_client() -> AsyncMock:
    return AsyncMock(spec=WeComClient)


@pytest.fixture()
def app(
    test_settings: Settings,
    backend: RecordingBackend,
    wecom_client: AsyncMock,
) -> Iterator[FastAPI]:
    forwarder = BackendForwarder(
        ForwardConfig(
            inbound_url=test_settings.supabase_inbound_forward_url,
            functions_url=test_settings.supabase_functions_url,
            timeout_seconds=5.0,
        ),
        transport=httpx.MockTransport(backend),
    )
    fastapi_app.dependency_overrides[get_settings] = lambda: test_settings
    fastapi_app.dependency_overrides[get_forwarder_dep] = lambda: forwarder
    fastapi_app.dependency_overrides[get_wecom_client_dep] = lambda: wecom_client
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {PROXY_SECRET}"}
