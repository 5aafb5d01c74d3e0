"""Relays inbound WeCom callbacks to the backend function host."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from wecom_relay.core.errors import ConfigError, UpstreamError
from wecom_relay.core.settings import Settings, settings

logger = logging.getLogger(__name__)

KF_FUNCTION_PATH = "/inbound-wecom-kf"
DEFAULT_CONTENT_TYPE = "text/xml"


@dataclass(frozen=True)
class ForwardConfig:
    """Backend endpoints used for forwarding."""

    inbound_url: str | None
    functions_url: str | None
    timeout_seconds: float


@dataclass(frozen=True)
class ForwardedResponse:
    """Status and body returned by the backend, passed through unchanged."""

    status_code: int
    text: str


def load_forward_config(source: Settings | None = None) -> ForwardConfig:
    source = source or settings
    return ForwardConfig(
        inbound_url=source.supabase_inbound_forward_url,
        functions_url=source.supabase_functions_url,
        timeout_seconds=float(source.http_timeout_seconds),
    )


class BackendForwarder:
    """HTTP client that forwards raw callback requests to the backend."""

    def __init__(
        self,
        config: ForwardConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_forward_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    def inbound_url(self, query: str = "") -> str:
        """Return the inbound forward URL with the raw query string appended."""
        if not self.config.inbound_url:
            raise ConfigError("Missing SUPABASE_INBOUND_FORWARD_URL")
        return f"{self.config.inbound_url}?{query}" if query else self.config.inbound_url

    def kf_url(self, params: Mapping[str, str | None]) -> str:
        """Return the KF callback function URL with the given query parameters."""
        if not self.config.functions_url:
            raise ConfigError("Missing SUPABASE_FUNCTIONS_URL")
        base = self.config.functions_url.rstrip("/") + KF_FUNCTION_PATH
        query = urlencode({key: value for key, value in params.items() if value is not None})
        return f"{base}?{query}" if query else base

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def forward(
        self,
        method: str,
        url: str,
        *,
        body: bytes | None = None,
        content_type: str | None = None,
    ) -> ForwardedResponse:
        """Send a request to the backend and return its status and text.

        Raises:
            UpstreamError: If the backend cannot be reached.
        """
        client = await self._ensure_client()
        headers: dict[str, str] = {}
        if body is not None:
            headers["content-type"] = content_type or DEFAULT_CONTENT_TYPE
            logger.info("[%s] Forwarding to %s (body length %d)", method, url, len(body))
        else:
            logger.info("[%s] Forwarding to %s", method, url)

        try:
            response = await client.request(method, url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Backend request failed: {exc}") from exc

        logger.info("[%s] Backend response: %d", method, response.status_code)
        return ForwardedResponse(status_code=response.status_code, text=response.text)

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _BackendForwarderSingleton:
    """Singleton wrapper for BackendForwarder."""

    _instance: BackendForwarder | None = None

    @classmethod
    def get_instance(cls) -> BackendForwarder:
        if cls._instance is None:
            cls._instance = BackendForwarder()
        return cls._instance


def get_backend_forwarder() -> BackendForwarder:
    """Return a singleton backend forwarder instance."""
    return _BackendForwarderSingleton.get_instance()
