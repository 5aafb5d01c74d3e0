"""WeCom API client.

This module provides the WeComClient class used for outbound calls from
the relay to the WeCom API:

- access token retrieval for the enterprise app and customer service (KF)
  secrets, each cached separately
- enterprise text messages
- KF message sync, KF send and KF customer profile lookup
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from wecom_relay.core.errors import ConfigError, UpstreamError, WeComAPIError
from wecom_relay.core.settings import Settings, settings
from wecom_relay.services.token_cache import AccessTokenCache

logger = logging.getLogger(__name__)

DEFAULT_KF_SYNC_LIMIT = 100
# invalid credential, invalid access_token, access_token expired
STALE_TOKEN_ERRCODES = frozenset({40001, 40014, 42001})


@dataclass(frozen=True)
class WeComConfig:
    """Immutable configuration for WeCom API operations."""

    base_url: str
    corp_id: str | None
    corp_secret: str | None
    agent_id: str | None
    kf_secret: str | None
    timeout_seconds: float
    token_margin_seconds: int = 60
    kf_token_margin_seconds: int = 300


def load_wecom_config(source: Settings | None = None) -> WeComConfig:
    """Build configuration object from settings."""

    source = source or settings
    return WeComConfig(
        base_url=source.wecom_api_base_url,
        corp_id=source.wecom_corp_id,
        corp_secret=source.wecom_secret,
        agent_id=source.wecom_agent_id,
        kf_secret=source.wecom_kf_secret,
        timeout_seconds=float(source.http_timeout_seconds),
        token_margin_seconds=source.access_token_margin_seconds,
        kf_token_margin_seconds=source.kf_access_token_margin_seconds,
    )


class WeComClient:
    """HTTP client wrapper for the WeCom API."""

    def __init__(
        self,
        config: WeComConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_wecom_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._app_tokens = AccessTokenCache(self.config.token_margin_seconds)
        self._kf_tokens = AccessTokenCache(self.config.kf_token_margin_seconds)

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def _call(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_data: Any | None = None,
    ) -> tuple[httpx.Response, dict[str, Any]]:
        client = await self._ensure_client()
        try:
            response = await client.request(method, path, params=params, json=json_data)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"{operation} request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"{operation} returned non-JSON response ({response.status_code})",
            ) from exc
        if not isinstance(payload, dict):
            raise UpstreamError(f"{operation} returned unexpected payload")
        return response, payload

    @staticmethod
    def _check(operation: str, response: httpx.Response, payload: Mapping[str, Any]) -> None:
        if response.is_error or payload.get("errcode", 0) != 0:
            raise WeComAPIError(operation, payload)

    @staticmethod
    def _forget_stale_token(
        tokens: AccessTokenCache, operation: str, payload: Mapping[str, Any]
    ) -> None:
        if payload.get("errcode") in STALE_TOKEN_ERRCODES:
            logger.warning(
                "%s rejected the cached access token (errcode %s); dropping it",
                operation,
                payload.get("errcode"),
            )
            tokens.invalidate()

    async def _fetch_token(self, corp_secret: str) -> tuple[str, int]:
        response, payload = await self._call(
            "gettoken",
            "GET",
            "/cgi-bin/gettoken",
            params={"corpid": self.config.corp_id, "corpsecret": corp_secret},
        )
        self._check("gettoken", response, payload)
        token = payload.get("access_token")
        if not token:
            raise WeComAPIError("gettoken", payload)
        return str(token), int(payload.get("expires_in", 7200))

    async def get_access_token(self) -> str:
        """Return the enterprise app access token, refreshing if expired."""
        if not self.config.corp_id or not self.config.corp_secret:
            raise ConfigError("Missing WECOM_CORP_ID or WECOM_SECRET")
        secret = self.config.corp_secret
        return await self._app_tokens.get(lambda: self._fetch_token(secret))

    async def get_kf_access_token(self) -> str:
        """Return the customer service access token, refreshing if expired."""
        if not self.config.corp_id or not self.config.kf_secret:
            raise ConfigError("Missing WECOM_CORP_ID or WECOM_KF_SECRET")
        secret = self.config.kf_secret
        return await self._kf_tokens.get(lambda: self._fetch_token(secret))

    async def send_text(self, to_user: str, content: str) -> dict[str, Any]:
        """Send an enterprise text message.

        Args:
            to_user: WeCom user id(s), ``|`` separated.
            content: Message text.

        Returns:
            The decoded WeCom response.
        """
        if not self.config.agent_id:
            raise ConfigError("Missing WECOM_AGENT_ID")
        try:
            agent_id = int(self.config.agent_id)
        except ValueError as err:
            raise ConfigError("WECOM_AGENT_ID must be numeric") from err

        token = await self.get_access_token()
        body = {
            "touser": to_user,
            "msgtype": "text",
            "agentid": agent_id,
            "text": {"content": content},
            "safe": 0,
        }
        response, payload = await self._call(
            "message/send",
            "POST",
            "/cgi-bin/message/send",
            params={"access_token": token},
            json_data=body,
        )
        self._forget_stale_token(self._app_tokens, "message/send", payload)
        self._check("message/send", response, payload)
        return payload

    async def kf_sync_messages(
        self,
        *,
        cursor: str | None = None,
        token: str | None = None,
        open_kfid: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Pull customer service messages; the WeCom response is returned as-is."""
        access_token = await self.get_kf_access_token()
        body = {
            "cursor": cursor,
            "token": token,
            "open_kfid": open_kfid,
            "limit": limit or DEFAULT_KF_SYNC_LIMIT,
        }
        _, payload = await self._call(
            "kf/sync_msg",
            "POST",
            "/cgi-bin/kf/sync_msg",
            params={"access_token": access_token},
            json_data=body,
        )
        self._forget_stale_token(self._kf_tokens, "kf/sync_msg", payload)
        return payload

    async def kf_send_message(
        self,
        *,
        touser: str | None,
        open_kfid: str | None,
        msgtype: str | None,
        text: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        """Send a customer service message; the WeCom response is returned as-is."""
        access_token = await self.get_kf_access_token()
        body = {"touser": touser, "open_kfid": open_kfid, "msgtype": msgtype, "text": text}
        _, payload = await self._call(
            "kf/send_msg",
            "POST",
            "/cgi-bin/kf/send_msg",
            params={"access_token": access_token},
            json_data=body,
        )
        self._forget_stale_token(self._kf_tokens, "kf/send_msg", payload)
        return payload

    async def kf_customer_batch_get(self, external_userid_list: list[str]) -> dict[str, Any]:
        """Fetch KF customer profiles (nickname, avatar, ...).

        Raises:
            ValueError: If ``external_userid_list`` is empty.
            WeComAPIError: If WeCom rejects the request.
        """
        if not external_userid_list:
            raise ValueError("external_userid_list must be a non-empty array")

        access_token = await self.get_kf_access_token()
        response, payload = await self._call(
            "kf/customer/batchget",
            "POST",
            "/cgi-bin/kf/customer/batchget",
            params={"access_token": access_token},
            json_data={"external_userid_list": external_userid_list},
        )
        self._forget_stale_token(self._kf_tokens, "kf/customer/batchget", payload)
        self._check("kf/customer/batchget", response, payload)
        return payload

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _WeComClientSingleton:
    """Singleton wrapper for WeComClient."""

    _instance: WeComClient | None = None

    @classmethod
    def get_instance(cls) -> WeComClient:
        if cls._instance is None:
            cls._instance = WeComClient()
        return cls._instance


def get_wecom_client() -> WeComClient:
    """Return a singleton WeCom client instance."""
    return _WeComClientSingleton.get_instance()
