"""In-memory access token cache with single-flight refresh."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TokenFetcher = Callable[[], Awaitable[tuple[str, int]]]


@dataclass(frozen=True)
class CachedToken:
    """An access token and the wall-clock time it stops being served."""

    value: str
    expires_at: float


class AccessTokenCache:
    """Caches one access token and refreshes it at most once at a time.

    Concurrent callers that find the token missing or expired wait on the
    same lock, so only the first one calls the fetcher.
    """

    def __init__(
        self,
        safety_margin_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.safety_margin_seconds = safety_margin_seconds
        self._clock = clock
        self._token: CachedToken | None = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> CachedToken | None:
        return self._token

    def _is_fresh(self, token: CachedToken | None) -> bool:
        return token is not None and self._clock() < token.expires_at

    async def get(self, fetch: TokenFetcher) -> str:
        """Return a valid token, calling ``fetch`` only when needed.

        Args:
            fetch: Coroutine factory returning ``(access_token, expires_in)``.

        Returns:
            The cached or freshly fetched access token.
        """
        token = self._token
        if self._is_fresh(token):
            return token.value  # type: ignore[union-attr]

        async with self._lock:
            token = self._token
            if self._is_fresh(token):
                return token.value  # type: ignore[union-attr]

            value, expires_in = await fetch()
            expires_at = self._clock() + max(0, expires_in - self.safety_margin_seconds)
            self._token = CachedToken(value=value, expires_at=expires_at)
            logger.info("Refreshed access token (valid for %ds)", int(expires_at - self._clock()))
            return value

    def invalidate(self) -> None:
        """Drop the cached token so the next ``get`` refreshes it."""
        self._token = None
