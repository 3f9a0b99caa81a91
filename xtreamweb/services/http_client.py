"""HTTP client service: the shared httpx.AsyncClient for provider calls.

One pooled client serves both ``player_api.php`` JSON requests and the
byte passthrough of ``/api/stream``. Defaults are sized for API calls;
the stream path overrides the read timeout per request.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

# Some Xtream panels reject requests without a player-like User-Agent
DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "application/json, */*;q=0.8",
}

API_TIMEOUT = httpx.Timeout(connect=10.0, read=60.0, write=10.0, pool=10.0)
POOL_LIMITS = httpx.Limits(max_connections=50, max_keepalive_connections=10)


class HttpClientService:
    """Lazily builds and owns the provider client.

    *transport* replaces the network layer, e.g. ``httpx.MockTransport``
    in tests.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_open(self) -> bool:
        return self._client is not None and not self._client.is_closed

    async def get_client(self) -> httpx.AsyncClient:
        if not self.is_open:
            self._client = httpx.AsyncClient(
                headers=DEFAULT_HEADERS,
                timeout=API_TIMEOUT,
                limits=POOL_LIMITS,
                follow_redirects=True,
                transport=self._transport,
            )
            logger.debug("Provider HTTP client created")
        return self._client

    async def close(self) -> None:
        if self.is_open:
            await self._client.aclose()
            logger.info("Provider HTTP client closed")
        self._client = None
