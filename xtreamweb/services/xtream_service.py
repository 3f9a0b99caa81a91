"""Xtream service: API URL building and cache-through upstream fetching."""
from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from xtreamweb.models.item import ItemType, ListKind
from xtreamweb.services.cache_service import generate_cache_key

if TYPE_CHECKING:
    from xtreamweb.models.config import XtreamConfig
    from xtreamweb.services.cache_service import CacheService
    from xtreamweb.services.http_client import HttpClientService
    from xtreamweb.services.item_service import ItemService

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

STREAM_PATHS = {ItemType.VOD: "movie", ItemType.SERIES: "series"}


def _base_parts(config: "XtreamConfig") -> tuple[str, str]:
    """Return ``(scheme, netloc)`` for the configured server."""
    base = config.server_url.strip().rstrip("/")
    if not base:
        raise ValueError("Server URL is not configured")
    if not _SCHEME_RE.match(base):
        base = f"http://{base}"
    parts = urlsplit(base)
    netloc = parts.netloc
    if config.port and config.port not in (80, 443):
        netloc = f"{parts.hostname}:{config.port}"
    return parts.scheme, netloc


def build_api_url(config: "XtreamConfig", action: str, params: Optional[dict] = None) -> str:
    """``<server>/player_api.php?username=..&password=..&action=..[&params]``."""
    scheme, netloc = _base_parts(config)
    query = {"username": config.username, "password": config.password, "action": action}
    if params:
        query.update({k: str(v) for k, v in params.items()})
    return urlunsplit((scheme, netloc, "/player_api.php", urlencode(query), ""))


def build_stream_url(
    config: "XtreamConfig", item_type: ItemType | str, content_id: str, ext: str = "mp4"
) -> str:
    """``<server>/movie|series/<user>/<pass>/<id>.<ext>``."""
    item_type = ItemType.parse(item_type)
    scheme, netloc = _base_parts(config)
    path = f"/{STREAM_PATHS[item_type]}/{config.username}/{config.password}/{content_id}.{ext}"
    return urlunsplit((scheme, netloc, path, "", ""))


class XtreamService:
    """Fetches Xtream Codes API data through the response cache.

    On a miss the upstream JSON is cached under its TTL bucket and, when
    the caller declares the payload to be a VOD or series listing, its
    items are written to the structured store.
    """

    def __init__(
        self,
        cache_service: "CacheService",
        item_service: "ItemService",
        http_client: "HttpClientService",
    ):
        self.cache_service = cache_service
        self.item_service = item_service
        self.http_client = http_client

    async def fetch_json(
        self,
        url: str,
        kind: Optional[ListKind] = None,
        force_refresh: bool = False,
    ) -> tuple[Any, bool]:
        """Return ``(payload, cache_hit)`` for *url*.

        Raises ``ValueError`` for a malformed URL or a non-JSON body and
        ``httpx.HTTPError`` for transport failures and non-2xx replies.
        """
        key = generate_cache_key(url)
        if not force_refresh:
            cached = self.cache_service.get(key)
            if cached is not None:
                logger.debug(f"Cache hit: {key}")
                return cached, True

        client = await self.http_client.get_client()
        response = await client.get(url)
        response.raise_for_status()
        data = response.json()

        self.cache_service.set(key, data)
        if kind is not None:
            stored = self.item_service.extract_and_store(data, kind)
            logger.debug(f"Stored {stored} {kind.item_type.value} items from upstream listing")
        return data, False

    async def _fetch_action(
        self,
        config: "XtreamConfig",
        action: str,
        params: Optional[dict] = None,
        kind: Optional[ListKind] = None,
        force_refresh: bool = False,
    ) -> Any:
        url = build_api_url(config, action, params)
        data, _ = await self.fetch_json(url, kind=kind, force_refresh=force_refresh)
        return data

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    async def test_connection(self, config: "XtreamConfig") -> bool:
        try:
            client = await self.http_client.get_client()
            response = await client.get(build_api_url(config, "get_user_info"), timeout=10.0)
            return response.status_code == 200
        except Exception as e:
            logger.warning(f"Connection test failed: {e}")
            return False

    async def get_vod_categories(self, config: "XtreamConfig", force_refresh: bool = False) -> list:
        return await self._fetch_action(config, "get_vod_categories", force_refresh=force_refresh) or []

    async def get_series_categories(self, config: "XtreamConfig", force_refresh: bool = False) -> list:
        return await self._fetch_action(config, "get_series_categories", force_refresh=force_refresh) or []

    async def get_vod_streams(
        self,
        config: "XtreamConfig",
        category_id: Optional[str] = None,
        force_refresh: bool = False,
        extract: bool = True,
    ) -> Any:
        params = {"category_id": category_id} if category_id else None
        kind = ListKind.VOD_LIST if extract else None
        return await self._fetch_action(
            config, "get_vod_streams", params, kind=kind, force_refresh=force_refresh
        )

    async def get_series(
        self,
        config: "XtreamConfig",
        category_id: Optional[str] = None,
        force_refresh: bool = False,
        extract: bool = True,
    ) -> Any:
        params = {"category_id": category_id} if category_id else None
        kind = ListKind.SERIES_LIST if extract else None
        return await self._fetch_action(
            config, "get_series", params, kind=kind, force_refresh=force_refresh
        )

    async def get_series_info(self, config: "XtreamConfig", series_id: str) -> dict:
        return await self._fetch_action(config, "get_series_info", {"series_id": series_id}) or {}

    async def get_vod_info(self, config: "XtreamConfig", vod_id: str) -> dict:
        return await self._fetch_action(config, "get_vod_info", {"vod_id": vod_id}) or {}
