"""Xtream API proxy route: cache-through passthrough of provider JSON."""
from __future__ import annotations

import json
import logging
import random
from typing import Optional
from urllib.parse import parse_qs, urlsplit

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from xtreamweb.dependencies import get_cache_service, get_config_service, get_xtream_service
from xtreamweb.models.item import ListKind
from xtreamweb.services.cache_service import CacheService
from xtreamweb.services.config_service import ConfigService
from xtreamweb.services.xtream_service import XtreamService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["xtream-proxy"])


def _list_kind_for(url: str) -> Optional[ListKind]:
    """Listing kind named by the target URL's ``action`` parameter, if any."""
    actions = parse_qs(urlsplit(url).query).get("action", [])
    return ListKind.from_action(actions[0]) if actions else None


@router.get("/api/xtream-proxy")
async def xtream_proxy(
    url: Optional[str] = Query(None),
    refresh: bool = Query(False),
    cfg: ConfigService = Depends(get_config_service),
    cache: CacheService = Depends(get_cache_service),
    xtream: XtreamService = Depends(get_xtream_service),
):
    if not url:
        return JSONResponse(status_code=400, content={"error": "Missing 'url' parameter"})
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": "Invalid URL format", "message": str(e)})
    if scheme not in ("http", "https"):
        return JSONResponse(status_code=400, content={"error": "Only HTTP and HTTPS protocols are allowed"})

    try:
        data, hit = await xtream.fetch_json(url, kind=_list_kind_for(url), force_refresh=refresh)
    except json.JSONDecodeError:
        return JSONResponse(status_code=502, content={"error": "Upstream returned a non-JSON response"})
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": "Invalid URL format", "message": str(e)})
    except httpx.HTTPStatusError as e:
        return JSONResponse(
            status_code=e.response.status_code,
            content={"error": f"Upstream returned HTTP {e.response.status_code}"},
        )
    except httpx.TimeoutException:
        return JSONResponse(status_code=504, content={"error": "Upstream timeout"})
    except httpx.HTTPError as e:
        logger.warning(f"Proxy request failed: {e}")
        return JSONResponse(status_code=502, content={"error": "Proxy request failed", "message": str(e)})

    if not hit and random.random() < cfg.sweep_probability:
        cache.clear_expired()

    return JSONResponse(content=data, headers={"X-Cache": "HIT" if hit else "MISS"})
