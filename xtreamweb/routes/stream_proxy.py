"""Stream proxy route: VOD and series episode playback."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from xtreamweb.dependencies import get_config_service, get_http_client
from xtreamweb.services.config_service import ConfigService
from xtreamweb.services.http_client import HttpClientService
from xtreamweb.services.stream_service import proxy_stream
from xtreamweb.services.xtream_service import build_stream_url

router = APIRouter(tags=["stream-proxy"])


@router.get("/api/stream")
async def stream(
    request: Request,
    content_id: str = Query(..., alias="contentId"),
    type: str = Query("vod"),
    ext: str = Query("mp4"),
    cfg: ConfigService = Depends(get_config_service),
    http: HttpClientService = Depends(get_http_client),
):
    config = cfg.get_xtream_config()
    if not config.is_complete:
        return JSONResponse(status_code=400, content={"error": "Server credentials are not configured"})
    try:
        upstream_url = build_stream_url(config, type, content_id, ext)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    if cfg.proxy_enabled:
        return await proxy_stream(upstream_url, request, http)
    return RedirectResponse(url=upstream_url, status_code=302)
