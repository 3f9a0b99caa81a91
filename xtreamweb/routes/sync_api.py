"""Sync API route: full resync of VOD and series items from the provider."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from xtreamweb.dependencies import get_config_service, get_sync_service
from xtreamweb.models.config import XtreamConfig
from xtreamweb.services.config_service import ConfigService
from xtreamweb.services.sync_service import SyncService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["sync"])


@router.post("/api/sync")
async def sync_all(
    request: Request,
    cfg: ConfigService = Depends(get_config_service),
    sync: SyncService = Depends(get_sync_service),
):
    try:
        body = await request.json()
    except json.JSONDecodeError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    try:
        config = XtreamConfig.model_validate(body["config"]) if body.get("config") else cfg.get_xtream_config()
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": "Invalid configuration", "message": str(e)})

    if not config.is_complete:
        return JSONResponse(
            status_code=400,
            content={"error": "Configuration required. Please provide config in request body."},
        )

    result = await sync.sync_all(config)
    status = 200
    if not result.success and sync.has_errors(result):
        status = 207
    return JSONResponse(status_code=status, content=result.model_dump(by_alias=True, mode="json"))
