"""Configuration and options API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from xtreamweb.dependencies import get_config_service, get_xtream_service
from xtreamweb.models.config import Options, XtreamConfig
from xtreamweb.services.config_service import ConfigService
from xtreamweb.services.xtream_service import XtreamService

router = APIRouter(tags=["config"])


def _masked(xtream: XtreamConfig) -> dict:
    data = xtream.model_dump(by_alias=True)
    password = data.pop("password", "")
    data["passwordMasked"] = f"***{password[-2:]}" if len(password) > 2 else ("***" if password else "")
    return data


# ---- Provider credentials ----

@router.get("/api/config")
async def get_config(cfg: ConfigService = Depends(get_config_service)):
    xtream = cfg.get_xtream_config()
    return {"configured": xtream.is_complete, "xtream": _masked(xtream)}


@router.post("/api/config")
async def save_config(request: Request, cfg: ConfigService = Depends(get_config_service)):
    data = await request.json()
    try:
        xtream = XtreamConfig.model_validate(data)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": "Invalid configuration", "message": str(e)})
    cfg.set_xtream_config(xtream)
    return {"status": "ok", "xtream": _masked(xtream)}


@router.post("/api/config/test")
async def test_config(
    request: Request,
    cfg: ConfigService = Depends(get_config_service),
    xtream_service: XtreamService = Depends(get_xtream_service),
):
    data = await request.json()
    try:
        xtream = XtreamConfig.model_validate(data)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": "Invalid configuration", "message": str(e)})
    if not xtream.is_complete:
        return JSONResponse(status_code=400, content={"error": "serverUrl, username and password are required"})

    if await xtream_service.test_connection(xtream):
        cfg.set_xtream_config(xtream)
        return {"success": True, "message": "Connection successful! Configuration saved."}
    return {"success": False, "message": "Connection failed. Please check your credentials."}


# ---- Generic options ----

@router.get("/api/options")
async def get_options(cfg: ConfigService = Depends(get_config_service)):
    return cfg.get_options()


@router.post("/api/options")
async def update_options(request: Request, cfg: ConfigService = Depends(get_config_service)):
    data = await request.json()
    merged = {**cfg.get_options(), **data}
    try:
        options = Options.model_validate(merged)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": "Invalid options", "message": str(e)})
    cfg.config["options"] = options.model_dump()
    cfg.save()
    return {"status": "ok", "options": cfg.config["options"]}
