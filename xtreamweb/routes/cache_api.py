"""Cache management API routes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from xtreamweb.dependencies import get_cache_service
from xtreamweb.services.cache_service import CacheService

router = APIRouter(tags=["cache"])


@router.get("/api/cache/stats")
async def cache_stats(cache: CacheService = Depends(get_cache_service)):
    return cache.stats().model_dump(by_alias=True)


@router.get("/api/cache/entry")
async def cache_entry(
    key: str = Query(...),
    cache: CacheService = Depends(get_cache_service),
):
    entry = cache.get_entry(key)
    if entry is None:
        return JSONResponse(status_code=404, content={"error": "Cache entry not found"})
    data = entry.model_dump(by_alias=True, exclude={"value"})
    data["expired"] = entry.is_expired(cache.now())
    return data


@router.post("/api/cache/clear")
async def clear_cache(cache: CacheService = Depends(get_cache_service)):
    removed = cache.clear()
    return {"success": True, "message": "Cache cleared", "removed": removed}


@router.post("/api/cache/clear-expired")
async def clear_expired_cache(cache: CacheService = Depends(get_cache_service)):
    removed = cache.clear_expired()
    return {"success": True, "message": "Expired cache entries cleared", "removed": removed}


@router.post("/api/cache/invalidate")
async def invalidate_cache(
    pattern: Optional[str] = Query(None),
    cache: CacheService = Depends(get_cache_service),
):
    if not pattern:
        return JSONResponse(status_code=400, content={"error": "Pattern parameter required"})
    removed = cache.invalidate_pattern(pattern)
    return {
        "success": True,
        "message": f'Cache entries matching "{pattern}" invalidated',
        "removed": removed,
    }
