"""Search API route: case-insensitive name search over stored items."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from xtreamweb.dependencies import get_config_service, get_query_service
from xtreamweb.services.config_service import ConfigService
from xtreamweb.services.query_service import QueryService, parse_paging_param

router = APIRouter(tags=["search"])


@router.get("/api/search")
async def search(
    q: str = Query(""),
    type: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    cfg: ConfigService = Depends(get_config_service),
    queries: QueryService = Depends(get_query_service),
):
    try:
        page_no = parse_paging_param("page", page)
        page_size = parse_paging_param("limit", limit)
        if page_size is None:
            page_size = cfg.search_default_limit
        result = queries.search_by_name(q, type or None, page=page_no, limit=page_size)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    data = result.model_dump(by_alias=True, mode="json")
    data["query"] = q
    data["type"] = type or "all"
    return data
