"""Items API routes: paginated browse and single-item lookup."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from xtreamweb.dependencies import get_item_service, get_query_service
from xtreamweb.models.item import ItemType
from xtreamweb.services.item_service import ItemService
from xtreamweb.services.query_service import QueryService, parse_paging_param

router = APIRouter(tags=["items"])


@router.get("/api/items")
async def get_items(
    type: Optional[str] = Query(None),
    id: Optional[str] = Query(None),
    category_id: Optional[str] = Query(None, alias="categoryId"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    queries: QueryService = Depends(get_query_service),
):
    try:
        item_type = ItemType.parse(type)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    if id:
        item = queries.get_by_id(id, item_type)
        if item is None:
            return JSONResponse(status_code=404, content={"error": "Item not found"})
        return {"item": item.model_dump(by_alias=True, mode="json")}

    try:
        result = queries.list_by_type(
            item_type,
            category_id or None,
            page=parse_paging_param("page", page),
            limit=parse_paging_param("limit", limit),
        )
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    data = result.model_dump(by_alias=True, mode="json")
    data["type"] = item_type.value
    data["categoryId"] = category_id or None
    return data


@router.get("/api/items/stats")
async def item_stats(items: ItemService = Depends(get_item_service)):
    vod = items.item_count(ItemType.VOD)
    series = items.item_count(ItemType.SERIES)
    return {"vod": vod, "series": series, "total": vod + series}
