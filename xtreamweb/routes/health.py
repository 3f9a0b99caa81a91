"""Health check route."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from xtreamweb.database import Database
from xtreamweb.dependencies import get_database

router = APIRouter(tags=["health"])

APP_VERSION = "0.1.0"


@router.get("/health")
async def health(db: Database = Depends(get_database)):
    return {"status": "ok", "version": APP_VERSION, "database": db.is_open}
