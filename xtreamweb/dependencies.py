"""FastAPI dependency injection: provides services via Depends()."""
from __future__ import annotations

from fastapi import Request

from xtreamweb.database import Database
from xtreamweb.services.cache_service import CacheService
from xtreamweb.services.config_service import ConfigService
from xtreamweb.services.http_client import HttpClientService
from xtreamweb.services.item_service import ItemService
from xtreamweb.services.query_service import QueryService
from xtreamweb.services.sync_service import SyncService
from xtreamweb.services.xtream_service import XtreamService


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_config_service(request: Request) -> ConfigService:
    return request.app.state.config_service


def get_http_client(request: Request) -> HttpClientService:
    return request.app.state.http_client


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache_service


def get_item_service(request: Request) -> ItemService:
    return request.app.state.item_service


def get_query_service(request: Request) -> QueryService:
    return request.app.state.query_service


def get_xtream_service(request: Request) -> XtreamService:
    return request.app.state.xtream_service


def get_sync_service(request: Request) -> SyncService:
    return request.app.state.sync_service
