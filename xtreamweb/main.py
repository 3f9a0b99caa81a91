"""Application entry point: wiring, lifespan and background maintenance."""
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Callable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from xtreamweb.database import DB_NAME, Database
from xtreamweb.routes import (
    cache_api,
    config_api,
    health,
    items_api,
    search_api,
    stream_proxy,
    sync_api,
    xtream_proxy,
)
from xtreamweb.services.cache_service import CacheService
from xtreamweb.services.config_service import ConfigService
from xtreamweb.services.http_client import HttpClientService
from xtreamweb.services.item_service import ItemService
from xtreamweb.services.query_service import QueryService
from xtreamweb.services.sync_service import SyncService
from xtreamweb.services.xtream_service import XtreamService

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
logger = logging.getLogger(__name__)

# Data directory - use environment variable or default to /data (Docker) or ./data (local)
DATA_DIR = os.environ.get("DATA_DIR", "/data" if os.path.exists("/data") else "./data")


async def sweep_loop(cache: CacheService, cfg: ConfigService) -> None:
    """Periodically drop expired cache entries."""
    logger.info("Cache sweep task started")
    while True:
        try:
            await asyncio.sleep(cfg.sweep_interval)
            removed = cache.clear_expired()
            logger.debug(f"Cache sweep removed {removed} entries; next in {cfg.sweep_interval}s")
        except asyncio.CancelledError:
            logger.info("Cache sweep task cancelled")
            break
        except Exception as e:
            logger.error(f"Cache sweep error: {e}")
            await asyncio.sleep(60)


def create_app(
    data_dir: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Optional[Callable[[], int]] = None,
) -> FastAPI:
    """Build the FastAPI app. Services are created in the lifespan and
    attached to ``app.state`` for ``Depends()`` lookup."""
    data_dir = data_dir or DATA_DIR

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        os.makedirs(data_dir, exist_ok=True)
        cfg = ConfigService(data_dir)
        cfg.load()
        db = Database(os.path.join(data_dir, DB_NAME))
        db.init()
        http = HttpClientService(transport=transport)
        cache = CacheService(db, clock=clock)
        items = ItemService(db, clock=clock)
        xtream = XtreamService(cache, items, http)

        app.state.config_service = cfg
        app.state.database = db
        app.state.http_client = http
        app.state.cache_service = cache
        app.state.item_service = items
        app.state.query_service = QueryService(db)
        app.state.xtream_service = xtream
        app.state.sync_service = SyncService(xtream, items)

        removed = cache.clear_expired()
        if removed:
            logger.info(f"Dropped {removed} expired cache entries at startup")
        sweep_task = asyncio.create_task(sweep_loop(cache, cfg))

        yield

        # Shutdown
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
        await http.close()
        db.close()
        logger.info("Application shutdown complete")

    app = FastAPI(title="XtreamWeb", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Range"],
        expose_headers=["Content-Length", "Content-Range", "Accept-Ranges", "X-Cache"],
    )

    # Middleware to ensure UTF-8 charset in JSON responses
    @app.middleware("http")
    async def add_utf8_charset(request: Request, call_next):
        response = await call_next(request)
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type and "charset" not in content_type:
            response.headers["content-type"] = "application/json; charset=utf-8"
        return response

    for r in (
        health, config_api, cache_api, items_api, search_api,
        sync_api, xtream_proxy, stream_proxy,
    ):
        app.include_router(r.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
