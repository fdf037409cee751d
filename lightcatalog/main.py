"""FastAPI application — wires services and routers."""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request

from lightcatalog.database import DB_NAME, init_db
from lightcatalog.routes import catalog_api, health, player_api, playlist, source_api
from lightcatalog.services.cache_service import CacheService
from lightcatalog.services.catalog_service import CatalogService
from lightcatalog.services.config_service import ConfigService
from lightcatalog.services.http_client import HttpClientService

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
logger = logging.getLogger(__name__)

# Data directory - use environment variable or default to /data (Docker) or ./data (local)
DATA_DIR = os.environ.get("DATA_DIR", "/data" if os.path.exists("/data") else "./data")


def create_app(data_dir: str = DATA_DIR, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """Build a fully-wired app storing its state under *data_dir*."""
    os.makedirs(data_dir, exist_ok=True)
    init_db(os.path.join(data_dir, DB_NAME))

    cfg = ConfigService(data_dir)
    cfg.load()
    options = cfg.options
    http = HttpClientService(
        connect_timeout=options.connect_timeout,
        read_timeout=options.read_timeout,
        transport=transport,
    )
    cache = CacheService(data_dir)
    catalog = CatalogService(cfg, cache, http)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting with data dir {data_dir}")
        yield
        # Let a running playlist refresh land in the cache before the client closes
        await catalog.drain()
        await http.close()
        logger.info("Application shutdown complete")

    app = FastAPI(title="LightCatalog", lifespan=lifespan)

    app.state.config_service = cfg
    app.state.http_client = http
    app.state.cache_service = cache
    app.state.catalog_service = catalog

    # Middleware to ensure UTF-8 charset in JSON responses
    @app.middleware("http")
    async def add_utf8_charset(request: Request, call_next):
        response = await call_next(request)
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type and "charset" not in content_type:
            response.headers["content-type"] = "application/json; charset=utf-8"
        return response

    for r in (health, source_api, catalog_api, player_api, playlist):
        app.include_router(r.router)

    return app


def run():
    import uvicorn

    uvicorn.run(
        create_app(),
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "5000")),
    )


if __name__ == "__main__":
    run()
