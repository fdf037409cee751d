"""FastAPI dependency injection — provides services via Depends()."""
from __future__ import annotations

from fastapi import Request

from lightcatalog.services.cache_service import CacheService
from lightcatalog.services.catalog_service import CatalogService
from lightcatalog.services.config_service import ConfigService


def get_config_service(request: Request) -> ConfigService:
    return request.app.state.config_service


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache_service


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service
