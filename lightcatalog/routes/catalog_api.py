"""Catalog API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lightcatalog.dependencies import get_cache_service, get_catalog_service
from lightcatalog.models.catalog import count_channels
from lightcatalog.services.cache_service import CacheService
from lightcatalog.services.catalog_service import CatalogService

router = APIRouter(prefix="/api/catalog", tags=["catalog"])


@router.get("")
async def get_catalog(catalog: CatalogService = Depends(get_catalog_service)):
    result = await catalog.load_catalog()
    return {
        "categories": [c.model_dump() for c in result.categories],
        "from_cache": result.from_cache,
        "error": result.error,
        "channel_count": count_channels(result.categories),
    }


@router.get("/status")
async def catalog_status(
    catalog: CatalogService = Depends(get_catalog_service),
    cache: CacheService = Depends(get_cache_service),
):
    return {
        "state": catalog.state.value,
        "refresh_in_progress": catalog.refresh_in_progress,
        "categories": len(catalog.catalog),
        "channels": count_channels(catalog.catalog),
        "playlist_cache": cache.get_playlist_meta(),
    }


@router.get("/vod")
async def get_vod_catalog(catalog: CatalogService = Depends(get_catalog_service)):
    result = await catalog.load_vod_catalog()
    return {
        "categories": [c.model_dump() for c in result.categories],
        "error": result.error,
        "channel_count": count_channels(result.categories),
    }


@router.get("/categories/{category_id}")
async def get_category(category_id: str, catalog: CatalogService = Depends(get_catalog_service)):
    category = catalog.get_category(category_id)
    if category is None:
        return JSONResponse({"error": "Category not found"}, status_code=404)
    return {"category": category.model_dump()}
