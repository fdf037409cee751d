"""Source configuration API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from lightcatalog.dependencies import get_catalog_service, get_config_service
from lightcatalog.exceptions import SourceUnavailableError
from lightcatalog.models.config import M3uSource, XtreamSource, source_adapter
from lightcatalog.services.catalog_service import CatalogService
from lightcatalog.services.config_service import ConfigService

router = APIRouter(prefix="/api/source", tags=["source"])


@router.get("")
async def get_source(cfg: ConfigService = Depends(get_config_service)):
    source = cfg.get_source()
    return {"source": source.model_dump() if source is not None else None}


@router.put("")
async def set_source(request: Request, catalog: CatalogService = Depends(get_catalog_service)):
    try:
        data = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)
    try:
        source = source_adapter.validate_python(data)
    except ValidationError as e:
        return JSONResponse({"error": "Invalid source", "details": e.errors(include_url=False, include_context=False)}, status_code=422)
    if isinstance(source, XtreamSource) and not (source.server and source.username and source.password):
        return JSONResponse({"error": "Server, username and password are required"}, status_code=422)
    if isinstance(source, M3uSource) and not source.url:
        return JSONResponse({"error": "Playlist URL is required"}, status_code=422)
    catalog.configure_source(source)
    return {"status": "ok", "source": source.model_dump()}


@router.post("/test")
async def test_source(request: Request, catalog: CatalogService = Depends(get_catalog_service)):
    try:
        data = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)
    try:
        source = XtreamSource.model_validate(data)
    except ValidationError as e:
        return JSONResponse({"error": "Invalid Xtream source", "details": e.errors(include_url=False, include_context=False)}, status_code=422)
    try:
        user_info = await catalog.test_source(source)
    except SourceUnavailableError as e:
        return JSONResponse({"status": "failed", "error": str(e)}, status_code=502)
    return {"status": "ok", "user_info": user_info.model_dump()}
