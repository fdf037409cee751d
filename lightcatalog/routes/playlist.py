"""Playlist routes — the current catalog as an M3U file."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from lightcatalog.dependencies import get_catalog_service
from lightcatalog.services.catalog_service import CatalogService
from lightcatalog.services.m3u_service import render_m3u

router = APIRouter(tags=["playlist"])


@router.get("/playlist.m3u")
async def playlist(catalog: CatalogService = Depends(get_catalog_service)):
    if not catalog.catalog:
        await catalog.load_catalog()
    return Response(
        content=render_m3u(catalog.catalog),
        media_type="audio/x-mpegurl",
        headers={"Content-Disposition": 'attachment; filename="playlist.m3u"', "Cache-Control": "no-cache"},
    )
