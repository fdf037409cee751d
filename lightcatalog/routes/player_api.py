"""Player API routes — resolve a channel into what the player needs."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lightcatalog.dependencies import get_catalog_service
from lightcatalog.services.catalog_service import CatalogService

router = APIRouter(prefix="/api/channels", tags=["player"])


@router.get("/last")
async def last_channel(catalog: CatalogService = Depends(get_catalog_service)):
    channel_id, channel = catalog.last_channel()
    return {
        "channel_id": channel_id,
        "channel": channel.model_dump() if channel is not None else None,
    }


@router.get("/{channel_id}/play")
async def play_channel(channel_id: str, catalog: CatalogService = Depends(get_catalog_service)):
    info = catalog.play_channel(channel_id)
    if info is None:
        return JSONResponse({"error": "Channel not found"}, status_code=404)
    return info.model_dump()
