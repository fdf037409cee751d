"""Catalog service — loads the active source's catalog with stale-while-revalidate caching.

M3U sources: a cached playlist that still parses to something is served
immediately while one background task re-downloads it for the next load.
Xtream sources are fetched in full on every load; nothing is cached.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from typing import TYPE_CHECKING, Optional

import httpx
from pydantic import BaseModel, Field

from lightcatalog.exceptions import CatalogError, EmptyResultError, SourceUnavailableError
from lightcatalog.models.catalog import Category, Channel, PlaybackInfo, UserInfo, count_channels, find_channel
from lightcatalog.models.config import M3uSource, SourceConfig, XtreamSource
from lightcatalog.services.http_client import HEADERS
from lightcatalog.services.m3u_service import parse_m3u
from lightcatalog.services.xtream_service import XtreamService

if TYPE_CHECKING:
    from lightcatalog.services.cache_service import CacheService
    from lightcatalog.services.config_service import ConfigService
    from lightcatalog.services.http_client import HttpClientService

logger = logging.getLogger(__name__)


class CacheState(str, enum.Enum):
    NO_CACHE = "no_cache"
    CACHE_HIT = "cache_hit"
    REFRESHING = "refreshing"


class CatalogLoadResult(BaseModel):
    """Outcome of a catalog load. *error* is a user-facing message."""

    categories: list[Category] = Field(default_factory=list)
    from_cache: bool = False
    error: Optional[str] = None


class CatalogService:
    """Owns the currently displayed catalog and the M3U refresh tasks."""

    def __init__(
        self,
        config_service: "ConfigService",
        cache_service: "CacheService",
        http_client: "HttpClientService",
    ):
        self.config_service = config_service
        self.cache_service = cache_service
        self.http_client = http_client
        self.catalog: list[Category] = []
        self._refresh_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def refresh_in_progress(self) -> bool:
        return any(not t.done() for t in self._refresh_tasks)

    @property
    def state(self) -> CacheState:
        if self.refresh_in_progress:
            return CacheState.REFRESHING
        if self.cache_service.get_playlist_text():
            return CacheState.CACHE_HIT
        return CacheState.NO_CACHE

    def _xtream(self, source: XtreamSource) -> XtreamService:
        return XtreamService(
            source,
            self.http_client,
            max_concurrency=self.config_service.options.xtream_max_concurrency,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_catalog(self) -> CatalogLoadResult:
        """Load the live catalog of the configured source.

        Never raises for source problems: failures come back as an empty
        catalog with ``error`` set.
        """
        source = self.config_service.get_source()
        if source is None:
            result = CatalogLoadResult(error="No source configured")
        else:
            try:
                if isinstance(source, M3uSource):
                    result = await self._load_m3u(source)
                else:
                    result = CatalogLoadResult(categories=await self._load_xtream(source))
            except CatalogError as e:
                logger.warning(f"Catalog load failed: {e}")
                result = CatalogLoadResult(error=str(e))

        self.catalog = result.categories
        return result

    async def load_vod_catalog(self) -> CatalogLoadResult:
        """VOD catalog of an Xtream source. Not kept as the current catalog."""
        source = self.config_service.get_source()
        if not isinstance(source, XtreamSource):
            return CatalogLoadResult(error="VOD is only available for Xtream sources")
        try:
            categories = await self._xtream(source).fetch_vod_catalog()
            if not categories:
                raise EmptyResultError("No movies found")
            return CatalogLoadResult(categories=categories)
        except CatalogError as e:
            logger.warning(f"VOD catalog load failed: {e}")
            return CatalogLoadResult(error=str(e))

    async def _load_m3u(self, source: M3uSource) -> CatalogLoadResult:
        cached_text = self.cache_service.get_playlist_text()
        if cached_text and self.cache_service.get_playlist_meta()["source_url"] != source.url:
            logger.info("Cached playlist belongs to another source, ignoring it")
            cached_text = ""
        if cached_text:
            cached = parse_m3u(cached_text)
            if cached:
                logger.info(f"Serving cached playlist ({count_channels(cached)} channels)")
                self._spawn_refresh(source.url)
                return CatalogLoadResult(categories=cached, from_cache=True)
            logger.info("Cached playlist is unusable, fetching")

        text = await self._fetch_playlist(source.url)
        categories = parse_m3u(text)
        if not categories:
            raise EmptyResultError("Playlist contains no channels")
        self.cache_service.save_playlist_text(text, source_url=source.url)
        logger.info(f"Loaded playlist from {source.url} ({count_channels(categories)} channels)")
        return CatalogLoadResult(categories=categories)

    async def _load_xtream(self, source: XtreamSource) -> list[Category]:
        client = self._xtream(source)
        user_info = await client.authenticate()
        if not user_info.is_active:
            raise SourceUnavailableError(f"Xtream account is not active (status: {user_info.status or 'unknown'})")
        categories = await client.fetch_live_catalog()
        if not categories:
            raise EmptyResultError()
        logger.info(f"Loaded {count_channels(categories)} live channels from {source.base_url}")
        return categories

    async def _fetch_playlist(self, url: str) -> str:
        try:
            headers = {**HEADERS, "User-Agent": self.config_service.options.user_agent}
            response = await self.http_client.fetch(url, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Error fetching playlist {url}: {e}")
            raise SourceUnavailableError("Could not download playlist")
        if not response.is_success:
            logger.warning(f"Playlist fetch failed with status {response.status_code}")
            raise SourceUnavailableError(f"Playlist server answered {response.status_code}")
        return response.text

    # ------------------------------------------------------------------
    # Background refresh
    # ------------------------------------------------------------------

    def _spawn_refresh(self, url: str) -> None:
        if self.refresh_in_progress:
            logger.debug("Playlist refresh already running, not starting another")
            return
        task = asyncio.create_task(self._refresh_playlist(url))
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def _refresh_playlist(self, url: str) -> None:
        """Re-download the playlist into the cache. Errors are logged, never raised."""
        try:
            text = await self._fetch_playlist(url)
            if not parse_m3u(text):
                logger.warning("Refreshed playlist has no channels, keeping cached copy")
                return
            current = self.config_service.get_source()
            if not isinstance(current, M3uSource) or current.url != url:
                logger.info(f"Source changed while refreshing {url}, discarding result")
                return
            self.cache_service.save_playlist_text(text, source_url=url)
        except CatalogError as e:
            logger.warning(f"Background playlist refresh failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error refreshing playlist: {e}")

    async def drain(self) -> None:
        """Wait for outstanding background refreshes to finish."""
        if self._refresh_tasks:
            await asyncio.gather(*self._refresh_tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Source management
    # ------------------------------------------------------------------

    def configure_source(self, source: SourceConfig) -> None:
        """Persist a new source; the cached playlist is dropped when it no longer applies."""
        previous = self.config_service.get_source()
        self.config_service.set_source(source)
        if isinstance(source, M3uSource) or type(previous) is not type(source):
            self.cache_service.clear_playlist_text()
        self.catalog = []
        logger.info(f"Source set to {source.type}")

    async def test_source(self, source: XtreamSource) -> UserInfo:
        """Authenticate *source* without saving it."""
        return await self._xtream(source).authenticate()

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def get_category(self, category_id: str) -> Optional[Category]:
        for category in self.catalog:
            if category.id == category_id:
                return category
        return None

    def play_channel(self, channel_id: str) -> Optional[PlaybackInfo]:
        channel = find_channel(self.catalog, channel_id)
        if channel is None:
            return None
        self.config_service.set_last_channel_id(channel.id)
        return PlaybackInfo(name=channel.name, url=channel.url, logo=channel.logo)

    def last_channel(self) -> tuple[str, Optional[Channel]]:
        channel_id = self.config_service.get_last_channel_id()
        if not channel_id:
            return "", None
        return channel_id, find_channel(self.catalog, channel_id)
