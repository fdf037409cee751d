"""Xtream service — player_api.php client and live/VOD catalog assembly."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Optional

import httpx

from lightcatalog.exceptions import SourceUnavailableError
from lightcatalog.models.catalog import Category, Channel, UserInfo, sort_catalog

if TYPE_CHECKING:
    from lightcatalog.models.config import XtreamSource
    from lightcatalog.services.http_client import HttpClientService

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4


def _str(item: dict, key: str, default: str = "") -> str:
    value = item.get(key)
    if value is None:
        return default
    return str(value)


def _int(item: dict, key: str, default: int = 0) -> int:
    try:
        return int(item.get(key, default))
    except (ValueError, TypeError):
        return default


class XtreamService:
    """Xtream Codes API client for one account.

    Every call either returns its value or raises
    :class:`SourceUnavailableError`; HTTP errors, timeouts and malformed
    bodies are not told apart.
    """

    def __init__(
        self,
        source: "XtreamSource",
        http_client: "HttpClientService",
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        self.source = source
        self.http_client = http_client
        self.max_concurrency = max(1, max_concurrency)

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    @property
    def api_url(self) -> str:
        return f"{self.source.base_url}/player_api.php"

    def live_url(self, stream_id: str) -> str:
        return f"{self.source.base_url}/live/{self.source.username}/{self.source.password}/{stream_id}.m3u8"

    def vod_url(self, stream_id: str, extension: str) -> str:
        return f"{self.source.base_url}/movie/{self.source.username}/{self.source.password}/{stream_id}.{extension}"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _get(self, action: Optional[str] = None, **extra: str) -> Any:
        params = {"username": self.source.username, "password": self.source.password}
        if action:
            params["action"] = action
        params.update(extra)
        label = action or "authenticate"
        try:
            response = await self.http_client.fetch(self.api_url, params=params)
        except httpx.TimeoutException:
            logger.error(f"Timeout fetching {label} from {self.source.base_url}")
            raise SourceUnavailableError(f"Timed out calling {label}")
        except httpx.HTTPError as e:
            logger.error(f"Error fetching {label} from {self.source.base_url}: {e}")
            raise SourceUnavailableError(f"Could not reach server for {label}")

        if not response.is_success:
            logger.warning(f"Fetch {label} failed with status {response.status_code}")
            raise SourceUnavailableError(f"Server answered {response.status_code} for {label}")
        try:
            return response.json()
        except ValueError:
            logger.warning(f"Fetch {label} returned a body that is not JSON")
            raise SourceUnavailableError(f"Invalid response for {label}")

    async def _get_list(self, action: str, **extra: str) -> list[dict]:
        data = await self._get(action, **extra)
        if not isinstance(data, list):
            logger.warning(f"Fetch {action} returned {type(data).__name__}, expected a list")
            raise SourceUnavailableError(f"Invalid response for {action}")
        return [item for item in data if isinstance(item, dict)]

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    async def authenticate(self) -> UserInfo:
        """Fetch account info. Does not check the account status."""
        data = await self._get()
        user_info = data.get("user_info") if isinstance(data, dict) else None
        if not isinstance(user_info, dict):
            logger.warning(f"Authentication response from {self.source.base_url} has no user_info")
            raise SourceUnavailableError("Authentication failed")
        return UserInfo(
            username=_str(user_info, "username"),
            status=_str(user_info, "status"),
            exp_date=_str(user_info, "exp_date"),
            active_cons=_int(user_info, "active_cons", 0),
            max_connections=_int(user_info, "max_connections", 1),
        )

    async def _get_categories(self, action: str) -> list[Category]:
        items = await self._get_list(action)
        return [Category(id=_str(item, "category_id"), name=_str(item, "category_name")) for item in items]

    async def get_live_categories(self) -> list[Category]:
        return await self._get_categories("get_live_categories")

    async def get_vod_categories(self) -> list[Category]:
        return await self._get_categories("get_vod_categories")

    async def get_live_streams(self, category_id: Optional[str] = None) -> list[Channel]:
        extra = {"category_id": category_id} if category_id is not None else {}
        items = await self._get_list("get_live_streams", **extra)
        channels = []
        for item in items:
            stream_id = _str(item, "stream_id")
            channels.append(
                Channel(
                    id=stream_id,
                    name=_str(item, "name"),
                    url=self.live_url(stream_id),
                    logo=_str(item, "stream_icon"),
                    group=_str(item, "category_id"),
                    epg_id=_str(item, "epg_channel_id"),
                    is_live=True,
                )
            )
        return channels

    async def get_vod_streams(self, category_id: Optional[str] = None) -> list[Channel]:
        extra = {"category_id": category_id} if category_id is not None else {}
        items = await self._get_list("get_vod_streams", **extra)
        channels = []
        for item in items:
            stream_id = _str(item, "stream_id")
            extension = _str(item, "container_extension") or "mp4"
            channels.append(
                Channel(
                    id=stream_id,
                    name=_str(item, "name"),
                    url=self.vod_url(stream_id, extension),
                    logo=_str(item, "stream_icon"),
                    group=_str(item, "category_id"),
                    is_live=False,
                )
            )
        return channels

    # ------------------------------------------------------------------
    # Catalog assembly
    # ------------------------------------------------------------------

    async def _populate(self, categories: list[Category], fetch_streams) -> list[Category]:
        """Fill each category with its streams, at most ``max_concurrency`` requests at a time.

        A category whose stream fetch fails is left empty. Empty categories
        are dropped from the result.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fill(category: Category) -> Category:
            async with semaphore:
                try:
                    channels = await fetch_streams(category.id)
                except SourceUnavailableError as e:
                    logger.warning(f"Skipping category {category.name!r} ({category.id}): {e}")
                    channels = []
            return category.model_copy(update={"channels": channels})

        filled = await asyncio.gather(*(fill(c) for c in categories))
        populated = [c for c in filled if not c.is_empty]
        logger.info(
            f"Populated {len(populated)}/{len(categories)} categories from {self.source.base_url}"
        )
        return sort_catalog(populated)

    async def fetch_live_catalog(self) -> list[Category]:
        """Live categories with their channels; empty categories excluded."""
        categories = await self.get_live_categories()
        return await self._populate(categories, self.get_live_streams)

    async def fetch_vod_catalog(self) -> list[Category]:
        """VOD categories with their movies; empty categories excluded."""
        categories = await self.get_vod_categories()
        return await self._populate(categories, self.get_vod_streams)
