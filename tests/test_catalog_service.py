"""Tests for catalog loading and the stale-while-revalidate playlist cache."""

import asyncio
import os

import httpx
import pytest

from lightcatalog.database import DB_NAME, init_db
from lightcatalog.models.config import M3uSource, XtreamSource
from lightcatalog.services.cache_service import CacheService
from lightcatalog.services.catalog_service import CacheState, CatalogService
from lightcatalog.services.config_service import ConfigService
from lightcatalog.services.http_client import HttpClientService


PLAYLIST_URL = "http://lists.test/tv.m3u"

CACHED = """#EXTM3U
#EXTINF:-1 tvg-id="old" group-title="Old",Old Channel
http://stream.test/old
"""

FRESH = """#EXTM3U
#EXTINF:-1 tvg-id="new" group-title="New",New Channel
http://stream.test/new
#EXTINF:-1 group-title="New",Second
http://stream.test/second
"""


@pytest.fixture()
def data_dir(tmp_path):
    init_db(os.path.join(str(tmp_path), DB_NAME))
    return str(tmp_path)


def _build(data_dir, handler, source=None):
    cfg = ConfigService(data_dir)
    cfg.load()
    if source is not None:
        cfg.set_source(source)
    cache = CacheService(data_dir)
    http = HttpClientService(transport=httpx.MockTransport(handler))
    return CatalogService(cfg, cache, http), cache


def _playlist_handler(body: str = FRESH, status: int = 200, seen: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, text=body)

    return handler


class TestNoSource:
    def test_no_source_configured(self, data_dir):
        service, _ = _build(data_dir, _playlist_handler())
        result = asyncio.run(service.load_catalog())

        assert result.categories == []
        assert result.error == "No source configured"


class TestM3uColdStart:
    def test_fetch_parse_and_persist(self, data_dir):
        seen: list = []
        service, cache = _build(data_dir, _playlist_handler(seen=seen), M3uSource(url=PLAYLIST_URL))
        result = asyncio.run(service.load_catalog())

        assert result.error is None
        assert result.from_cache is False
        assert [c.name for c in result.categories] == ["New"]
        assert cache.get_playlist_text() == FRESH
        assert cache.get_playlist_meta()["source_url"] == PLAYLIST_URL
        assert service.catalog == result.categories
        assert "Mozilla" in seen[0].headers["User-Agent"]

    def test_configured_user_agent_is_sent(self, data_dir):
        seen: list = []
        service, _ = _build(data_dir, _playlist_handler(seen=seen), M3uSource(url=PLAYLIST_URL))
        service.config_service.config["options"]["user_agent"] = "TestAgent/1.0"

        asyncio.run(service.load_catalog())

        assert seen[0].headers["User-Agent"] == "TestAgent/1.0"
        assert seen[0].headers["Accept-Language"] == "en-US,en;q=0.9"

    def test_http_error_returns_empty_with_message(self, data_dir):
        service, cache = _build(data_dir, _playlist_handler(status=403), M3uSource(url=PLAYLIST_URL))
        result = asyncio.run(service.load_catalog())

        assert result.categories == []
        assert result.error
        assert cache.get_playlist_text() == ""

    def test_network_error_returns_empty_with_message(self, data_dir):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        service, _ = _build(data_dir, handler, M3uSource(url=PLAYLIST_URL))
        result = asyncio.run(service.load_catalog())

        assert result.categories == []
        assert result.error == "Could not download playlist"

    def test_empty_playlist_is_an_error_and_not_cached(self, data_dir):
        service, cache = _build(data_dir, _playlist_handler(body="#EXTM3U\n"), M3uSource(url=PLAYLIST_URL))
        result = asyncio.run(service.load_catalog())

        assert result.categories == []
        assert result.error == "Playlist contains no channels"
        assert cache.get_playlist_text() == ""

    def test_unusable_cache_falls_back_to_fetch(self, data_dir):
        service, cache = _build(data_dir, _playlist_handler(), M3uSource(url=PLAYLIST_URL))
        cache.save_playlist_text("not a playlist", source_url=PLAYLIST_URL)

        result = asyncio.run(service.load_catalog())

        assert result.from_cache is False
        assert [c.name for c in result.categories] == ["New"]
        assert cache.get_playlist_text() == FRESH


class TestM3uCacheHit:
    def test_returns_without_waiting_on_network(self, data_dir):
        async def never_answers(request):
            await asyncio.Event().wait()

        service, cache = _build(data_dir, never_answers, M3uSource(url=PLAYLIST_URL))
        cache.save_playlist_text(CACHED, source_url=PLAYLIST_URL)

        async def scenario():
            result = await asyncio.wait_for(service.load_catalog(), timeout=2)
            return result, service.state

        result, state = asyncio.run(scenario())

        assert result.from_cache is True
        assert result.error is None
        assert [c.name for c in result.categories] == ["Old"]
        assert state == CacheState.REFRESHING

    def test_background_refresh_overwrites_cache(self, data_dir):
        service, cache = _build(data_dir, _playlist_handler(), M3uSource(url=PLAYLIST_URL))
        cache.save_playlist_text(CACHED, source_url=PLAYLIST_URL)

        async def scenario():
            first = await service.load_catalog()
            await service.drain()
            return first

        first = asyncio.run(scenario())

        # The caller keeps the cached catalog; the next load sees the new text.
        assert [c.name for c in first.categories] == ["Old"]
        assert [c.name for c in service.catalog] == ["Old"]
        assert cache.get_playlist_text() == FRESH
        assert service.state == CacheState.CACHE_HIT

        second = asyncio.run(service.load_catalog())
        assert [c.name for c in second.categories] == ["New"]

    def test_background_failure_keeps_cache(self, data_dir):
        service, cache = _build(data_dir, _playlist_handler(status=500), M3uSource(url=PLAYLIST_URL))
        cache.save_playlist_text(CACHED, source_url=PLAYLIST_URL)

        async def scenario():
            result = await service.load_catalog()
            await service.drain()
            return result

        result = asyncio.run(scenario())

        assert result.error is None
        assert cache.get_playlist_text() == CACHED

    def test_background_empty_body_keeps_cache(self, data_dir):
        service, cache = _build(data_dir, _playlist_handler(body=""), M3uSource(url=PLAYLIST_URL))
        cache.save_playlist_text(CACHED, source_url=PLAYLIST_URL)

        async def scenario():
            await service.load_catalog()
            await service.drain()

        asyncio.run(scenario())
        assert cache.get_playlist_text() == CACHED

    def test_single_refresh_in_flight(self, data_dir):
        seen: list = []
        release = None

        async def slow(request):
            seen.append(request)
            await release.wait()
            return httpx.Response(200, text=FRESH)

        service, cache = _build(data_dir, slow, M3uSource(url=PLAYLIST_URL))
        cache.save_playlist_text(CACHED, source_url=PLAYLIST_URL)

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            await service.load_catalog()
            await service.load_catalog()
            await asyncio.sleep(0)
            release.set()
            await service.drain()

        asyncio.run(scenario())
        assert len(seen) == 1
        assert cache.get_playlist_text() == FRESH


def _xtream_handler(status="Active", streams_for=("1",)):
    def handler(request: httpx.Request) -> httpx.Response:
        action = request.url.params.get("action")
        if action is None:
            return httpx.Response(200, json={"user_info": {"username": "u", "status": status}})
        if action == "get_live_categories":
            return httpx.Response(200, json=[
                {"category_id": "1", "category_name": "Sports"},
                {"category_id": "2", "category_name": "Kids"},
            ])
        if action == "get_live_streams":
            cat_id = request.url.params["category_id"]
            if cat_id in streams_for:
                return httpx.Response(200, json=[{"stream_id": 10 + int(cat_id), "name": f"Ch {cat_id}"}])
            return httpx.Response(200, json=[])
        return httpx.Response(404)

    return handler


XTREAM = XtreamSource(server="http://xt.test", username="u", password="p")


class TestXtream:
    def test_loads_live_catalog(self, data_dir):
        service, cache = _build(data_dir, _xtream_handler(), XTREAM)
        result = asyncio.run(service.load_catalog())

        assert result.error is None
        assert result.from_cache is False
        assert [c.name for c in result.categories] == ["Sports"]
        assert result.categories[0].channels[0].url == "http://xt.test/live/u/p/11.m3u8"
        assert cache.get_playlist_text() == ""

    def test_inactive_account(self, data_dir):
        service, _ = _build(data_dir, _xtream_handler(status="Banned"), XTREAM)
        result = asyncio.run(service.load_catalog())

        assert result.categories == []
        assert "not active" in result.error

    def test_no_channels_is_empty_result(self, data_dir):
        service, _ = _build(data_dir, _xtream_handler(streams_for=()), XTREAM)
        result = asyncio.run(service.load_catalog())

        assert result.categories == []
        assert result.error == "No channels found"

    def test_vod_requires_xtream(self, data_dir):
        service, _ = _build(data_dir, _playlist_handler(), M3uSource(url=PLAYLIST_URL))
        result = asyncio.run(service.load_vod_catalog())
        assert result.error

    def test_test_source(self, data_dir):
        service, _ = _build(data_dir, _xtream_handler(status="Expired"))
        user_info = asyncio.run(service.test_source(XTREAM))
        assert user_info.status == "Expired"


class TestConfigureSource:
    def test_switching_type_clears_cache(self, data_dir):
        service, cache = _build(data_dir, _playlist_handler(), M3uSource(url=PLAYLIST_URL))
        cache.save_playlist_text(CACHED, source_url=PLAYLIST_URL)

        service.configure_source(XTREAM)

        assert cache.get_playlist_text() == ""
        assert service.config_service.get_source() == XTREAM

    def test_saving_m3u_clears_cache(self, data_dir):
        service, cache = _build(data_dir, _playlist_handler(), M3uSource(url=PLAYLIST_URL))
        cache.save_playlist_text(CACHED, source_url=PLAYLIST_URL)

        service.configure_source(M3uSource(url="http://lists.test/other.m3u"))

        assert cache.get_playlist_text() == ""
        assert service.state == CacheState.NO_CACHE

    def test_refresh_of_previous_url_does_not_land_in_cache(self, data_dir):
        other_url = "http://lists.test/other.m3u"
        release = None

        async def by_url(request):
            if str(request.url) == PLAYLIST_URL:
                await release.wait()
                return httpx.Response(200, text=CACHED.replace("Old", "Stale"))
            return httpx.Response(200, text=FRESH)

        service, cache = _build(data_dir, by_url, M3uSource(url=PLAYLIST_URL))
        cache.save_playlist_text(CACHED, source_url=PLAYLIST_URL)

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            first = await service.load_catalog()
            service.configure_source(M3uSource(url=other_url))
            release.set()
            await service.drain()
            return first

        first = asyncio.run(scenario())
        assert first.from_cache is True
        assert cache.get_playlist_text() == ""

        result = asyncio.run(service.load_catalog())
        assert result.from_cache is False
        assert [c.name for c in result.categories] == ["New"]
        assert cache.get_playlist_meta()["source_url"] == other_url

    def test_cache_for_another_url_is_ignored(self, data_dir):
        service, cache = _build(data_dir, _playlist_handler(), M3uSource(url=PLAYLIST_URL))
        cache.save_playlist_text(CACHED, source_url="http://lists.test/other.m3u")

        result = asyncio.run(service.load_catalog())

        assert result.from_cache is False
        assert [c.name for c in result.categories] == ["New"]
        assert cache.get_playlist_meta()["source_url"] == PLAYLIST_URL

    def test_source_persisted(self, data_dir):
        service, _ = _build(data_dir, _playlist_handler())
        service.configure_source(XTREAM)

        reloaded = ConfigService(data_dir)
        reloaded.load()
        assert reloaded.get_source() == XTREAM


class TestPlayback:
    def test_play_records_last_channel(self, data_dir):
        service, _ = _build(data_dir, _playlist_handler(), M3uSource(url=PLAYLIST_URL))
        asyncio.run(service.load_catalog())

        info = service.play_channel("2")

        assert info.name == "Second"
        assert info.url == "http://stream.test/second"
        assert info.logo == ""
        channel_id, channel = service.last_channel()
        assert channel_id == "2"
        assert channel.name == "Second"

    def test_unknown_channel(self, data_dir):
        service, _ = _build(data_dir, _playlist_handler(), M3uSource(url=PLAYLIST_URL))
        asyncio.run(service.load_catalog())

        assert service.play_channel("999") is None
        assert service.last_channel() == ("", None)
