"""Tests for the maintenance CLI."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from civic_match.cli import maintenance
from civic_match.config import get_settings
from civic_match.services.offline_cache import CacheStorage, StoredResponse
from civic_match.services.service_worker import PRECACHE_URLS, create_offline_client

ORIGIN = "https://civicmatch.test"
OFFLINE_BODY = "<html>You are offline</html>"


@pytest.fixture
def cache_path(tmp_path, monkeypatch):
    path = tmp_path / "offline.db"
    monkeypatch.setenv("OFFLINE_CACHE_PATH", str(path))
    get_settings.cache_clear()
    return path


class TestCacheCommands:
    """Tests for cache inspection and cleanup."""

    def test_list_caches(self, cache_path, capsys):
        storage = CacheStorage(cache_path)
        storage.open("cm-cache-v1").put(
            StoredResponse(url="http://localhost:8000/", status_code=200, body=b"shell")
        )
        storage.open("cm-cache-v0")

        maintenance.list_caches()

        assert json.loads(capsys.readouterr().out) == {"cm-cache-v1": 1, "cm-cache-v0": 0}

    def test_clear_one_store(self, cache_path):
        storage = CacheStorage(cache_path)
        storage.open("cm-cache-v0")
        storage.open("cm-cache-v1")

        maintenance.clear_caches("cm-cache-v0")

        assert storage.keys() == ["cm-cache-v1"]

    def test_clear_all_stores(self, cache_path):
        storage = CacheStorage(cache_path)
        storage.open("cm-cache-v0")
        storage.open("cm-cache-v1")

        maintenance.clear_caches(None)

        assert storage.keys() == []


class TestExpireCommand:
    @pytest.mark.asyncio
    async def test_runs_all_jobs(self, capsys):
        challenges = MagicMock()
        challenges.run_expiration_job = AsyncMock(return_value=1)
        challenges.clean_geocode_cache = AsyncMock(return_value=2)
        events = MagicMock()
        events.run_expiration_job = AsyncMock(return_value=3)
        client = MagicMock()
        client.close = AsyncMock()

        with (
            patch.object(maintenance, "get_challenge_service", return_value=challenges),
            patch.object(maintenance, "get_event_discovery_service", return_value=events),
            patch.object(maintenance, "get_service_client", return_value=client),
        ):
            await maintenance.expire()

        assert json.loads(capsys.readouterr().out) == {
            "expired_challenges": 1,
            "expired_events": 3,
            "cleaned_geocodes": 2,
        }
        client.close.assert_awaited_once()


class FakeApp:
    """Network stand-in for a running Civic Match app."""

    def __init__(self):
        self.offline = False

    def handle(self, request: httpx.Request) -> httpx.Response:
        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path == "/offline":
            return httpx.Response(200, text=OFFLINE_BODY)
        return httpx.Response(200, text=f"page {request.url.path}")

    def client_factory(self):
        async def factory(base_url=None, storage=None):
            return await create_offline_client(
                base_url, storage=storage, network=httpx.MockTransport(self.handle)
            )

        return factory


@pytest.fixture
def app():
    fake = FakeApp()
    with patch.object(maintenance, "create_offline_client", fake.client_factory()):
        yield fake


class TestWorkerCommands:
    """Tests for install and get."""

    @pytest.mark.asyncio
    async def test_install_lists_precached_urls(self, cache_path, app, capsys):
        await maintenance.install(ORIGIN)

        output = json.loads(capsys.readouterr().out)
        assert output["cache"] == get_settings().offline_cache_name
        assert output["entries"] == [f"{ORIGIN}{path}" for path in PRECACHE_URLS]

    @pytest.mark.asyncio
    async def test_install_failure_exits(self, cache_path, app):
        app.offline = True
        with pytest.raises(SystemExit) as exc_info:
            await maintenance.install(ORIGIN)
        assert exc_info.value.code == 1

    @pytest.mark.asyncio
    async def test_get_navigate_offline_prints_offline_page(self, cache_path, app, capsys):
        await maintenance.install(ORIGIN)
        capsys.readouterr()
        app.offline = True

        await maintenance.fetch(ORIGIN, "/", navigate=True)

        output = capsys.readouterr().out
        assert output.startswith("HTTP 200")
        assert OFFLINE_BODY in output

    @pytest.mark.asyncio
    async def test_get_online(self, cache_path, app, capsys):
        await maintenance.fetch(ORIGIN, "/events", navigate=False)
        assert "page /events" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_get_install_failure_exits(self, cache_path, app):
        app.offline = True
        with pytest.raises(SystemExit) as exc_info:
            await maintenance.fetch(ORIGIN, "/", navigate=False)
        assert exc_info.value.code == 1

    @pytest.mark.asyncio
    async def test_get_uncached_offline_exits(self, cache_path, app):
        await maintenance.install(ORIGIN)
        app.offline = True
        with pytest.raises(SystemExit) as exc_info:
            await maintenance.fetch(ORIGIN, "/styles.css", navigate=False)
        assert exc_info.value.code == 1
