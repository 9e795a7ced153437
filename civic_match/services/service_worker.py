"""
Offline caching worker for Civic Match clients.

Sits between an httpx client and the network the way a browser service
worker sits between a tab and the network:

- install: precache the app shell, offline page, manifest and icons
- activate: sweep cache stores from older versions, then take control
- fetch: network-first for navigations (offline page as fallback),
  stale-while-revalidate for every other same-origin GET

Non-GET and cross-origin traffic (e.g. Supabase) is never touched.

Usage:
    client = await create_offline_client("https://civicmatch.app")
    response = await client.get("/icon.svg")
    await client.aclose()
"""

import asyncio
import logging
from enum import Enum

import httpx

from civic_match.config import get_settings
from civic_match.services.offline_cache import (
    CacheStorage,
    CacheWriteError,
    StoredResponse,
    request_key,
)

logger = logging.getLogger(__name__)

CACHE_NAME = "cm-cache-v1"
OFFLINE_URL = "/offline"
PRECACHE_URLS: tuple[str, ...] = (
    "/",
    OFFLINE_URL,
    "/manifest.webmanifest",
    "/icon.svg",
    "/favicon.ico",
)

_DEFAULT_PORTS = {"http": 80, "https": 443}


class WorkerState(str, Enum):
    """Lifecycle state of the worker."""

    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class InstallError(Exception):
    """Precaching failed; the worker cannot activate."""


def origin_of(url: httpx.URL) -> tuple[str, str, int | None]:
    """Scheme, host and effective port of a URL."""
    return (url.scheme, url.host, url.port or _DEFAULT_PORTS.get(url.scheme))


def is_navigation_request(request: httpx.Request) -> bool:
    """True for top-level document loads (``Sec-Fetch-Mode: navigate``)."""
    return request.headers.get("sec-fetch-mode", "").lower() == "navigate"


class OfflineCacheWorker:
    """Install/activate/fetch handlers over an injected cache store.

    The network is any httpx async transport; the store is shared with
    every other worker pointed at the same CacheStorage.
    """

    def __init__(
        self,
        storage: CacheStorage,
        origin: str | httpx.URL,
        network: httpx.AsyncBaseTransport,
        cache_name: str = CACHE_NAME,
        precache_urls: tuple[str, ...] = PRECACHE_URLS,
        offline_url: str = OFFLINE_URL,
    ):
        self.storage = storage
        self.origin = httpx.URL(origin)
        self.network = network
        self.cache_name = cache_name
        self.precache_urls = precache_urls
        self.offline_url = offline_url
        self.state = WorkerState.PARSED
        self.controlling = False
        self._background: set[asyncio.Task[None]] = set()

    def _resolve(self, path: str) -> httpx.URL:
        return self.origin.join(path)

    async def register(self) -> None:
        """Bring the worker to the activated state.

        A version whose store already exists was installed by an earlier
        run and is not reinstalled. Activation follows install immediately
        (skip-waiting).

        Raises:
            InstallError: If precaching fails
        """
        if self.storage.has(self.cache_name):
            logger.debug("[OfflineCache] Version already installed | cache=%s", self.cache_name)
            self.state = WorkerState.INSTALLED
        else:
            await self.on_install()
        await self.on_activate()

    async def on_install(self) -> None:
        """Precache the fixed URL list, all or nothing.

        Raises:
            InstallError: On a network failure or non-2xx precache response
        """
        self.state = WorkerState.INSTALLING
        snapshots: list[StoredResponse] = []

        for path in self.precache_urls:
            url = self._resolve(path)
            try:
                response = await self.network.handle_async_request(httpx.Request("GET", url))
                snapshot = await StoredResponse.from_response(response, url)
            except httpx.TransportError as e:
                self.state = WorkerState.REDUNDANT
                raise InstallError(f"Failed to precache {url}: {e}") from e

            if not 200 <= snapshot.status_code < 300:
                self.state = WorkerState.REDUNDANT
                raise InstallError(
                    f"Failed to precache {url}: HTTP {snapshot.status_code}"
                )
            snapshots.append(snapshot)

        try:
            self.storage.open(self.cache_name).put_all(snapshots)
        except CacheWriteError as e:
            self.state = WorkerState.REDUNDANT
            raise InstallError(str(e)) from e

        self.state = WorkerState.INSTALLED
        logger.info(
            "📦 [OfflineCache] Installed | cache=%s precached=%d",
            self.cache_name,
            len(snapshots),
        )

    async def on_activate(self) -> list[str]:
        """Delete stores from other versions and take control.

        Returns:
            Names of the deleted stores
        """
        self.state = WorkerState.ACTIVATING
        deleted = [
            name
            for name in self.storage.keys()
            if name != self.cache_name and self.storage.delete(name)
        ]
        self.controlling = True
        self.state = WorkerState.ACTIVATED
        logger.info(
            "✅ [OfflineCache] Activated | cache=%s swept=%s",
            self.cache_name,
            deleted or "none",
        )
        return deleted

    async def on_fetch(self, request: httpx.Request) -> httpx.Response | None:
        """Handle an intercepted request.

        Returns:
            The response to use, or None when the request is not
            intercepted and must go to the network untouched
        """
        if not self.controlling:
            return None
        if request.method != "GET":
            return None
        # Never cache or redirect third-party traffic
        if origin_of(request.url) != origin_of(self.origin):
            return None

        if is_navigation_request(request):
            return await self._network_first(request)
        return await self._stale_while_revalidate(request)

    async def _network_first(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self.network.handle_async_request(request)
        except httpx.TransportError as e:
            fallback = self.storage.match(self._resolve(self.offline_url))
            if fallback is None:
                raise
            logger.info(
                "📴 [OfflineCache] Navigation offline, serving fallback | url=%s error=%s",
                request.url,
                e,
            )
            return fallback.to_response(request)

    async def _stale_while_revalidate(self, request: httpx.Request) -> httpx.Response:
        cached = self.storage.match(request.url)
        if cached is None:
            logger.debug("[OfflineCache] Miss | url=%s", request.url)
            return await self._revalidate(request)

        logger.debug("[OfflineCache] Hit, revalidating in background | url=%s", request.url)
        task = asyncio.create_task(self._revalidate_in_background(request, cached))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return cached.to_response(request)

    async def _revalidate(
        self, request: httpx.Request, cached: StoredResponse | None = None
    ) -> httpx.Response:
        """Fetch from the network and refresh the store.

        Falls back to ``cached`` on a network failure; with nothing cached
        the network error propagates to the caller.
        """
        try:
            response = await self.network.handle_async_request(request)
            fresh = await StoredResponse.from_response(response, request.url)
        except httpx.TransportError:
            if cached is None:
                raise
            return cached.to_response(request)

        self._store(fresh)
        return fresh.to_response(request)

    async def _revalidate_in_background(
        self, request: httpx.Request, cached: StoredResponse
    ) -> None:
        try:
            await self._revalidate(request, cached)
        except Exception as e:
            logger.error("Background revalidation failed for %s: %s", request.url, e)

    def _store(self, response: StoredResponse) -> None:
        """Best-effort write; failures never reach the caller."""
        try:
            self.storage.open(self.cache_name).put(response)
        except CacheWriteError as e:
            logger.warning("Offline cache write skipped for %s: %s", response.url, e)

    async def wait_for_background(self) -> None:
        """Wait until every pending background revalidation has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)


class OfflineCacheTransport(httpx.AsyncBaseTransport):
    """httpx transport that routes requests through an OfflineCacheWorker."""

    def __init__(self, worker: OfflineCacheWorker):
        self.worker = worker

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        response = await self.worker.on_fetch(request)
        if response is None:
            return await self.worker.network.handle_async_request(request)
        return response

    async def aclose(self) -> None:
        await self.worker.wait_for_background()
        await self.worker.network.aclose()


async def create_offline_client(
    base_url: str | None = None,
    storage: CacheStorage | None = None,
    network: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an httpx client whose requests go through the offline worker.

    Args:
        base_url: App origin. Defaults to APP_ORIGIN
        storage: Cache storage. Defaults to OFFLINE_CACHE_PATH
        network: Underlying transport. Defaults to a real HTTP transport

    Raises:
        InstallError: If this cache version is new and precaching fails
    """
    settings = get_settings()
    base_url = base_url or settings.app_origin
    worker = OfflineCacheWorker(
        storage=storage or CacheStorage(settings.offline_cache_path),
        origin=base_url,
        network=network or httpx.AsyncHTTPTransport(),
        cache_name=settings.offline_cache_name,
    )
    await worker.register()
    return httpx.AsyncClient(
        base_url=base_url,
        transport=OfflineCacheTransport(worker),
        timeout=30.0,
    )
