"""
Services for Civic Match backend.

This module provides the managed-backend client, the query services behind
the API routes, calendar export, and the offline caching worker.

Querying the managed backend::

    from civic_match.services import get_event_discovery_service

    service = get_event_discovery_service()
    events, total = await service.get_discovered_events(city="Berlin", limit=20)

Running requests through the offline worker::

    from civic_match.services import create_offline_client

    client = await create_offline_client("https://civicmatch.app")
    shell = await client.get("/", headers={"Sec-Fetch-Mode": "navigate"})
    icon = await client.get("/icon.svg")  # stale-while-revalidate
    await client.aclose()

Available Services
------------------
- SupabaseClient: PostgREST queries, RPC calls, auth endpoints
- ChallengeService: Civic challenge reads and maintenance RPCs
- EventDiscoveryService: Discovered/combined event reads
- AccountService: Token verification and account deletion
- CalendarEvent: ICS calendar generation
- CacheStorage, OfflineCacheWorker: Offline response caching
"""

from .accounts import AccountService, get_account_service
from .calendar import CalendarEvent, calendar_event_from_discovered, create_ics_event
from .challenges import ChallengeService, get_challenge_service
from .event_discovery import EventDiscoveryService, get_event_discovery_service
from .offline_cache import Cache, CacheStorage, CacheWriteError, StoredResponse
from .service_worker import (
    CACHE_NAME,
    OFFLINE_URL,
    PRECACHE_URLS,
    InstallError,
    OfflineCacheTransport,
    OfflineCacheWorker,
    WorkerState,
    create_offline_client,
)
from .supabase import (
    APIResponse,
    QueryBuilder,
    SupabaseClient,
    SupabaseError,
    get_anon_client,
    get_service_client,
)

__all__ = [
    "AccountService",
    "get_account_service",
    "CalendarEvent",
    "calendar_event_from_discovered",
    "create_ics_event",
    "ChallengeService",
    "get_challenge_service",
    "EventDiscoveryService",
    "get_event_discovery_service",
    "Cache",
    "CacheStorage",
    "CacheWriteError",
    "StoredResponse",
    "CACHE_NAME",
    "OFFLINE_URL",
    "PRECACHE_URLS",
    "InstallError",
    "OfflineCacheTransport",
    "OfflineCacheWorker",
    "WorkerState",
    "create_offline_client",
    "APIResponse",
    "QueryBuilder",
    "SupabaseClient",
    "SupabaseError",
    "get_anon_client",
    "get_service_client",
]
