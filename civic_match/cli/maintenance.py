#!/usr/bin/env python3
"""
CLI for offline cache management and scheduled maintenance.

Usage:
    # Install and activate the offline worker against a running app
    python -m civic_match.cli.maintenance install --base-url http://localhost:8000

    # Fetch a path through the offline worker (add --navigate for pages)
    python -m civic_match.cli.maintenance get /icon.svg
    python -m civic_match.cli.maintenance get / --navigate

    # Inspect or clear cache stores
    python -m civic_match.cli.maintenance caches
    python -m civic_match.cli.maintenance clear --name cm-cache-v0

    # Run the expiration jobs against Supabase
    python -m civic_match.cli.maintenance expire
"""

import argparse
import asyncio
import json
import logging
import sys

import httpx

from civic_match.config import get_settings
from civic_match.services.challenges import get_challenge_service
from civic_match.services.event_discovery import get_event_discovery_service
from civic_match.services.offline_cache import CacheStorage
from civic_match.services.service_worker import InstallError, create_offline_client
from civic_match.services.supabase import get_service_client

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def install(base_url: str | None) -> None:
    """Install (if needed) and activate the worker, then list the cache."""
    storage = CacheStorage()
    try:
        client = await create_offline_client(base_url, storage=storage)
    except InstallError as e:
        logger.error("Install failed: %s", e)
        sys.exit(1)
    await client.aclose()

    cache = storage.open(get_settings().offline_cache_name)
    print(json.dumps({"cache": cache.name, "entries": cache.keys()}, indent=2))


async def fetch(base_url: str | None, path: str, navigate: bool) -> None:
    """Fetch one path through the worker and print the result."""
    try:
        client = await create_offline_client(base_url)
    except InstallError as e:
        logger.error("Install failed: %s", e)
        sys.exit(1)
    headers = {"Sec-Fetch-Mode": "navigate"} if navigate else {}
    try:
        response = await client.get(path, headers=headers)
    except httpx.TransportError as e:
        logger.error("Fetch failed (offline, nothing cached): %s", e)
        sys.exit(1)
    finally:
        await client.aclose()

    print(f"HTTP {response.status_code} {response.headers.get('content-type', '')}")
    print(response.text)


def list_caches() -> None:
    storage = CacheStorage()
    summary = {name: storage.open(name).count() for name in storage.keys()}
    print(json.dumps(summary, indent=2))


def clear_caches(name: str | None) -> None:
    storage = CacheStorage()
    names = [name] if name else storage.keys()
    deleted = [n for n in names if storage.delete(n)]
    logger.info("Deleted %d cache store(s): %s", len(deleted), ", ".join(deleted) or "none")


async def expire() -> None:
    """Run the challenge/event expiration jobs and geocode cache cleanup."""
    try:
        challenges = await get_challenge_service().run_expiration_job()
        events = await get_event_discovery_service().run_expiration_job()
        geocodes = await get_challenge_service().clean_geocode_cache()
    finally:
        await get_service_client().close()

    print(
        json.dumps(
            {
                "expired_challenges": challenges,
                "expired_events": events,
                "cleaned_geocodes": geocodes,
            },
            indent=2,
        )
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Civic Match maintenance")
    parser.add_argument("--base-url", help="App origin (defaults to APP_ORIGIN)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("install", help="Install and activate the offline worker")

    get_parser = subparsers.add_parser("get", help="Fetch a path through the offline worker")
    get_parser.add_argument("path", help="Path to fetch, e.g. /icon.svg")
    get_parser.add_argument(
        "--navigate", action="store_true", help="Send as a page navigation"
    )

    subparsers.add_parser("caches", help="List cache stores and entry counts")

    clear_parser = subparsers.add_parser("clear", help="Delete cache stores")
    clear_parser.add_argument("--name", help="Only delete this store")

    subparsers.add_parser("expire", help="Run expiration jobs")

    args = parser.parse_args()

    if args.command == "install":
        asyncio.run(install(args.base_url))
    elif args.command == "get":
        asyncio.run(fetch(args.base_url, args.path, args.navigate))
    elif args.command == "caches":
        list_caches()
    elif args.command == "clear":
        clear_caches(args.name)
    elif args.command == "expire":
        asyncio.run(expire())


if __name__ == "__main__":
    main()
