"""
Discovered event queries over the managed database.

Covers the list, map, detail and stats reads used by the events pages,
plus the combined feed that merges user-submitted and discovered events
(the ``combined_events`` view).
"""

import logging
from datetime import UTC, date, datetime
from typing import Any

from civic_match.models import BoundingBox, DiscoveredEvent, DiscoveredEventsStats
from civic_match.services.supabase import SupabaseClient, SupabaseError, get_service_client

logger = logging.getLogger(__name__)

DEFAULT_MIN_RELEVANCE = 60


class EventDiscoveryService:
    """Read access to discovered events and the combined feed."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def get_discovered_events(
        self,
        upcoming: bool = True,
        types: list[str] | None = None,
        tags: list[str] | None = None,
        city: str | None = None,
        country: str | None = None,
        online: bool | None = None,
        min_relevance: int = DEFAULT_MIN_RELEVANCE,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DiscoveredEvent], int]:
        """Get discovered events with filters.

        Args:
            upcoming: Only events starting today or later
            types: Event types to include
            tags: Match events sharing at least one tag
            city: City substring (case-insensitive)
            country: Country substring (case-insensitive)
            online: Filter on is_online when not None
            min_relevance: Minimum relevance score (0-100)
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (events, exact total matching the filters)
        """
        query = (
            self.client.table("discovered_events")
            .select("*", count="exact")
            .eq("status", "active")
            .gte("relevance_score", min_relevance)
        )

        if upcoming:
            query = query.gte("start_date", date.today())
        if types:
            query = query.in_("event_type", types)
        if tags:
            query = query.overlaps("tags", tags)
        if city:
            query = query.ilike("location_city", f"%{city}%")
        if country:
            query = query.ilike("location_country", f"%{country}%")
        if online is not None:
            query = query.eq("is_online", online)

        query = query.order("start_date").range(offset, offset + limit - 1)

        try:
            response = await query.execute()
        except SupabaseError as e:
            logger.error("Error fetching discovered events: %s", e)
            raise

        events = [DiscoveredEvent.model_validate(row) for row in response.data or []]
        return events, response.count or 0

    async def get_events_in_bounds(
        self,
        bounds: BoundingBox,
        types: list[str] | None = None,
        min_relevance: int = DEFAULT_MIN_RELEVANCE,
        limit: int = 100,
    ) -> list[DiscoveredEvent]:
        """Get geolocated events inside a map viewport, most relevant first."""
        query = (
            self.client.table("discovered_events")
            .select("*")
            .eq("status", "active")
            .gte("relevance_score", min_relevance)
            .not_null("latitude")
            .not_null("longitude")
            .gte("latitude", bounds.south)
            .lte("latitude", bounds.north)
            .gte("longitude", bounds.west)
            .lte("longitude", bounds.east)
        )
        if types:
            query = query.in_("event_type", types)

        query = query.order("relevance_score", desc=True).limit(limit)

        try:
            response = await query.execute()
        except SupabaseError as e:
            logger.error("Error fetching events in bounds: %s", e)
            raise

        return [DiscoveredEvent.model_validate(row) for row in response.data or []]

    async def get_event_by_id(self, event_id: str) -> DiscoveredEvent | None:
        """Get a single discovered event, or None if it does not exist."""
        query = self.client.table("discovered_events").select("*").eq("id", event_id).single()
        try:
            response = await query.execute()
        except SupabaseError as e:
            if e.is_not_found:
                return None
            logger.error("Error fetching discovered event: %s", e)
            raise

        return DiscoveredEvent.model_validate(response.data)

    async def get_combined_events(
        self,
        upcoming: bool = True,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], int]:
        """Get user-submitted and discovered events merged, soonest first."""
        query = self.client.table("combined_events").select("*", count="exact")

        if upcoming:
            query = query.gte("start_datetime", datetime.now(UTC))

        query = query.order("start_datetime").range(offset, offset + limit - 1)

        try:
            response = await query.execute()
        except SupabaseError as e:
            logger.error("Error fetching combined events: %s", e)
            raise

        return list(response.data or []), response.count or 0

    async def get_stats(self) -> DiscoveredEventsStats:
        """Get summary counts for discovered events."""
        try:
            response = await self.client.table("discovered_events_stats").select("*").single().execute()
        except SupabaseError as e:
            logger.error("Error fetching discovered events stats: %s", e)
            raise

        return DiscoveredEventsStats.model_validate(response.data)

    async def run_expiration_job(self) -> int:
        """Mark past events as expired. Returns the number expired."""
        try:
            response = await self.client.rpc("expire_old_events")
        except SupabaseError as e:
            logger.error("Error running event expiration job: %s", e)
            raise
        return int(response.data or 0)


# Singleton instance
_service: EventDiscoveryService | None = None


def get_event_discovery_service() -> EventDiscoveryService:
    """Get the singleton event discovery service bound to the service role client."""
    global _service
    if _service is None:
        _service = EventDiscoveryService(get_service_client())
    return _service
