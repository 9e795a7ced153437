"""
Civic challenge queries over the managed database.

Challenges are news-derived civic problems pinned to a location. This
service only reads them (plus the maintenance RPCs); ingestion happens
elsewhere.
"""

import logging
from typing import Any

from civic_match.models import (
    BoundingBox,
    Challenge,
    ChallengeCategory,
    ChallengeCategoryStats,
    ChallengeForMap,
    ChallengeSeverity,
    severities_at_least,
)
from civic_match.services.supabase import (
    QueryBuilder,
    SupabaseClient,
    SupabaseError,
    get_service_client,
)

logger = logging.getLogger(__name__)

NEARBY_MAX_RESULTS = 10


class ChallengeService:
    """Read access to the challenges table and its stats view."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    def _apply_filters(
        self,
        query: QueryBuilder,
        categories: list[ChallengeCategory] | None,
        severity: ChallengeSeverity | None,
        limit: int,
    ) -> QueryBuilder:
        if categories:
            query = query.in_("category", categories)
        if severity:
            query = query.in_("severity", severities_at_least(severity))
        return (
            query.order("severity", desc=True)
            .order("published_at", desc=True)
            .limit(limit)
        )

    async def get_all_challenges(
        self,
        categories: list[ChallengeCategory] | None = None,
        severity: ChallengeSeverity | None = None,
        limit: int = 500,
    ) -> list[ChallengeForMap]:
        """Get all active challenges (map display without bounds)."""
        query = self.client.table("challenges").select("*").eq("status", "active")
        query = self._apply_filters(query, categories, severity, limit)

        try:
            response = await query.execute()
        except SupabaseError as e:
            logger.error("Error fetching all challenges: %s", e)
            raise

        return [ChallengeForMap.model_validate(row) for row in response.data or []]

    async def get_challenges_in_bounds(
        self,
        bounds: BoundingBox,
        categories: list[ChallengeCategory] | None = None,
        severity: ChallengeSeverity | None = None,
        limit: int = 100,
    ) -> list[ChallengeForMap]:
        """Get active challenges inside a map viewport."""
        query = (
            self.client.table("challenges")
            .select("*")
            .eq("status", "active")
            .gte("latitude", bounds.south)
            .lte("latitude", bounds.north)
            .gte("longitude", bounds.west)
            .lte("longitude", bounds.east)
        )
        query = self._apply_filters(query, categories, severity, limit)

        try:
            response = await query.execute()
        except SupabaseError as e:
            logger.error("Error fetching challenges: %s", e)
            raise

        return [ChallengeForMap.model_validate(row) for row in response.data or []]

    async def get_challenge_by_id(self, challenge_id: str) -> Challenge | None:
        """Get a single active challenge, or None if it does not exist."""
        query = (
            self.client.table("challenges")
            .select("*")
            .eq("id", challenge_id)
            .eq("status", "active")
            .single()
        )
        try:
            response = await query.execute()
        except SupabaseError as e:
            if e.is_not_found:
                return None
            logger.error("Error fetching challenge: %s", e)
            raise

        return Challenge.model_validate(response.data)

    async def get_category_stats(self) -> list[ChallengeCategoryStats]:
        """Get per-category counts for the filter UI."""
        try:
            response = await self.client.table("challenge_category_stats").select("*").execute()
        except SupabaseError as e:
            logger.error("Error fetching category stats: %s", e)
            raise

        return [ChallengeCategoryStats.model_validate(row) for row in response.data or []]

    async def get_nearby(
        self, latitude: float, longitude: float, radius_km: float
    ) -> dict[str, Any]:
        """Get people and projects near a point via the nearby_* RPCs."""
        params = {
            "lat": latitude,
            "lng": longitude,
            "radius_km": radius_km,
            "max_results": NEARBY_MAX_RESULTS,
        }
        people = await self.client.rpc("nearby_people", params)
        projects = await self.client.rpc("nearby_projects", params)
        return {
            "people": people.data or [],
            "projects": projects.data or [],
            "radius_km": radius_km,
        }

    async def run_expiration_job(self) -> int:
        """Mark old challenges as expired. Returns the number expired."""
        try:
            response = await self.client.rpc("expire_old_challenges")
        except SupabaseError as e:
            logger.error("Error running challenge expiration job: %s", e)
            raise
        return int(response.data or 0)

    async def clean_geocode_cache(self) -> int:
        """Remove stale geocode cache rows. Returns the number removed."""
        try:
            response = await self.client.rpc("clean_geocode_cache")
        except SupabaseError as e:
            logger.error("Error cleaning geocode cache: %s", e)
            raise
        return int(response.data or 0)


# Singleton instance
_service: ChallengeService | None = None


def get_challenge_service() -> ChallengeService:
    """Get the singleton challenge service bound to the service role client."""
    global _service
    if _service is None:
        _service = ChallengeService(get_service_client())
    return _service
