"""API endpoints for Civic Match."""

import logging
import math
import re

from dotenv import load_dotenv
from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from civic_match.config import configure_logging, get_settings
from civic_match.models import (
    CHALLENGE_CATEGORIES,
    BoundingBox,
    ChallengeCategory,
    ChallengeSeverity,
    Pagination,
)
from civic_match.pages import router as pages_router
from civic_match.services.accounts import get_account_service
from civic_match.services.calendar import calendar_event_from_discovered, create_ics_event
from civic_match.services.challenges import get_challenge_service
from civic_match.services.event_discovery import get_event_discovery_service

load_dotenv()

# Configure logging from settings (uses LOG_LEVEL env var)
configure_logging()
logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*[+-]?\d+")

LOGO_CACHE_CONTROL = "public, max-age=31536000, immutable"

FALLBACK_LOGO_SVG = """
<svg width="32" height="32" viewBox="0 0 32 32" xmlns="http://www.w3.org/2000/svg">
  <circle cx="16" cy="16" r="16" fill="#ff6b35"/>
  <text x="16" y="20" text-anchor="middle" fill="white" font-family="Arial, sans-serif" font-size="14" font-weight="bold">C</text>
</svg>
"""


def _parse_int(value: str | None, default: int, minimum: int = 0) -> int:
    """Parse the leading integer of a query parameter (``"12abc"`` is 12).

    Falls back to the default when there are no leading digits.
    """
    match = _LEADING_INT.match(value or "")
    if match is None:
        return default
    return max(int(match.group()), minimum)


def _parse_limit(value: str | None, default: int, maximum: int) -> int:
    return min(_parse_int(value, default, minimum=1), maximum)


def _parse_float(value: str | None) -> float | None:
    """Parse a float query parameter; None when missing or not a number."""
    if value is None or value == "":
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    return None if math.isnan(parsed) else parsed


def _parse_csv(value: str | None) -> list[str] | None:
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


def _parse_categories(value: str | None) -> list[ChallengeCategory] | None:
    """Parse a CSV of categories, dropping unknown names."""
    items = _parse_csv(value)
    if items is None:
        return None
    valid = {c.value for c in ChallengeCategory}
    return [ChallengeCategory(item) for item in items if item in valid]


def _parse_severity(value: str | None) -> ChallengeSeverity | None:
    try:
        return ChallengeSeverity(value) if value else None
    except ValueError:
        return None


def _parse_bounds(
    north: str | None,
    south: str | None,
    east: str | None,
    west: str | None,
    default: float | None = None,
) -> BoundingBox | None:
    """Parse a bounding box; missing edges take ``default``, bad ones give None."""
    edges = {}
    for name, raw in (("north", north), ("south", south), ("east", east), ("west", west)):
        if raw is None or raw == "":
            if default is None:
                return None
            edges[name] = default
            continue
        parsed = _parse_float(raw)
        if parsed is None:
            return None
        edges[name] = parsed
    return BoundingBox(**edges)


app = FastAPI(
    title="Civic Match API",
    description="Connect with civic tech founders.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pages_router)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Challenges


@app.get("/api/challenges/categories")
async def challenge_categories():
    """Category metadata merged with live counts for the filter UI."""
    try:
        stats = await get_challenge_service().get_category_stats()
    except Exception as e:
        logger.error("Error fetching category stats: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch category stats") from e

    by_category = {stat.category: stat for stat in stats}
    categories = []
    for info in CHALLENGE_CATEGORIES:
        stat = by_category.get(info.name)
        categories.append(
            {
                **info.model_dump(mode="json"),
                "count": stat.count if stat else 0,
                "critical_count": stat.critical_count if stat else 0,
                "high_count": stat.high_count if stat else 0,
                "new_24h": stat.new_24h if stat else 0,
            }
        )
    return {"categories": categories}


@app.get("/api/challenges")
async def list_challenges(
    all_param: str | None = Query(default=None, alias="all"),
    north: str | None = None,
    south: str | None = None,
    east: str | None = None,
    west: str | None = None,
    categories: str | None = None,
    severity: str | None = None,
    limit: str | None = None,
):
    """Challenges inside a map viewport, or every active one with ``all=true``."""
    category_filter = _parse_categories(categories)
    severity_filter = _parse_severity(severity)
    fetch_all = all_param == "true"
    bounds: BoundingBox | None = None

    if not fetch_all:
        bounds = _parse_bounds(north, south, east, west)
        if bounds is None:
            raise HTTPException(
                status_code=400,
                detail=(
                    "Missing or invalid bounding box parameters (north, south, east, west). "
                    "Use ?all=true to fetch all challenges."
                ),
            )
        if bounds.north < bounds.south or bounds.east < bounds.west:
            raise HTTPException(
                status_code=400,
                detail="Invalid bounding box: north must be > south, east must be > west",
            )

    try:
        service = get_challenge_service()
        if fetch_all:
            challenges = await service.get_all_challenges(
                categories=category_filter,
                severity=severity_filter,
                limit=_parse_limit(limit, 500, 1000),
            )
        else:
            challenges = await service.get_challenges_in_bounds(
                bounds,
                categories=category_filter,
                severity=severity_filter,
                limit=_parse_limit(limit, 50, 200),
            )
    except Exception as e:
        logger.error("Error fetching challenges: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch challenges") from e

    return {
        "challenges": challenges,
        "total": len(challenges),
        "bounds": bounds,
        "filters": {"categories": category_filter, "severity": severity_filter},
        "all": fetch_all,
    }


@app.get("/api/challenges/{challenge_id}")
async def get_challenge(
    challenge_id: str,
    include_nearby: str | None = None,
    radius: str | None = None,
):
    """A single challenge, optionally with nearby people and projects."""
    try:
        service = get_challenge_service()
        challenge = await service.get_challenge_by_id(challenge_id)
    except Exception as e:
        logger.error("Error fetching challenge: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch challenge") from e

    if challenge is None:
        raise HTTPException(status_code=404, detail="Challenge not found")

    result: dict = {"challenge": challenge}

    if include_nearby == "true":
        radius_km = _parse_float(radius)
        if radius_km is None:
            radius_km = 10.0
        try:
            result["nearby"] = await service.get_nearby(
                challenge.latitude, challenge.longitude, radius_km
            )
        except Exception as e:
            # Nearby entities are optional
            logger.warning("Error fetching nearby entities: %s", e)

    return result


# Events


@app.get("/api/events/combined")
async def combined_events(
    upcoming: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
):
    """User-submitted and discovered events merged into one feed."""
    page_limit = _parse_limit(limit, 50, 100)
    page_offset = _parse_int(offset, 0)

    try:
        events, total = await get_event_discovery_service().get_combined_events(
            upcoming=upcoming != "false",
            limit=page_limit,
            offset=page_offset,
        )
    except Exception as e:
        logger.error("Error fetching combined events: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch combined events") from e

    return {
        "events": events,
        "total": total,
        "pagination": Pagination(
            offset=page_offset,
            limit=page_limit,
            has_more=page_offset + len(events) < total,
        ),
    }


@app.get("/api/events/discovered")
async def discovered_events(
    upcoming: str | None = None,
    type_param: str | None = Query(default=None, alias="type"),
    tags: str | None = None,
    city: str | None = None,
    country: str | None = None,
    online: str | None = None,
    min_relevance: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
):
    """Discovered events with filters."""
    page_limit = _parse_limit(limit, 50, 100)
    page_offset = _parse_int(offset, 0)

    try:
        events, total = await get_event_discovery_service().get_discovered_events(
            upcoming=upcoming != "false",
            types=_parse_csv(type_param),
            tags=_parse_csv(tags),
            city=city or None,
            country=country or None,
            online=None if online is None else online == "true",
            min_relevance=_parse_int(min_relevance, 60),
            limit=page_limit,
            offset=page_offset,
        )
    except Exception as e:
        logger.error("Error fetching discovered events: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch discovered events") from e

    return {
        "events": events,
        "total": total,
        "pagination": Pagination(
            offset=page_offset,
            limit=page_limit,
            has_more=page_offset + len(events) < total,
        ),
    }


@app.get("/api/events/discovered/{event_id}")
async def discovered_event(event_id: str):
    """A single discovered event."""
    try:
        event = await get_event_discovery_service().get_event_by_id(event_id)
    except Exception as e:
        logger.error("Error fetching discovered event: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch discovered event") from e

    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return {"event": event}


@app.get("/api/events/map")
async def map_events(
    north: str | None = None,
    south: str | None = None,
    east: str | None = None,
    west: str | None = None,
    type_param: str | None = Query(default=None, alias="type"),
    min_relevance: str | None = None,
    limit: str | None = None,
):
    """Discovered events inside the map viewport."""
    bounds = _parse_bounds(north, south, east, west, default=0.0)
    if bounds is None:
        raise HTTPException(status_code=400, detail="Invalid bounding box parameters")

    try:
        events = await get_event_discovery_service().get_events_in_bounds(
            bounds,
            types=_parse_csv(type_param),
            min_relevance=_parse_int(min_relevance, 60),
            limit=_parse_limit(limit, 100, 200),
        )
    except Exception as e:
        logger.error("Error fetching map events: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch map events") from e

    return {"events": events, "count": len(events), "bounds": bounds}


@app.get("/api/events/stats")
async def event_stats():
    """Summary statistics about discovered events."""
    try:
        stats = await get_event_discovery_service().get_stats()
    except Exception as e:
        logger.error("Error fetching event stats: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch event stats") from e
    return {"stats": stats}


@app.get("/api/calendar/download/{event_id}")
async def download_calendar(event_id: str):
    """Download a discovered event as an ICS file."""
    event_id = event_id.removesuffix(".ics")
    logger.debug("📅 [Calendar] Generating ICS | event=%s", event_id)

    try:
        event = await get_event_discovery_service().get_event_by_id(event_id)
    except Exception as e:
        logger.error("Error generating ICS file: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate calendar file") from e

    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")

    try:
        ics_content = create_ics_event(calendar_event_from_discovered(event))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return Response(
        content=ics_content,
        media_type="text/calendar; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{event_id}.ics"',
            "Cache-Control": "no-cache",
        },
    )


# Accounts


@app.delete("/api/auth/delete-account")
async def delete_account(authorization: str | None = Header(default=None)):
    """Delete the calling user's account and all of their data."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header")

    token = authorization[len("Bearer "):]

    try:
        service = get_account_service()
        user = await service.verify_token(token)
    except Exception as e:
        logger.error("Account deletion error: %s", e)
        raise HTTPException(status_code=500, detail="Internal server error") from e

    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        await service.delete_account(user["id"])
    except Exception as e:
        logger.error("Error deleting user: %s", e)
        raise HTTPException(status_code=500, detail="Failed to delete account") from e

    return {"success": True}


# Brand


@app.get("/api/brand/logo")
def brand_logo():
    """Logo for e-mails; an SVG stand-in when the PNG is missing."""
    logo_path = get_settings().public_dir / "email-logo.png"
    try:
        content = logo_path.read_bytes()
    except OSError as e:
        logger.error("Error serving logo: %s", e)
        return Response(
            content=FALLBACK_LOGO_SVG,
            media_type="image/svg+xml",
            headers={"Cache-Control": LOGO_CACHE_CONTROL},
        )

    return Response(
        content=content,
        media_type="image/png",
        headers={"Cache-Control": LOGO_CACHE_CONTROL},
    )


# Cron


@app.get("/api/cron/expire")
async def cron_expire(secret: str | None = None):
    """Expire stale challenges and events and prune the geocode cache."""
    settings = get_settings()
    if not settings.cron_secret or secret != settings.cron_secret:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        challenge_service = get_challenge_service()
        expired_challenges = await challenge_service.run_expiration_job()
        expired_events = await get_event_discovery_service().run_expiration_job()
        cleaned_geocodes = await challenge_service.clean_geocode_cache()
    except Exception as e:
        logger.error("Error running expiration jobs: %s", e)
        raise HTTPException(status_code=500, detail="Failed to run expiration jobs") from e

    logger.info(
        "Expiration complete: %d challenges, %d events, %d geocode entries",
        expired_challenges,
        expired_events,
        cleaned_geocodes,
    )
    return {
        "success": True,
        "expired_challenges": expired_challenges,
        "expired_events": expired_events,
        "cleaned_geocodes": cleaned_geocodes,
    }
