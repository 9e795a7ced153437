"""Discovered event models for listings, the map, and stats."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Kind of discovered event."""

    CONFERENCE = "conference"
    HACKATHON = "hackathon"
    MEETUP = "meetup"
    WORKSHOP = "workshop"
    SUMMIT = "summit"
    WEBINAR = "webinar"
    TRAINING = "training"
    FESTIVAL = "festival"
    OTHER = "other"


class DiscoveredEvent(BaseModel):
    """Row from the discovered_events table."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    description: str | None = None
    event_type: EventType = EventType.OTHER
    tags: list[str] | None = None

    start_date: str | None = Field(default=None, description="ISO date: YYYY-MM-DD")
    end_date: str | None = Field(default=None, description="ISO date: YYYY-MM-DD")
    start_time: str | None = Field(default=None, description="ISO time: HH:MM")
    end_time: str | None = Field(default=None, description="ISO time: HH:MM")
    timezone: str | None = None

    location_name: str | None = None
    location_city: str | None = None
    location_country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    is_online: bool = False
    is_hybrid: bool = False

    event_url: str | None = None
    registration_url: str | None = None
    source_url: str | None = None
    source_type: str | None = None

    organizer: str | None = None
    cost: str = "unknown"
    cost_details: str | None = None

    relevance_score: int | None = Field(default=None, description="0-100")
    relevance_reason: str | None = None
    status: str = "active"

    discovered_at: str | None = None
    updated_at: str | None = None


class DiscoveredEventsStats(BaseModel):
    """Single-row summary from the discovered_events_stats view."""

    active_count: int = 0
    this_week: int = 0
    this_month: int = 0
    new_24h: int = 0
    brave_search_count: int = 0
    newsapi_count: int = 0
    eventseye_count: int = 0


class Pagination(BaseModel):
    """Paging envelope for list endpoints."""

    offset: int
    limit: int
    has_more: bool

