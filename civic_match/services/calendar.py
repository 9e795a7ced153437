"""ICS calendar export for discovered events."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from icalendar import Calendar, Event
from pydantic import BaseModel

from civic_match.models import DiscoveredEvent

logger = logging.getLogger(__name__)


class CalendarEvent(BaseModel):
    """Event data for calendar export.

    ``start``/``end`` are dates for all-day events and datetimes otherwise.
    """

    uid: str
    title: str
    start: datetime | date
    end: datetime | date | None = None
    description: str | None = None
    location: str | None = None
    url: str | None = None


def _resolve_tz(name: str | None) -> timezone | ZoneInfo:
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown timezone %r, falling back to UTC", name)
        return timezone.utc


def _combine(day: str, clock: str | None, tz: timezone | ZoneInfo) -> datetime | date:
    parsed_day = date.fromisoformat(day)
    if not clock:
        return parsed_day
    return datetime.combine(parsed_day, time.fromisoformat(clock), tzinfo=tz)


def calendar_event_from_discovered(event: DiscoveredEvent) -> CalendarEvent:
    """Map a discovered event row onto exportable calendar data.

    Raises:
        ValueError: If the event has no start date
    """
    if not event.start_date:
        raise ValueError(f"Event {event.id} has no start date")

    tz = _resolve_tz(event.timezone)
    start = _combine(event.start_date, event.start_time, tz)
    end: datetime | date | None = None
    if isinstance(start, datetime):
        if event.end_time:
            end = _combine(event.end_date or event.start_date, event.end_time, tz)
    elif event.end_date:
        end = date.fromisoformat(event.end_date)

    if event.is_online and not event.location_name:
        location = "Online"
    else:
        parts = [event.location_name, event.location_city, event.location_country]
        location = ", ".join(p for p in parts if p) or None

    return CalendarEvent(
        uid=f"{event.id}@civicmatch.app",
        title=event.name,
        start=start,
        end=end,
        description=event.description,
        location=location,
        url=event.event_url or event.registration_url,
    )


def _default_end(start: datetime | date) -> datetime | date:
    if isinstance(start, datetime):
        # Default to 1 hour duration if no end time
        return start + timedelta(hours=1)
    return start + timedelta(days=1)


def create_ics_event(event: CalendarEvent) -> str:
    """Create an ICS string for a single event."""
    cal = Calendar()
    cal.add("prodid", "-//Civic Match//civicmatch.app//")
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")

    ics_event = Event()
    ics_event.add("summary", event.title)
    ics_event.add("dtstart", event.start)

    end = event.end
    if end is None:
        end = _default_end(event.start)
    elif not isinstance(event.start, datetime):
        # All-day DTEND is exclusive
        end = end + timedelta(days=1)
    ics_event.add("dtend", end)

    if event.description:
        ics_event.add("description", event.description)

    if event.location:
        ics_event.add("location", event.location)

    if event.url:
        ics_event.add("url", event.url)

    ics_event.add("uid", event.uid)
    ics_event.add("dtstamp", datetime.now(timezone.utc))

    cal.add_component(ics_event)
    return cal.to_ical().decode("utf-8")
