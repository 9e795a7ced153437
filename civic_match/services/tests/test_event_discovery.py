"""Tests for the event discovery service."""

from datetime import date

import httpx
import pytest

from civic_match.models import BoundingBox, EventType
from civic_match.services.event_discovery import EventDiscoveryService
from civic_match.services.supabase import NO_ROWS_CODE, SupabaseClient, SupabaseError


def event_row(**overrides):
    row = {
        "id": "ev-1",
        "name": "Open Data Day",
        "event_type": "hackathon",
        "tags": ["open data"],
        "start_date": "2026-11-05",
        "location_city": "Berlin",
        "location_country": "Germany",
        "latitude": 52.5,
        "longitude": 13.4,
        "relevance_score": 80,
    }
    row.update(overrides)
    return row


@pytest.fixture
def captured():
    return []


@pytest.fixture
def service_factory(captured):
    def factory(*responses: httpx.Response) -> EventDiscoveryService:
        queue = list(responses)

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return queue.pop(0)

        client = SupabaseClient(
            "https://project.supabase.co", "key", transport=httpx.MockTransport(handler)
        )
        return EventDiscoveryService(client)

    return factory


def params_of(request: httpx.Request) -> list[tuple[str, str]]:
    return list(request.url.params.multi_items())


class TestGetDiscoveredEvents:
    """Tests for the filtered list query."""

    @pytest.mark.asyncio
    async def test_defaults(self, service_factory, captured):
        service = service_factory(
            httpx.Response(200, json=[event_row()], headers={"Content-Range": "0-0/12"})
        )

        events, total = await service.get_discovered_events()

        assert total == 12
        assert events[0].event_type == EventType.HACKATHON
        request = captured[0]
        assert request.url.path == "/rest/v1/discovered_events"
        assert request.headers["prefer"] == "count=exact"
        params = params_of(request)
        assert ("status", "eq.active") in params
        assert ("relevance_score", "gte.60") in params
        assert ("start_date", f"gte.{date.today().isoformat()}") in params
        assert ("order", "start_date.asc") in params
        assert ("offset", "0") in params
        assert ("limit", "50") in params

    @pytest.mark.asyncio
    async def test_all_filters(self, service_factory, captured):
        service = service_factory(httpx.Response(200, json=[], headers={"Content-Range": "*/0"}))

        events, total = await service.get_discovered_events(
            upcoming=False,
            types=["meetup", "workshop"],
            tags=["civic tech"],
            city="Berlin",
            country="Germany",
            online=False,
            min_relevance=75,
            limit=10,
            offset=30,
        )

        assert events == []
        assert total == 0
        params = params_of(captured[0])
        assert not any(name == "start_date" for name, _ in params)
        assert ("event_type", 'in.("meetup","workshop")') in params
        assert ("tags", 'ov.{"civic tech"}') in params
        assert ("location_city", "ilike.*Berlin*") in params
        assert ("location_country", "ilike.*Germany*") in params
        assert ("is_online", "eq.false") in params
        assert ("relevance_score", "gte.75") in params
        assert ("offset", "30") in params
        assert ("limit", "10") in params

    @pytest.mark.asyncio
    async def test_error_propagates(self, service_factory):
        service = service_factory(httpx.Response(500, json={"message": "boom"}))
        with pytest.raises(SupabaseError):
            await service.get_discovered_events()


class TestEventsInBounds:
    @pytest.mark.asyncio
    async def test_requires_coordinates_and_orders_by_relevance(self, service_factory, captured):
        service = service_factory(httpx.Response(200, json=[event_row()]))

        events = await service.get_events_in_bounds(
            BoundingBox(north=60, south=40, east=20, west=0), types=["summit"]
        )

        assert len(events) == 1
        params = params_of(captured[0])
        assert ("latitude", "not.is.null") in params
        assert ("longitude", "not.is.null") in params
        assert ("latitude", "gte.40.0") in params
        assert ("longitude", "lte.20.0") in params
        assert ("event_type", 'in.("summit")') in params
        assert ("order", "relevance_score.desc") in params
        assert ("limit", "100") in params


class TestGetEventById:
    @pytest.mark.asyncio
    async def test_found(self, service_factory):
        service = service_factory(httpx.Response(200, json=event_row(is_online=True)))
        event = await service.get_event_by_id("ev-1")
        assert event is not None
        assert event.is_online is True

    @pytest.mark.asyncio
    async def test_not_found_returns_none(self, service_factory):
        service = service_factory(httpx.Response(406, json={"code": NO_ROWS_CODE}))
        assert await service.get_event_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_other_errors_raise(self, service_factory):
        service = service_factory(httpx.Response(400, json={"code": "22P02", "message": "bad uuid"}))
        with pytest.raises(SupabaseError):
            await service.get_event_by_id("not-a-uuid")


class TestCombinedEvents:
    @pytest.mark.asyncio
    async def test_reads_combined_view(self, service_factory, captured):
        rows = [{"id": "a", "source": "user"}, {"id": "b", "source": "discovered"}]
        service = service_factory(
            httpx.Response(200, json=rows, headers={"Content-Range": "0-1/5"})
        )

        events, total = await service.get_combined_events(limit=2, offset=0)

        assert events == rows
        assert total == 5
        request = captured[0]
        assert request.url.path == "/rest/v1/combined_events"
        params = params_of(request)
        assert any(name == "start_datetime" and value.startswith("gte.") for name, value in params)
        assert ("order", "start_datetime.asc") in params

    @pytest.mark.asyncio
    async def test_include_past(self, service_factory, captured):
        service = service_factory(httpx.Response(200, json=[]))
        await service.get_combined_events(upcoming=False)
        assert not any(name == "start_datetime" for name, _ in params_of(captured[0]))


class TestStatsAndMaintenance:
    @pytest.mark.asyncio
    async def test_get_stats(self, service_factory, captured):
        service = service_factory(httpx.Response(200, json={"active_count": 9, "this_week": 2}))

        stats = await service.get_stats()

        assert stats.active_count == 9
        assert stats.this_week == 2
        assert stats.new_24h == 0
        assert captured[0].url.path == "/rest/v1/discovered_events_stats"

    @pytest.mark.asyncio
    async def test_run_expiration_job(self, service_factory, captured):
        service = service_factory(httpx.Response(200, json=4))
        assert await service.run_expiration_job() == 4
        assert captured[0].url.path == "/rest/v1/rpc/expire_old_events"
