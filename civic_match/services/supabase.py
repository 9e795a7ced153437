"""
Async client for the Supabase managed backend.

Talks to PostgREST (tables, views, RPC functions) and GoTrue (auth) over
their REST interfaces via httpx. The query builder mirrors the chained
filter style of the official JS client so service code reads the same way.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

import httpx

from civic_match.config import get_settings

logger = logging.getLogger(__name__)

# PostgREST error code for "single() matched zero rows"
NO_ROWS_CODE = "PGRST116"


class SupabaseError(Exception):
    """Error returned by PostgREST or GoTrue, or a failed request to them."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details

    @classmethod
    def from_response(cls, response: httpx.Response) -> "SupabaseError":
        """Build an error from a non-2xx PostgREST/GoTrue response."""
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        message = (
            payload.get("message")
            or payload.get("msg")
            or payload.get("error_description")
            or payload.get("error")
            or response.text
            or f"HTTP {response.status_code}"
        )
        code = payload.get("code") or payload.get("error_code")
        return cls(
            str(message),
            code=str(code) if code is not None else None,
            status_code=response.status_code,
            details=payload.get("details"),
        )

    @property
    def is_not_found(self) -> bool:
        """True when a single-row query matched nothing."""
        return self.code == NO_ROWS_CODE


@dataclass
class APIResponse:
    """Decoded PostgREST response."""

    data: Any
    count: int | None = None


def _format_value(value: Any) -> str:
    """Render a Python value the way PostgREST expects in a filter."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _quote(value: Any) -> str:
    """Double-quote a list element so reserved characters survive."""
    text = _format_value(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _parse_count(content_range: str | None) -> int | None:
    """Extract the total from a Content-Range header like ``0-24/3573``."""
    if not content_range or "/" not in content_range:
        return None
    total = content_range.rsplit("/", 1)[1]
    if total == "*":
        return None
    try:
        return int(total)
    except ValueError:
        return None


class QueryBuilder:
    """Chainable PostgREST query against one table or view."""

    def __init__(self, client: "SupabaseClient", table: str):
        self._client = client
        self._table = table
        self._params: list[tuple[str, str]] = []
        self._order: list[str] = []
        self._headers: dict[str, str] = {}
        self._single = False

    @property
    def params(self) -> list[tuple[str, str]]:
        """Query parameters as they will be sent."""
        params = list(self._params)
        if self._order:
            params.append(("order", ",".join(self._order)))
        return params

    def select(self, columns: str = "*", count: str | None = None) -> "QueryBuilder":
        self._params.append(("select", columns))
        if count:
            self._headers["Prefer"] = f"count={count}"
        return self

    def _filter(self, column: str, operator: str, value: str) -> "QueryBuilder":
        self._params.append((column, f"{operator}.{value}"))
        return self

    def eq(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "eq", _format_value(value))

    def gte(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "gte", _format_value(value))

    def lte(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "lte", _format_value(value))

    def ilike(self, column: str, pattern: str) -> "QueryBuilder":
        # PostgREST accepts * as the wildcard inside URLs
        return self._filter(column, "ilike", pattern.replace("%", "*"))

    def in_(self, column: str, values: list[Any]) -> "QueryBuilder":
        joined = ",".join(_quote(v) for v in values)
        return self._filter(column, "in", f"({joined})")

    def overlaps(self, column: str, values: list[Any]) -> "QueryBuilder":
        joined = ",".join(_quote(v) for v in values)
        return self._filter(column, "ov", f"{{{joined}}}")

    def not_null(self, column: str) -> "QueryBuilder":
        return self._filter(column, "not.is", "null")

    def order(self, column: str, desc: bool = False) -> "QueryBuilder":
        self._order.append(f"{column}.{'desc' if desc else 'asc'}")
        return self

    def limit(self, count: int) -> "QueryBuilder":
        self._params.append(("limit", str(count)))
        return self

    def range(self, start: int, end: int) -> "QueryBuilder":
        """Restrict to rows ``start..end`` inclusive."""
        self._params.append(("offset", str(start)))
        self._params.append(("limit", str(max(end - start + 1, 0))))
        return self

    def single(self) -> "QueryBuilder":
        """Expect exactly one row; zero rows raises PGRST116."""
        self._single = True
        self._headers["Accept"] = "application/vnd.pgrst.object+json"
        return self

    async def execute(self) -> APIResponse:
        """Run the query.

        Raises:
            SupabaseError: On any PostgREST error or transport failure
        """
        response = await self._client.request(
            "GET",
            f"{SupabaseClient.REST_PATH}/{self._table}",
            params=self.params,
            headers=self._headers,
        )
        return APIResponse(
            data=response.json(),
            count=_parse_count(response.headers.get("content-range")),
        )


class AuthClient:
    """GoTrue endpoints used by the app."""

    def __init__(self, client: "SupabaseClient"):
        self._client = client

    async def get_user(self, token: str) -> dict[str, Any]:
        """Resolve an access token to its user.

        Raises:
            SupabaseError: If the token is invalid or expired
        """
        response = await self._client.request(
            "GET",
            f"{SupabaseClient.AUTH_PATH}/user",
            headers={"Authorization": f"Bearer {token}"},
        )
        return response.json()

    async def admin_delete_user(self, user_id: str) -> None:
        """Delete a user. Requires the service role key."""
        await self._client.request(
            "DELETE", f"{SupabaseClient.AUTH_PATH}/admin/users/{user_id}"
        )


class SupabaseClient:
    """Async client for one Supabase project and API key."""

    REST_PATH = "/rest/v1"
    AUTH_PATH = "/auth/v1"

    def __init__(
        self,
        url: str,
        key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self.key = key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.auth = AuthClient(self)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.url,
                headers={
                    "apikey": self.key,
                    "Authorization": f"Bearer {self.key}",
                },
                timeout=30.0,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def table(self, name: str) -> QueryBuilder:
        """Start a query against a table or view."""
        return QueryBuilder(self, name)

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> APIResponse:
        """Call a Postgres function exposed through PostgREST."""
        response = await self.request(
            "POST", f"{self.REST_PATH}/rpc/{function}", json=params or {}
        )
        data = response.json() if response.content else None
        return APIResponse(data=data)

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request and raise SupabaseError on failure."""
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.debug("❌ [Supabase] Request failed | method=%s path=%s error=%s", method, path, e)
            raise SupabaseError(f"Request to {path} failed: {e}") from e

        if response.status_code >= 400:
            error = SupabaseError.from_response(response)
            logger.debug(
                "⚠️ [Supabase] Error response | method=%s path=%s status=%d code=%s",
                method,
                path,
                response.status_code,
                error.code,
            )
            raise error
        return response


# Singleton instances
_service_client: SupabaseClient | None = None
_anon_client: SupabaseClient | None = None


def get_service_client() -> SupabaseClient:
    """Get the singleton client authenticated with the service role key.

    Raises:
        SupabaseError: If Supabase is not configured
    """
    global _service_client
    if _service_client is None:
        settings = get_settings()
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise SupabaseError("Supabase service role is not configured")
        _service_client = SupabaseClient(
            settings.supabase_url, settings.supabase_service_role_key
        )
    return _service_client


def get_anon_client() -> SupabaseClient:
    """Get the singleton client authenticated with the public anon key.

    Raises:
        SupabaseError: If Supabase is not configured
    """
    global _anon_client
    if _anon_client is None:
        settings = get_settings()
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise SupabaseError("Supabase anon key is not configured")
        _anon_client = SupabaseClient(settings.supabase_url, settings.supabase_anon_key)
    return _anon_client
