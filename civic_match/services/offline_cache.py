"""
SQLite-backed response cache for the offline worker.

Holds named, versioned cache stores keyed by request URL, shared by every
client that points at the same database file. Bumping the store name is
the only invalidation mechanism; old stores are swept on activation.
"""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

import httpx
from pydantic import BaseModel, Field

from civic_match.config import get_settings

logger = logging.getLogger(__name__)

# Headers that describe the wire encoding rather than the stored (decoded) body
_ENCODING_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


class CacheWriteError(Exception):
    """A response could not be written to a cache store."""


def request_key(url: httpx.URL | str) -> str:
    """Cache key for a URL: the absolute URL without its fragment."""
    return str(url).split("#", 1)[0]


class StoredResponse(BaseModel):
    """Response snapshot kept in a cache store."""

    url: str
    status_code: int
    headers: list[tuple[str, str]] = Field(default_factory=list)
    body: bytes = b""
    stored_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    async def from_response(cls, response: httpx.Response, url: httpx.URL | str) -> "StoredResponse":
        """Read a live response fully and snapshot it.

        The live response is consumed and closed; callers hand out copies
        via ``to_response`` instead.
        """
        try:
            body = await response.aread()
        finally:
            await response.aclose()
        headers = [
            (name, value)
            for name, value in response.headers.multi_items()
            if name.lower() not in _ENCODING_HEADERS
        ]
        return cls(
            url=request_key(url),
            status_code=response.status_code,
            headers=headers,
            body=body,
        )

    def to_response(self, request: httpx.Request | None = None) -> httpx.Response:
        """Build a fresh httpx response from the snapshot."""
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            content=self.body,
            request=request,
        )

    def header(self, name: str) -> str | None:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


class Cache:
    """One named store inside a CacheStorage."""

    def __init__(self, storage: "CacheStorage", name: str):
        self.storage = storage
        self.name = name

    def _check_storable(self, response: StoredResponse) -> None:
        if response.status_code == 206:
            raise CacheWriteError(f"Partial response for {response.url} cannot be cached")
        vary = response.header("vary")
        if vary and "*" in vary:
            raise CacheWriteError(f"Response for {response.url} has Vary: *")

    def _insert(self, conn: sqlite3.Connection, response: StoredResponse) -> None:
        conn.execute(
            "INSERT OR IGNORE INTO caches (name, created_at) VALUES (?, ?)",
            (self.name, datetime.now(UTC).isoformat()),
        )
        conn.execute(
            """
            INSERT OR REPLACE INTO entries (
                cache_name, url, status_code, headers, body, stored_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                self.name,
                response.url,
                response.status_code,
                json.dumps(response.headers),
                response.body,
                response.stored_at.isoformat(),
            ),
        )

    def put(self, response: StoredResponse) -> None:
        """Store a response under its URL, replacing any previous entry.

        Raises:
            CacheWriteError: If the response is not storable or the write fails
        """
        self.put_all([response])

    def put_all(self, responses: list[StoredResponse]) -> None:
        """Store several responses in one transaction; all or nothing.

        Raises:
            CacheWriteError: If any response is not storable or the write fails
        """
        for response in responses:
            self._check_storable(response)
        try:
            with self.storage.connect() as conn:
                for response in responses:
                    self._insert(conn, response)
                conn.commit()
        except sqlite3.Error as e:
            raise CacheWriteError(f"Failed to write to cache {self.name}: {e}") from e

    def match(self, url: httpx.URL | str) -> StoredResponse | None:
        """Get the stored response for a URL, or None on a miss."""
        return self.storage.match(url, cache_name=self.name)

    def delete(self, url: httpx.URL | str) -> bool:
        with self.storage.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM entries WHERE cache_name = ? AND url = ?",
                (self.name, request_key(url)),
            )
            conn.commit()
            return cursor.rowcount > 0

    def keys(self) -> list[str]:
        """URLs stored in this cache, in insertion order."""
        with self.storage.connect() as conn:
            cursor = conn.execute(
                "SELECT url FROM entries WHERE cache_name = ? ORDER BY rowid",
                (self.name,),
            )
            return [row[0] for row in cursor.fetchall()]

    def count(self) -> int:
        with self.storage.connect() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM entries WHERE cache_name = ?", (self.name,)
            )
            return cursor.fetchone()[0]


class CacheStorage:
    """Persistent set of named cache stores.

    Features:
    - Stores keyed by version name, entries keyed by URL
    - Cross-store lookup in store creation order
    - Safe for independent concurrent access per key (last write wins)
    """

    def __init__(self, db_path: str | Path | None = None, timeout: float = 5.0):
        """Initialize the cache storage.

        Args:
            db_path: Path to SQLite database. Defaults to OFFLINE_CACHE_PATH
            timeout: Seconds to wait for another writer's lock
        """
        if db_path is None:
            db_path = get_settings().offline_cache_path
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._init_db()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that commits on success and is always closed."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self.connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS caches (
                    name TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    cache_name TEXT NOT NULL,
                    url TEXT NOT NULL,
                    status_code INTEGER NOT NULL,
                    headers TEXT DEFAULT '[]',
                    body BLOB,
                    stored_at TEXT NOT NULL,
                    PRIMARY KEY (cache_name, url)
                )
            """)
            conn.commit()

    def open(self, name: str) -> Cache:
        """Open a named store, creating it if needed.

        Raises:
            CacheWriteError: If the store cannot be created (e.g. the
                database is locked by another writer)
        """
        try:
            with self.connect() as conn:
                conn.execute(
                    "INSERT OR IGNORE INTO caches (name, created_at) VALUES (?, ?)",
                    (name, datetime.now(UTC).isoformat()),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise CacheWriteError(f"Failed to open cache {name}: {e}") from e
        return Cache(self, name)

    def has(self, name: str) -> bool:
        with self.connect() as conn:
            cursor = conn.execute("SELECT 1 FROM caches WHERE name = ?", (name,))
            return cursor.fetchone() is not None

    def delete(self, name: str) -> bool:
        """Delete a store and all of its entries.

        Returns:
            True if the store existed
        """
        with self.connect() as conn:
            conn.execute("DELETE FROM entries WHERE cache_name = ?", (name,))
            cursor = conn.execute("DELETE FROM caches WHERE name = ?", (name,))
            conn.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.debug("🗑️ [OfflineCache] Deleted cache store | name=%s", name)
        return deleted

    def keys(self) -> list[str]:
        """Names of all stores, oldest first."""
        with self.connect() as conn:
            cursor = conn.execute("SELECT name FROM caches ORDER BY rowid")
            return [row[0] for row in cursor.fetchall()]

    def match(self, url: httpx.URL | str, cache_name: str | None = None) -> StoredResponse | None:
        """Find a stored response for a URL.

        Searches every store in creation order unless ``cache_name`` is
        given. Returns None on a miss; never raises for a missing entry.
        """
        key = request_key(url)
        with self.connect() as conn:
            conn.row_factory = sqlite3.Row
            if cache_name is not None:
                cursor = conn.execute(
                    "SELECT * FROM entries WHERE cache_name = ? AND url = ?",
                    (cache_name, key),
                )
            else:
                cursor = conn.execute(
                    """
                    SELECT e.* FROM entries e
                    JOIN caches c ON c.name = e.cache_name
                    WHERE e.url = ?
                    ORDER BY c.rowid
                    LIMIT 1
                    """,
                    (key,),
                )
            row = cursor.fetchone()
        return self._row_to_response(row) if row else None

    def _row_to_response(self, row: sqlite3.Row) -> StoredResponse:
        """Convert a database row to StoredResponse."""
        return StoredResponse(
            url=row["url"],
            status_code=row["status_code"],
            headers=[tuple(pair) for pair in json.loads(row["headers"] or "[]")],
            body=row["body"] or b"",
            stored_at=datetime.fromisoformat(row["stored_at"]),
        )
