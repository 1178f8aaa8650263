"""
Cloudflare D1 storage for page views and blog content counts.

Talks to the D1 HTTP query API. Counting is pushed down to SQL; only the
top-pages ranking pulls path rows back into Python.
"""
import logging
import uuid
from datetime import datetime, timezone

import httpx

from ..errors import QueryTimeout, StoreUnavailable
from ..models import PageViewEvent, PageViewInput
from ..windows import as_utc
from .base import require_path

logger = logging.getLogger(__name__)

# ISO-8601 with millisecond precision and a Z suffix, matching
# strftime('%Y-%m-%dT%H:%M:%fZ', 'now') in SQLite so text comparison
# orders timestamps correctly.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.{ms:03d}Z"

PAGE_VIEWS_SCHEMA = """
CREATE TABLE IF NOT EXISTS page_views (
    id TEXT PRIMARY KEY,
    path TEXT NOT NULL,
    referrer TEXT,
    user_agent TEXT,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
)
"""

PAGE_VIEWS_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_page_views_created_at ON page_views (created_at)"
)


def format_timestamp(moment: datetime) -> str:
    """Format a datetime the way D1 stores created_at."""
    moment = as_utc(moment)
    return moment.strftime(TIMESTAMP_FORMAT.format(ms=moment.microsecond // 1000))


def parse_timestamp(value: str) -> datetime:
    """Parse a stored created_at value into an aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class D1Database:
    """Minimal client for the D1 HTTP query endpoint."""

    def __init__(
        self,
        d1_database_id: str,
        cf_account_id: str,
        cf_api_token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.database_id = d1_database_id
        self.account_id = cf_account_id
        self.api_token = cf_api_token
        self.timeout = timeout
        self.transport = transport
        self.base_url = f"https://api.cloudflare.com/client/v4/accounts/{cf_account_id}/d1/database/{d1_database_id}"

    async def _query(self, sql: str, params: list | None = None) -> list[dict]:
        """Execute a SQL query against D1.

        Raises:
            QueryTimeout: If the request exceeds the timeout
            StoreUnavailable: On transport errors, HTTP errors, or a failed query
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/query",
                    headers={
                        "Authorization": f"Bearer {self.api_token}",
                        "Content-Type": "application/json",
                    },
                    json={"sql": sql, "params": params or []},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise QueryTimeout(f"D1 query timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise StoreUnavailable(f"D1 request failed: {e}") from e
        except ValueError as e:
            raise StoreUnavailable("D1 returned a non-JSON response") from e

        if not data.get("success"):
            raise StoreUnavailable(f"D1 query failed: {data.get('errors')}")

        results = data.get("result", [])
        if results and len(results) > 0:
            return results[0].get("results", [])
        return []

    async def count(self, sql: str, params: list | None = None) -> int:
        """Run a `SELECT COUNT(*) as count ...` query."""
        rows = await self._query(sql, params)
        return (rows[0].get("count") or 0) if rows else 0


class D1EventStore:
    """Page views in a D1 `page_views` table."""

    def __init__(self, db: D1Database):
        self.db = db

    async def ensure_schema(self) -> None:
        """Create the page_views table and its created_at index."""
        await self.db._query(PAGE_VIEWS_SCHEMA)
        await self.db._query(PAGE_VIEWS_INDEX)
        logger.info(f"Ensured page_views schema in D1 database {self.db.database_id}")

    async def append(self, event: PageViewInput) -> PageViewEvent:
        path = require_path(event)
        event_id = uuid.uuid4().hex
        rows = await self.db._query(
            """
            INSERT INTO page_views (id, path, referrer, user_agent)
            VALUES (?, ?, ?, ?)
            RETURNING id, created_at
            """,
            [event_id, path, event.referrer, event.user_agent],
        )
        if not rows:
            raise StoreUnavailable("D1 insert returned no row")

        return PageViewEvent(
            id=rows[0]["id"],
            path=path,
            referrer=event.referrer,
            user_agent=event.user_agent,
            created_at=parse_timestamp(rows[0]["created_at"]),
        )

    async def count_since(self, lower_bound: datetime | None) -> int:
        if lower_bound is None:
            return await self.db.count("SELECT COUNT(*) as count FROM page_views")
        return await self.db.count(
            "SELECT COUNT(*) as count FROM page_views WHERE created_at >= ?",
            [format_timestamp(lower_bound)],
        )

    async def list_paths_since(self, lower_bound: datetime | None) -> list[str]:
        if lower_bound is None:
            rows = await self.db._query("SELECT path FROM page_views")
        else:
            rows = await self.db._query(
                "SELECT path FROM page_views WHERE created_at >= ?",
                [format_timestamp(lower_bound)],
            )
        return [row["path"] for row in rows]


class D1ContentStore:
    """Counts from the blog's `posts` and `comments` tables."""

    def __init__(self, db: D1Database):
        self.db = db

    async def count_published_posts(self) -> int:
        return await self.db.count(
            "SELECT COUNT(*) as count FROM posts WHERE published = 1"
        )

    async def count_comments(self) -> int:
        return await self.db.count("SELECT COUNT(*) as count FROM comments")
