"""
In-memory stores for development, tests and single-process deployments.
"""
import logging
import uuid
from datetime import datetime
from threading import Lock

from ..models import PageViewEvent, PageViewInput
from ..windows import Clock, SystemClock, as_utc
from .base import require_path

logger = logging.getLogger(__name__)


class InMemoryEventStore:
    """Append-only list of page views. Thread-safe.

    Set `fail_with` to an exception instance to make every call raise it,
    which is how tests simulate an outage.
    """

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()
        self.fail_with: Exception | None = None
        self._events: list[PageViewEvent] = []
        self._lock = Lock()

    def _check_available(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def append(self, event: PageViewInput) -> PageViewEvent:
        path = require_path(event)
        self._check_available()
        with self._lock:
            created_at = as_utc(self.clock.now())
            # Keep created_at non-decreasing in insertion order
            if self._events and created_at < self._events[-1].created_at:
                created_at = self._events[-1].created_at
            stored = PageViewEvent(
                id=uuid.uuid4().hex,
                path=path,
                referrer=event.referrer,
                user_agent=event.user_agent,
                created_at=created_at,
            )
            self._events.append(stored)
        return stored

    async def count_since(self, lower_bound: datetime | None) -> int:
        self._check_available()
        with self._lock:
            if lower_bound is None:
                return len(self._events)
            bound = as_utc(lower_bound)
            return sum(1 for e in self._events if e.created_at >= bound)

    async def list_paths_since(self, lower_bound: datetime | None) -> list[str]:
        self._check_available()
        with self._lock:
            if lower_bound is None:
                return [e.path for e in self._events]
            bound = as_utc(lower_bound)
            return [e.path for e in self._events if e.created_at >= bound]

    def events(self) -> list[PageViewEvent]:
        """Snapshot of stored events in insertion order."""
        with self._lock:
            return list(self._events)

    def load(self, events: list[PageViewEvent]) -> None:
        """Seed the store with already-stamped events (fixtures, imports)."""
        with self._lock:
            self._events.extend(events)
        logger.debug(f"Loaded {len(events)} page views into memory store")


class InMemoryContentStore:
    """Fixed post and comment counts."""

    def __init__(self, published_posts: int = 0, comments: int = 0):
        self.published_posts = published_posts
        self.comments = comments
        self.fail_with: Exception | None = None

    async def count_published_posts(self) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        return self.published_posts

    async def count_comments(self) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        return self.comments

