"""
Query client for the site metrics dashboard.

Every metric is its own coroutine with its own timeout, so one slow or
failing query never holds up the others.
"""
import asyncio
import logging
from collections.abc import Awaitable
from datetime import datetime
from typing import TypeVar

from .aggregator import Aggregator
from .config import AnalyticsConfig
from .errors import QueryTimeout
from .models import PathCount, SiteMetrics, Window
from .store.base import ContentStore, EventStore
from .windows import (
    LAST_7_DAYS,
    LAST_30_DAYS,
    TODAY,
    Clock,
    SystemClock,
    all_time_window,
    as_utc,
    windows_for,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnalyticsClient:
    """Client for querying page view analytics."""

    def __init__(
        self,
        events: EventStore,
        content: ContentStore,
        config: AnalyticsConfig,
        clock: Clock | None = None,
    ):
        self.events = events
        self.content = content
        self.config = config
        self.clock = clock or SystemClock()
        self.aggregator = Aggregator(events)

    async def _bounded(self, name: str, aw: Awaitable[T]) -> T:
        """Await a store call, failing with QueryTimeout past the configured bound."""
        timeout = self.config.query_timeout_seconds
        try:
            return await asyncio.wait_for(aw, timeout=timeout)
        except asyncio.TimeoutError:
            raise QueryTimeout(f"Query '{name}' exceeded {timeout}s") from None

    def _windows(self, now: datetime | None) -> dict[str, Window]:
        now = as_utc(now if now is not None else self.clock.now())
        return windows_for(
            now,
            tz=self.config.tzinfo,
            weekly_days=self.config.weekly_days,
            monthly_days=self.config.monthly_days,
        )

    # =========================================================================
    # PAGE VIEW METRICS
    # =========================================================================

    async def total_views(self) -> int:
        """All-time page view count."""
        return await self._bounded("total_views", self.aggregator.count(all_time_window()))

    async def weekly_views(self, now: datetime | None = None) -> int:
        """Views in the last `weekly_days` days (exact 24h multiples)."""
        window = self._windows(now)[LAST_7_DAYS]
        return await self._bounded("weekly_views", self.aggregator.count(window))

    async def today_views(self, now: datetime | None = None) -> int:
        """Views since midnight in the configured time zone."""
        window = self._windows(now)[TODAY]
        return await self._bounded("today_views", self.aggregator.count(window))

    async def monthly_views(self, now: datetime | None = None) -> int:
        """Views in the last `monthly_days` days."""
        window = self._windows(now)[LAST_30_DAYS]
        return await self._bounded("monthly_views", self.aggregator.count(window))

    async def top_pages(
        self, now: datetime | None = None, limit: int | None = None
    ) -> list[PathCount]:
        """Most viewed paths over the last `monthly_days` days."""
        if limit is None:
            limit = self.config.top_pages_limit
        window = self._windows(now)[LAST_30_DAYS]
        return await self._bounded("top_pages", self.aggregator.top_paths(window, limit))

    # =========================================================================
    # CONTENT COUNTS
    # =========================================================================

    async def published_post_count(self) -> int:
        return await self._bounded("published_posts", self.content.count_published_posts())

    async def total_comment_count(self) -> int:
        return await self._bounded("total_comments", self.content.count_comments())

    # =========================================================================
    # DASHBOARD SNAPSHOT
    # =========================================================================

    async def get_site_metrics(self, now: datetime | None = None) -> SiteMetrics:
        """Run every dashboard query in parallel and collect what succeeds.

        Failed queries are logged and reported in `errors`; their values
        stay None so the dashboard can show them as unavailable.
        """
        now = as_utc(now if now is not None else self.clock.now())

        queries = {
            "total_views": self.total_views(),
            "weekly_views": self.weekly_views(now),
            "today_views": self.today_views(now),
            "monthly_views": self.monthly_views(now),
            "published_posts": self.published_post_count(),
            "total_comments": self.total_comment_count(),
            "top_pages": self.top_pages(now),
        }
        names = list(queries.keys())
        results = await asyncio.gather(*queries.values(), return_exceptions=True)

        values = {}
        errors = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error(f"Query '{name}' failed: {result}")
                errors[name] = str(result) or type(result).__name__
            else:
                values[name] = result

        return SiteMetrics(
            site=self.config.site_name,
            generated_at=now,
            timezone=self.config.timezone,
            errors=errors,
            **values,
        )
