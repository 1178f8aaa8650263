"""Tests for the metrics query client."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from blog_analytics.client import AnalyticsClient
from blog_analytics.config import AnalyticsConfig
from blog_analytics.errors import QueryTimeout, StoreUnavailable
from blog_analytics.models import PageViewInput, PathCount
from blog_analytics.store import InMemoryContentStore, InMemoryEventStore
from blog_analytics.windows import FixedClock

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class SlowEventStore(InMemoryEventStore):
    """Store whose reads hang longer than any test timeout."""

    async def count_since(self, lower_bound):
        await asyncio.sleep(5)
        return 0


class TestAnalyticsClient:
    """Test the individual metric queries."""

    def _get_client(self, config: AnalyticsConfig | None = None):
        clock = FixedClock(NOW)
        events = InMemoryEventStore(clock)
        content = InMemoryContentStore(published_posts=3, comments=11)
        client = AnalyticsClient(
            events, content, config or AnalyticsConfig(site_name="test.blog"), clock=clock
        )
        return client, events, clock

    def _seed(self, events: InMemoryEventStore, clock: FixedClock, rows):
        async def fill():
            for path, age in sorted(rows, key=lambda r: -r[1].total_seconds()):
                clock.instant = NOW - age
                await events.append(PageViewInput(path=path))
            clock.instant = NOW

        run_async(fill())

    def test_empty_store(self):
        client, _, _ = self._get_client()
        assert run_async(client.total_views()) == 0
        assert run_async(client.weekly_views(NOW)) == 0
        assert run_async(client.today_views(NOW)) == 0
        assert run_async(client.monthly_views(NOW)) == 0
        assert run_async(client.top_pages(NOW)) == []

    def test_view_counts(self):
        client, events, clock = self._get_client()
        self._seed(events, clock, [
            ("/", timedelta(days=90)),
            ("/posts/a", timedelta(days=10)),
            ("/posts/a", timedelta(days=3)),
            ("/", timedelta(hours=2)),
        ])

        assert run_async(client.total_views()) == 4
        assert run_async(client.monthly_views(NOW)) == 3
        assert run_async(client.weekly_views(NOW)) == 2
        assert run_async(client.today_views(NOW)) == 1

    def test_now_defaults_to_clock(self):
        client, events, clock = self._get_client()
        self._seed(events, clock, [("/", timedelta(hours=1))])

        assert run_async(client.today_views()) == 1
        clock.advance(days=1)
        assert run_async(client.today_views()) == 0

    def test_naive_now_is_utc(self):
        client, events, clock = self._get_client()
        self._seed(events, clock, [("/", timedelta(hours=1))])
        assert run_async(client.today_views(NOW.replace(tzinfo=None))) == 1

    def test_today_respects_timezone(self):
        """At 02:00 UTC it is still yesterday evening in New York."""
        config = AnalyticsConfig(site_name="test.blog", timezone="America/New_York")
        client, events, clock = self._get_client(config)
        now = datetime(2024, 6, 16, 2, 0, tzinfo=timezone.utc)
        clock.instant = datetime(2024, 6, 15, 20, 0, tzinfo=timezone.utc)  # 16:00 EDT
        run_async(events.append(PageViewInput(path="/")))

        assert run_async(client.today_views(now)) == 1

        utc_client, utc_events, utc_clock = self._get_client()
        utc_clock.instant = datetime(2024, 6, 15, 20, 0, tzinfo=timezone.utc)
        run_async(utc_events.append(PageViewInput(path="/")))
        assert run_async(utc_client.today_views(now)) == 0

    def test_top_pages_default_limit(self):
        client, events, clock = self._get_client()
        rows = [(f"/posts/{i}", timedelta(hours=i + 1)) for i in range(8)]
        self._seed(events, clock, rows + [("/posts/0", timedelta(days=1))])

        result = run_async(client.top_pages(NOW))
        assert len(result) == 5
        assert result[0] == PathCount(path="/posts/0", count=2)
        assert [p.path for p in result[1:]] == ["/posts/1", "/posts/2", "/posts/3", "/posts/4"]

    def test_top_pages_explicit_limit(self):
        client, events, clock = self._get_client()
        self._seed(events, clock, [("/a", timedelta(hours=1)), ("/b", timedelta(hours=2))])
        assert run_async(client.top_pages(NOW, limit=1)) == [PathCount(path="/a", count=1)]
        assert run_async(client.top_pages(NOW, limit=0)) == []

    def test_top_pages_uses_thirty_day_window(self):
        client, events, clock = self._get_client()
        self._seed(events, clock, [("/old", timedelta(days=31)), ("/new", timedelta(days=29))])
        assert run_async(client.top_pages(NOW)) == [PathCount(path="/new", count=1)]

    def test_content_counts(self):
        client, _, _ = self._get_client()
        assert run_async(client.published_post_count()) == 3
        assert run_async(client.total_comment_count()) == 11

    def test_read_failure_propagates(self):
        """A dashboard must see failures, not a silent zero."""
        client, events, _ = self._get_client()
        events.fail_with = StoreUnavailable("offline")

        with pytest.raises(StoreUnavailable):
            run_async(client.total_views())
        with pytest.raises(StoreUnavailable):
            run_async(client.top_pages(NOW))

    def test_failures_are_independent(self):
        client, _, _ = self._get_client()
        client.content.fail_with = StoreUnavailable("posts table missing")

        with pytest.raises(StoreUnavailable):
            run_async(client.published_post_count())
        assert run_async(client.total_views()) == 0

    def test_slow_query_times_out(self):
        config = AnalyticsConfig(site_name="test.blog", query_timeout_seconds=0.05)
        client = AnalyticsClient(SlowEventStore(), InMemoryContentStore(), config)

        with pytest.raises(QueryTimeout):
            run_async(client.total_views())

    def test_query_timeout_is_store_unavailable(self):
        assert issubclass(QueryTimeout, StoreUnavailable)


class TestGetSiteMetrics:
    """Test the combined dashboard snapshot."""

    def test_all_metrics(self):
        clock = FixedClock(NOW - timedelta(hours=1))
        events = InMemoryEventStore(clock)
        run_async(events.append(PageViewInput(path="/")))
        client = AnalyticsClient(
            events,
            InMemoryContentStore(published_posts=2, comments=5),
            AnalyticsConfig(site_name="test.blog"),
            clock=FixedClock(NOW),
        )

        metrics = run_async(client.get_site_metrics())

        assert metrics.site == "test.blog"
        assert metrics.generated_at == NOW
        assert metrics.total_views == 1
        assert metrics.weekly_views == 1
        assert metrics.today_views == 1
        assert metrics.monthly_views == 1
        assert metrics.published_posts == 2
        assert metrics.total_comments == 5
        assert metrics.top_pages == [PathCount(path="/", count=1)]
        assert metrics.errors == {}
        assert not metrics.is_partial

    def test_partial_results(self):
        """Failed content counts leave the page view metrics intact."""
        content = AsyncMock()
        content.count_published_posts.side_effect = StoreUnavailable("posts offline")
        content.count_comments.return_value = 9
        client = AnalyticsClient(
            InMemoryEventStore(FixedClock(NOW)),
            content,
            AnalyticsConfig(site_name="test.blog"),
            clock=FixedClock(NOW),
        )

        metrics = run_async(client.get_site_metrics())

        assert metrics.published_posts is None
        assert metrics.errors == {"published_posts": "posts offline"}
        assert metrics.total_comments == 9
        assert metrics.total_views == 0
        assert metrics.top_pages == []
        assert metrics.is_partial

    def test_everything_failing_still_returns(self):
        events = InMemoryEventStore(FixedClock(NOW))
        events.fail_with = StoreUnavailable("offline")
        content = InMemoryContentStore()
        content.fail_with = StoreUnavailable("offline")
        client = AnalyticsClient(events, content, AnalyticsConfig(site_name="test.blog"))

        metrics = run_async(client.get_site_metrics(NOW))

        assert set(metrics.errors) == {
            "total_views", "weekly_views", "today_views", "monthly_views",
            "published_posts", "total_comments", "top_pages",
        }
        assert metrics.total_views is None
        assert metrics.top_pages is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
