"""
Page view analytics for a blog.

Usage:
    from blog_analytics import setup_analytics

    analytics = setup_analytics(site_name="myblog.dev")

    # Collect endpoint, metrics API and dashboard
    app.include_router(analytics.router, prefix="/analytics")

    # In a page-render hook (non-blocking, never raises). Sync routes run
    # in a threadpool, so bind the serving loop once at startup first:
    #     @app.on_event("startup")
    #     async def bind(): analytics.tracker.bind_loop()
    analytics.tracker.record(request.url.path, referrer, user_agent)

    # In templates: {{ analytics.tracking_script("/analytics") }}
"""

from .client import AnalyticsClient
from .config import AnalyticsConfig
from .errors import AnalyticsError, InvalidInput, QueryTimeout, StoreUnavailable
from .models import PageViewEvent, PageViewInput, PathCount, SiteMetrics, Window
from .routes import create_dashboard_router
from .store import (
    D1ContentStore,
    D1Database,
    D1EventStore,
    InMemoryContentStore,
    InMemoryEventStore,
)
from .tracking import PageTracker
from .windows import Clock, FixedClock, SystemClock

__version__ = "0.1.0"
__all__ = [
    "setup_analytics", "Analytics", "AnalyticsConfig",
    "AnalyticsClient", "PageTracker",
    "PageViewEvent", "PageViewInput", "PathCount", "SiteMetrics", "Window",
    "AnalyticsError", "InvalidInput", "StoreUnavailable", "QueryTimeout",
    "Clock", "SystemClock", "FixedClock",
]


class Analytics:
    """Main analytics interface for a site."""

    def __init__(
        self,
        config: AnalyticsConfig,
        events=None,
        content=None,
        clock: Clock | None = None,
    ):
        self.config = config

        if events is None or content is None:
            if config.has_d1:
                db = D1Database(
                    d1_database_id=config.d1_database_id,
                    cf_account_id=config.cf_account_id,
                    cf_api_token=config.cf_api_token,
                    timeout=config.query_timeout_seconds,
                )
                events = events or D1EventStore(db)
                content = content or D1ContentStore(db)
            else:
                events = events or InMemoryEventStore(clock)
                content = content or InMemoryContentStore()

        self.events = events
        self.content = content
        self.client = AnalyticsClient(events, content, config, clock=clock)
        self.tracker = PageTracker(events, timeout=config.ingest_timeout_seconds)
        self.router = create_dashboard_router(self.client, self.tracker, config)

    def tracking_script(self, collect_prefix: str = "") -> str:
        """Generate the tracking script HTML for templates.

        Sends the path and referrer to {collect_prefix}/collect on first
        load and on SPA navigation (pushState, replaceState, popstate).
        Repeated tracks of the same path are debounced.
        """
        return f'''<script>
(function(){{
  var d=document,w=window,h=history,l=location;
  var url="{collect_prefix}/collect";
  var lastPath="",timer;

  function track(){{
    clearTimeout(timer);
    timer=setTimeout(function(){{
      var path=l.pathname;
      if(path===lastPath)return;
      lastPath=path;
      var body=JSON.stringify({{path:path,ref:d.referrer||null}});
      if(navigator.sendBeacon){{navigator.sendBeacon(url,body)}}
      else{{fetch(url,{{method:"POST",body:body,keepalive:true}}).catch(function(){{}})}}
    }},50);
  }}

  track();

  var push=h.pushState;
  h.pushState=function(){{push.apply(h,arguments);track()}};
  var replace=h.replaceState;
  h.replaceState=function(){{replace.apply(h,arguments);track()}};
  w.addEventListener("popstate",track);
}})();
</script>'''


def setup_analytics(
    site_name: str,
    timezone: str = "UTC",
    d1_database_id: str = None,
    cf_account_id: str = None,
    cf_api_token: str = None,
    **options,
) -> Analytics:
    """
    Set up analytics for a site.

    Args:
        site_name: Identifier for this site (e.g., "myblog.dev")
        timezone: IANA zone that decides when "today" starts (default UTC)
        d1_database_id: Cloudflare D1 database ID. Without D1 credentials,
                        page views are kept in memory.
        cf_account_id: Cloudflare account ID
        cf_api_token: Cloudflare API token with D1 read/write access
        **options: Any other AnalyticsConfig field (top_pages_limit,
                   query_timeout_seconds, cache_ttl_seconds, ...)

    Returns:
        Analytics instance with client, tracker, router and tracking_script()
    """
    config = AnalyticsConfig(
        site_name=site_name,
        timezone=timezone,
        d1_database_id=d1_database_id,
        cf_account_id=cf_account_id,
        cf_api_token=cf_api_token,
        **options,
    )
    return Analytics(config)
