"""
HTTP routes for blog analytics.

/collect takes page view beacons, /api/metrics serves dashboard numbers
as JSON, and / renders the site metrics cards with Jinja2.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from ..client import AnalyticsClient
from ..config import AnalyticsConfig
from ..errors import QueryTimeout, StoreUnavailable
from ..models import CollectRequest
from ..tracking import PageTracker

logger = logging.getLogger(__name__)

METRIC_NAMES = (
    "total_views",
    "weekly_views",
    "today_views",
    "monthly_views",
    "published_posts",
    "total_comments",
    "top_pages",
)


def _display_path(path: str) -> str:
    """Show the site root as "Home"."""
    return "Home" if path == "/" else path


def _thousands(value) -> str:
    """Format an integer with thousands separators; None renders as "unavailable"."""
    if value is None:
        return "unavailable"
    return f"{value:,}"


def create_dashboard_router(
    client: AnalyticsClient,
    tracker: PageTracker,
    config: AnalyticsConfig,
) -> APIRouter:
    """Create the analytics router.

    Args:
        client: Query client for reading metrics
        tracker: Page tracker for the collect endpoint
        config: Analytics configuration
    """
    router = APIRouter(tags=["analytics"])

    template_dir = Path(__file__).parent.parent / "templates"
    templates = Jinja2Templates(directory=str(template_dir))
    templates.env.filters["display_path"] = _display_path
    templates.env.filters["thousands"] = _thousands

    cache_header = f"private, max-age={config.cache_ttl_seconds}"

    # -------------------------------------------------------------------------
    # Collection
    # -------------------------------------------------------------------------

    def _schedule(
        background_tasks: BackgroundTasks,
        request: Request,
        beacon: CollectRequest,
    ) -> Response:
        # Fall back to request headers when the beacon leaves them out
        referrer = beacon.ref or request.headers.get("referer")
        user_agent = beacon.ua or request.headers.get("user-agent")
        background_tasks.add_task(tracker.track, beacon.path, referrer, user_agent)
        return Response(status_code=204, headers={"Cache-Control": "no-store"})

    @router.get("/collect")
    async def collect_get(
        request: Request,
        background_tasks: BackgroundTasks,
        path: str = "",
        ref: str | None = None,
        ua: str | None = None,
    ):
        """Record a page view from query parameters (image/fetch beacon)."""
        return _schedule(background_tasks, request, CollectRequest(path=path, ref=ref, ua=ua))

    @router.post("/collect")
    async def collect_post(request: Request, background_tasks: BackgroundTasks):
        """Record a page view from a JSON body (navigator.sendBeacon)."""
        body = await request.body()
        try:
            beacon = CollectRequest.model_validate_json(body or b"{}")
        except ValidationError as e:
            logger.debug(f"Ignoring malformed beacon: {e.error_count()} error(s)")
            return Response(status_code=204, headers={"Cache-Control": "no-store"})
        return _schedule(background_tasks, request, beacon)

    # -------------------------------------------------------------------------
    # Metrics API
    # -------------------------------------------------------------------------

    @router.get("/api/metrics")
    async def metrics(response: Response):
        """All dashboard metrics. Failed queries come back as null with a reason in `errors`."""
        data = await client.get_site_metrics()
        response.headers["Cache-Control"] = cache_header
        return data.model_dump(mode="json")

    @router.get("/api/metrics/{name}")
    async def metric(
        name: str,
        limit: int | None = Query(None, description="Number of top pages (top_pages only)"),
    ):
        """A single dashboard metric."""
        if name not in METRIC_NAMES:
            raise HTTPException(status_code=404, detail=f"Unknown metric: {name}")
        if limit is not None and limit < 0:
            raise HTTPException(status_code=400, detail="limit cannot be negative")

        now = client.clock.now()
        try:
            if name == "total_views":
                value = await client.total_views()
            elif name == "weekly_views":
                value = await client.weekly_views(now)
            elif name == "today_views":
                value = await client.today_views(now)
            elif name == "monthly_views":
                value = await client.monthly_views(now)
            elif name == "published_posts":
                value = await client.published_post_count()
            elif name == "total_comments":
                value = await client.total_comment_count()
            else:
                pages = await client.top_pages(now, limit)
                value = [p.model_dump() for p in pages]
        except QueryTimeout as e:
            logger.error(f"Metric '{name}' timed out: {e}")
            raise HTTPException(status_code=504, detail=f"{name} unavailable: timed out") from e
        except StoreUnavailable as e:
            logger.error(f"Metric '{name}' failed: {e}")
            raise HTTPException(status_code=503, detail=f"{name} unavailable") from e

        return JSONResponse(
            {"metric": name, "value": value},
            headers={"Cache-Control": cache_header},
        )

    # -------------------------------------------------------------------------
    # Dashboard page
    # -------------------------------------------------------------------------

    @router.get("/", response_class=HTMLResponse)
    async def site_metrics_page(request: Request):
        """Render the site metrics cards."""
        data = await client.get_site_metrics()
        response = templates.TemplateResponse(
            request,
            "metrics.html",
            {
                "site_name": config.site_name,
                "metrics": data,
                "today": data.generated_at.astimezone(config.tzinfo),
                "weekly_days": config.weekly_days,
                "monthly_days": config.monthly_days,
            },
        )
        response.headers["Cache-Control"] = cache_header
        return response

    return router
