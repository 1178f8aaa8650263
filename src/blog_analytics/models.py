"""
Pydantic models for analytics data.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidInput

# =============================================================================
# Raw Data Models
# =============================================================================


class PageViewInput(BaseModel):
    """An incoming page view, before the store assigns id and created_at."""
    path: str
    referrer: str | None = None
    user_agent: str | None = None

    @field_validator("path")
    @classmethod
    def _non_empty_path(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("path must not be blank")
        return value

    @classmethod
    def build(
        cls,
        path: str | None,
        referrer: str | None = None,
        user_agent: str | None = None,
    ) -> "PageViewInput":
        """Validate raw values into an input.

        Raises:
            InvalidInput: If path is missing or blank
        """
        path = (path or "").strip()
        if not path:
            raise InvalidInput("Page view path is required")
        return cls(path=path, referrer=referrer or None, user_agent=user_agent or None)


class PageViewEvent(BaseModel):
    """A single stored page view. Never updated after it is written."""
    model_config = ConfigDict(frozen=True)

    id: str
    path: str
    referrer: str | None = None
    user_agent: str | None = None
    created_at: datetime


# =============================================================================
# Derived Models
# =============================================================================


class Window(BaseModel):
    """A half-open time interval [start, end).

    start=None means unbounded (all-time). end=None means open, i.e. "now".
    The aggregator only accepts open windows and rejects any with an end.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    start: datetime | None = None
    end: datetime | None = None

    @property
    def is_all_time(self) -> bool:
        return self.start is None


class PathCount(BaseModel):
    """Number of page views for one path inside a window."""
    model_config = ConfigDict(frozen=True)

    path: str
    count: int

    @field_validator("count")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("count must be at least 1")
        return value


class SiteMetrics(BaseModel):
    """Everything the metrics dashboard shows.

    Each value is None when its query failed; `errors` says why.
    """
    site: str
    generated_at: datetime
    timezone: str = "UTC"

    total_views: int | None = None
    weekly_views: int | None = None
    today_views: int | None = None
    monthly_views: int | None = None
    published_posts: int | None = None
    total_comments: int | None = None
    top_pages: list[PathCount] | None = None

    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def is_partial(self) -> bool:
        return bool(self.errors)


class CollectRequest(BaseModel):
    """Incoming page view beacon. Every field is optional so a malformed
    beacon is dropped quietly instead of answered with a 422."""

    path: str = ""
    ref: str | None = None  # referrer
    ua: str | None = None  # user agent
