"""
Storage interfaces.

The engine only needs three operations on page views, plus two plain
counts from the blog's own tables. Implementations live in memory.py
and d1.py.
"""
from datetime import datetime
from typing import Protocol

from ..errors import InvalidInput
from ..models import PageViewEvent, PageViewInput


def require_path(event: PageViewInput) -> str:
    """Return the stripped path, or raise InvalidInput if it is blank.

    Guards stores against inputs built with model_construct(), which skips
    validation.
    """
    path = (event.path or "").strip()
    if not path:
        raise InvalidInput("Page view path is required")
    return path


class EventStore(Protocol):
    """Append-only page view storage."""

    async def append(self, event: PageViewInput) -> PageViewEvent:
        """Store one page view, assigning id and created_at (UTC).

        Raises:
            StoreUnavailable: If the storage cannot be reached
        """
        ...

    async def count_since(self, lower_bound: datetime | None) -> int:
        """Count events with created_at >= lower_bound (all events if None)."""
        ...

    async def list_paths_since(self, lower_bound: datetime | None) -> list[str]:
        """One path per event since lower_bound. Order is unspecified."""
        ...


class ContentStore(Protocol):
    """Counts from the blog's post and comment tables."""

    async def count_published_posts(self) -> int:
        ...

    async def count_comments(self) -> int:
        ...
