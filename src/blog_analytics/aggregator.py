"""Counts and path rankings over a window of page views."""

from collections import Counter
from collections.abc import Iterable

from .errors import InvalidInput
from .models import PathCount, Window
from .store.base import EventStore


def rank_paths(paths: Iterable[str], limit: int) -> list[PathCount]:
    """Rank paths by frequency, highest first.

    Equal counts are ordered by path so the result never depends on the
    order the store returned rows in.
    """
    if limit <= 0:
        return []
    counts = Counter(paths)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [PathCount(path=path, count=count) for path, count in ranked[:limit]]


def _require_open(window: Window) -> None:
    # Stores only filter on a lower bound
    if window.end is not None:
        raise InvalidInput(f"Window '{window.name}' has an end bound; only open windows are supported")


class Aggregator:
    """Turns windows into counts and rankings against an EventStore."""

    def __init__(self, store: EventStore):
        self.store = store

    async def count(self, window: Window) -> int:
        _require_open(window)
        return await self.store.count_since(window.start)

    async def top_paths(self, window: Window, limit: int) -> list[PathCount]:
        _require_open(window)
        if limit <= 0:
            return []
        paths = await self.store.list_paths_since(window.start)
        return rank_paths(paths, limit)
