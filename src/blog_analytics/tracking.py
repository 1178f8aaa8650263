"""
Page view ingestion.

Tracking must never break page rendering: every failure on this path is
logged and dropped. Losing a page view is acceptable, surfacing an error
to the visitor is not.
"""
import asyncio
import logging

from .errors import AnalyticsError
from .models import PageViewEvent, PageViewInput
from .store.base import EventStore

logger = logging.getLogger(__name__)


class PageTracker:
    """Records page views into an EventStore, best-effort."""

    def __init__(
        self,
        store: EventStore,
        timeout: float = 5.0,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.store = store
        self.timeout = timeout
        # Loop that record() hands writes to when called off-loop (worker threads)
        self.loop = loop
        # Strong references so scheduled writes are not garbage collected
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def track(
        self,
        path: str | None,
        referrer: str | None = None,
        user_agent: str | None = None,
    ) -> PageViewEvent | None:
        """Store one page view. Returns the stored event, or None if it was dropped."""
        try:
            event = PageViewInput.build(path, referrer, user_agent)
            return await asyncio.wait_for(self.store.append(event), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Page view for {path!r} dropped: store timed out after {self.timeout}s")
        except AnalyticsError as e:
            logger.warning(f"Page view for {path!r} dropped: {e}")
        except Exception:
            logger.exception(f"Page view for {path!r} dropped: unexpected store error")
        return None

    def record(
        self,
        path: str | None,
        referrer: str | None = None,
        user_agent: str | None = None,
    ) -> asyncio.Task | None:
        """Schedule a page view write and return immediately.

        On an event loop the write becomes a task, which is returned. From a
        worker thread (sync FastAPI routes run in a threadpool) the write is
        handed to `self.loop` and None is returned; set it with bind_loop()
        at startup. Without either, the page view is dropped with a warning.
        The write keeps going after the caller moves on; use drain() to wait.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            return self._schedule(path, referrer, user_agent)

        if self.loop is None or self.loop.is_closed():
            logger.warning(f"Page view for {path!r} dropped: no running event loop")
            return None
        self.loop.call_soon_threadsafe(self._schedule, path, referrer, user_agent)
        return None

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Remember the serving loop so record() works from worker threads."""
        self.loop = loop or asyncio.get_running_loop()

    def _schedule(
        self,
        path: str | None,
        referrer: str | None,
        user_agent: str | None,
    ) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.track(path, referrer, user_agent))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
