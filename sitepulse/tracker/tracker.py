"""
Per-page-load analytics tracker.

One tracker owns one visit: a session id, the in-memory buffer of every
event it captured, and the session summary derived from that buffer. The
host creates it when the page loads, forwards page lifecycle and DOM
interactions to the ``on_*`` hooks, and closes it on unload:

    async with create_tracker(PageEnvironment(user_agent=ua, hostname="example.org")) as tracker:
        await tracker.track_page_view("/")
        await tracker.on_scroll(scroll_top=600, document_height=2000, viewport_height=800)

Events are stamped and buffered synchronously in call order; persistence
runs in background tasks, so collector latency never reaches the caller
and no call raises. Without a page environment the tracker stays inert and
every call is a no-op.
"""

import asyncio
import json
import random
import string
from pathlib import Path
from typing import Any, Callable, Coroutine, Dict, List, Optional, Set
from urllib.parse import urljoin, urlparse

from sitepulse.core.clock import now_ms
from sitepulse.core.config import settings
from sitepulse.core.errors import ErrorHandler
from sitepulse.core.logging_config import get_logger
from sitepulse.schemas import (
    AnalyticsEvent,
    AnalyticsSession,
    EventType,
    EventValue,
    LocationInfo,
    SessionEnd,
)
from sitepulse.tracker.environment import PageEnvironment
from sitepulse.tracker.persistence import PersistenceAdapter
from sitepulse.tracker.probe import get_device_info, get_location_info
from sitepulse.tracker.storage import FileStorage, LocalStorage

logger = get_logger(__name__)

BOUNCE_THRESHOLD_MS = 30_000
MIN_TIME_ON_PAGE_MS = 1000
SCROLL_MILESTONES = (25, 50, 75, 100)
UNKNOWN_FORM = "unknown-form"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix(length: int = 9) -> str:
    return "".join(random.choices(_ID_ALPHABET, k=length))


def generate_session_id(timestamp: int) -> str:
    return f"session_{timestamp}_{_random_suffix()}"


def generate_event_id(timestamp: int) -> str:
    return f"event_{timestamp}_{_random_suffix()}"


def compute_bounced(page_views: int, elapsed_ms: int) -> bool:
    """A visit bounces while it has at most one page view and is under 30s old."""
    return page_views <= 1 and elapsed_ms < BOUNCE_THRESHOLD_MS


def scroll_milestone(depth: float) -> Optional[int]:
    """The milestone bucket a scroll depth falls in, if any."""
    for milestone in reversed(SCROLL_MILESTONES):
        if depth >= milestone:
            return milestone
    return None


class AnalyticsTracker:
    def __init__(
        self,
        environment: Optional[PageEnvironment] = None,
        persistence: Optional[PersistenceAdapter] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.environment = environment
        self.clock = clock

        now = clock()
        self._last_timestamp = now
        self.session_id = generate_session_id(now)
        self.start_time = now
        self.last_activity_time = now
        self.page_start_time = now

        self.events: List[AnalyticsEvent] = []
        self.current_page = ""
        self.landing_page = ""
        self.scroll_depth = 0
        self.max_scroll_depth = 0
        # Buffer index where the current page visit starts
        self._page_visit_start = 0

        self.persistence: Optional[PersistenceAdapter] = None
        self.enabled = False
        self._location: Optional[LocationInfo] = None
        self._ended = False
        self._pending: Set[asyncio.Task] = set()
        # Session pushes and the end stamp go out one at a time, in call order
        self._session_lock = asyncio.Lock()

        if environment is None:
            return

        with ErrorHandler("init_tracking", capture=False):
            self.persistence = persistence or PersistenceAdapter()
            self.enabled = True

    # --- lifecycle ---

    async def __aenter__(self) -> "AnalyticsTracker":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Unload the page: flush time-on-page, end the session, wait for writes."""
        if not self.enabled:
            return
        await self.on_unload()
        await self.drain()
        with ErrorHandler("close_transport", capture=False):
            await self.persistence.aclose()
        self.enabled = False
        logger.info("Tracker closed", session_id=self.session_id, events=len(self.events))

    async def drain(self) -> None:
        """Wait for every in-flight persistence call to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def ended(self) -> bool:
        return self._ended

    # --- internals ---

    def _now(self) -> int:
        # Timestamps never go backwards within one tracker
        now = max(self.clock(), self._last_timestamp)
        self._last_timestamp = now
        return now

    def _dispatch(self, coro: Coroutine[Any, Any, Any], operation: str) -> None:
        async def guarded():
            with ErrorHandler(operation, context={"session_id": self.session_id}):
                await coro

        task = asyncio.ensure_future(guarded())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _resolve_location(self) -> LocationInfo:
        # Looked up once per page load
        if self._location is None:
            self._location = await get_location_info()
        return self._location

    def _build_event(
        self,
        event_type: EventType,
        element: Optional[str],
        value: Optional[EventValue],
        duration: Optional[int],
        location: LocationInfo,
    ) -> AnalyticsEvent:
        timestamp = self._now()
        return AnalyticsEvent(
            id=generate_event_id(timestamp),
            type=event_type,
            page=self.current_page,
            element=element,
            value=value,
            duration=duration,
            timestamp=timestamp,
            session_id=self.session_id,
            user_agent=self.environment.user_agent,
            referrer=self.environment.referrer,
            location=location,
            device=get_device_info(self.environment),
        )

    def _record(self, event: AnalyticsEvent) -> None:
        self.events.append(event)
        summary = self.session_summary()
        self._dispatch(self.persistence.save_event(event), "save_event")
        self._dispatch(self._push_session(summary), "update_session")

    async def _push_session(self, summary: AnalyticsSession) -> None:
        async with self._session_lock:
            await self.persistence.update_session(summary)

    async def _push_session_end(self, end: SessionEnd) -> None:
        async with self._session_lock:
            await self.persistence.end_session(end)

    def _has_tracked_scroll(self, depth: int) -> bool:
        return any(
            e.type == "scroll" and e.page == self.current_page and e.value == depth
            for e in self.events[self._page_visit_start :]
        )

    async def _track_time_on_page(self) -> None:
        if not self.current_page:
            return
        duration = self._now() - self.page_start_time
        if duration > MIN_TIME_ON_PAGE_MS:
            await self.track_event("time_on_page", element=self.current_page, value=duration)

    # --- session ---

    def session_summary(self) -> AnalyticsSession:
        """Session state derived from the buffer as of now."""
        page_views = sum(1 for e in self.events if e.type == "page_view")
        elapsed = self._now() - self.start_time
        return AnalyticsSession(
            id=self.session_id,
            start_time=self.start_time,
            page_views=page_views,
            events=len(self.events),
            referrer=self.environment.referrer if self.environment else "",
            landing_page=self.landing_page,
            exit_page=self.current_page,
            bounced=compute_bounced(page_views, elapsed),
        )

    async def end_session(self) -> Optional[SessionEnd]:
        """Stamp the session end. Only the first call has any effect."""
        if not self.enabled or self._ended:
            return None
        with ErrorHandler("end_session") as handler:
            end_time = self._now()
            end = SessionEnd(id=self.session_id, end_time=end_time, duration=end_time - self.start_time)
            self._ended = True
            self._dispatch(self._push_session_end(end), "end_session")
        if handler.failed:
            return None
        return end

    # --- public tracking API ---

    async def track_page_view(self, page: str) -> Optional[AnalyticsEvent]:
        if not self.enabled:
            return None
        with ErrorHandler("track_page_view", context={"page": page}) as handler:
            if self.current_page:
                await self._track_time_on_page()

            self.current_page = page
            if not self.landing_page:
                self.landing_page = page
            self.page_start_time = self._now()
            self.max_scroll_depth = 0

            location = await self._resolve_location()
            event = self._build_event("page_view", None, None, None, location)
            self._page_visit_start = len(self.events)
            self._record(event)
        if handler.failed:
            return None
        return event

    async def track_event(
        self,
        event_type: EventType,
        element: Optional[str] = None,
        value: Optional[EventValue] = None,
        duration: Optional[int] = None,
    ) -> Optional[AnalyticsEvent]:
        """Capture one interaction on the current page."""
        if not self.enabled:
            return None
        with ErrorHandler("track_event", context={"type": event_type}) as handler:
            location = await self._resolve_location()
            event = self._build_event(event_type, element, value, duration, location)
            self._record(event)
        if handler.failed:
            return None
        return event

    async def track(self, name: str, properties: Optional[Dict[str, Any]] = None) -> Optional[AnalyticsEvent]:
        """Custom business event, recorded as a click named ``name``."""
        if not self.enabled:
            return None
        with ErrorHandler("track", context={"name": name}) as handler:
            value = json.dumps(properties or {}, default=str)
        if handler.failed:
            return None
        return await self.track_event("click", element=name, value=value)

    async def track_click(self, element: str, value: Optional[str] = None) -> Optional[AnalyticsEvent]:
        return await self.track_event("click", element=element, value=value)

    async def track_form_submit(self, form_name: str) -> Optional[AnalyticsEvent]:
        return await self.track_event("form_submit", element=form_name)

    # --- page observation hooks ---

    async def on_visibility_change(self, hidden: bool) -> None:
        if not self.enabled:
            return
        if hidden:
            await self._track_time_on_page()
        else:
            self.page_start_time = self._now()

    async def on_scroll(self, scroll_top: float, document_height: float, viewport_height: float) -> None:
        """
        Record scroll depth and emit milestone events.

        Call at most once per animation frame. Each milestone fires once per
        page visit: coming back to a page later in the session re-arms them.
        Unscrollable pages are ignored.
        """
        if not self.enabled:
            return
        scrollable = document_height - viewport_height
        if scrollable <= 0:
            return

        self.scroll_depth = round(scroll_top / scrollable * 100)
        self.max_scroll_depth = max(self.max_scroll_depth, self.scroll_depth)

        milestone = scroll_milestone(self.scroll_depth)
        if milestone is not None and not self._has_tracked_scroll(milestone):
            await self.track_event("scroll", element=f"{milestone}%", value=milestone)

    async def on_click(self, href: Optional[str], text: Optional[str] = None) -> None:
        """A click on an anchor; only links leaving the site are recorded."""
        if not self.enabled or not href:
            return
        hostname = self.environment.hostname.lower()
        resolved = urljoin(f"https://{hostname}/", href)
        if urlparse(resolved).hostname == hostname:
            return
        await self.track_event("external_link", element=resolved, value=text or resolved)

    async def on_submit(self, form_id: Optional[str] = None, form_class: Optional[str] = None) -> None:
        if not self.enabled:
            return
        form_name = form_id or form_class or UNKNOWN_FORM
        await self.track_event("form_submit", element=form_name, value=form_name)

    async def on_unload(self) -> None:
        if not self.enabled:
            return
        await self._track_time_on_page()
        await self.end_session()

    def on_activity(self) -> None:
        """Mouse, keyboard, touch or scroll activity. Kept for idle detection."""
        if not self.enabled:
            return
        self.last_activity_time = self._now()


def create_tracker(
    environment: Optional[PageEnvironment],
    collector_url: Optional[str] = None,
    storage: Optional[LocalStorage] = None,
) -> AnalyticsTracker:
    """Tracker for one page load, buffering locally under LOCAL_STORAGE_DIR by default."""
    if environment is None:
        return AnalyticsTracker()

    if storage is None:
        storage = FileStorage(Path(settings.LOCAL_STORAGE_DIR))
    persistence = PersistenceAdapter(base_url=collector_url, storage=storage)
    return AnalyticsTracker(environment=environment, persistence=persistence)
