"""
Aggregation of the raw event/session log into dashboard statistics.

Everything here is a pure function of its inputs and the wall clock; the
clock can be pinned with ``now`` (ms since epoch) for reproducible output.
Hour-of-day and calendar-day buckets follow the server's local time.
"""

from collections import Counter
from datetime import datetime, timedelta, time
from typing import Iterable, List, Optional, Tuple

from sitepulse.core.clock import DAY_MS, now_ms
from sitepulse.schemas import (
    AnalyticsData,
    AnalyticsEvent,
    AnalyticsStats,
    BrowserStat,
    DailyTraffic,
    DeviceTypeStat,
    ExitPageStat,
    HourlyTraffic,
    OperatingSystemStat,
    PageStat,
    RealtimeStats,
    RecentEvent,
    ReferrerStat,
)

TOP_PAGES_LIMIT = 10
TOP_REFERRERS_LIMIT = 10
TOP_EXIT_PAGES_LIMIT = 10
TOP_BROWSERS_LIMIT = 5
TOP_OS_LIMIT = 5

REALTIME_WINDOW_MS = 5 * 60 * 1000
REALTIME_TOP_PAGES = 5
REALTIME_RECENT_EVENTS = 10

UNKNOWN_PAGE = "Unknown"
DIRECT_REFERRER = "Direct"


def _percentage(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(count / total * 100, 2)


def _mean(values: List[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _as_number(value) -> float:
    """Numeric reading of an event value; non-numeric values count as 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def _ranked(counts: Counter, limit: Optional[int] = None) -> List[Tuple[str, int]]:
    # most_common sorts stably, so ties keep first-seen order
    return counts.most_common(limit)


def _local_hour(ms: int) -> int:
    return datetime.fromtimestamp(ms / 1000).hour


def _day_bounds(day) -> Tuple[int, int]:
    start = datetime.combine(day, time.min)
    end = datetime.combine(day, time.max)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


def _hourly_traffic(page_views: List[AnalyticsEvent]) -> List[HourlyTraffic]:
    by_hour = Counter(_local_hour(e.timestamp) for e in page_views)
    return [HourlyTraffic(hour=hour, views=by_hour.get(hour, 0)) for hour in range(24)]


def _daily_traffic(page_views: List[AnalyticsEvent], sessions, days: int, now: int) -> List[DailyTraffic]:
    today = datetime.fromtimestamp(now / 1000)
    buckets = []
    for offset in range(days):
        day = (today - timedelta(days=offset)).date()
        day_start, day_end = _day_bounds(day)

        views = sum(1 for e in page_views if day_start <= e.timestamp <= day_end)
        visitors = len({s.id for s in sessions if day_start <= s.start_time <= day_end})

        buckets.append(DailyTraffic(date=day.isoformat(), views=views, visitors=visitors))

    # Generated newest first, returned oldest first
    buckets.reverse()
    return buckets


def _device_breakdowns(events: List[AnalyticsEvent]) -> Tuple[Counter, Counter, Counter]:
    types: Counter = Counter()
    browsers: Counter = Counter()
    systems: Counter = Counter()
    for event in events:
        device = event.device
        if device is None:
            continue
        if device.type:
            types[device.type] += 1
        if device.browser:
            browsers[device.browser] += 1
        if device.os:
            systems[device.os] += 1
    return types, browsers, systems


def compute_stats(data: AnalyticsData, days: int = 30, now: Optional[int] = None) -> AnalyticsStats:
    """
    Build the statistics snapshot for the trailing ``days`` window.

    Events are filtered by ``timestamp`` and sessions by ``startTime``;
    anything at or after ``now - days`` is kept. Empty input yields a
    snapshot of zeros with 24 hourly and ``days`` daily buckets.
    """
    if now is None:
        now = now_ms()
    cutoff = now - days * DAY_MS

    events = [e for e in data.events if e.timestamp >= cutoff]
    sessions = [s for s in data.sessions if s.start_time >= cutoff]

    page_views = [e for e in events if e.type == "page_view"]
    total_page_views = len(page_views)
    total_sessions = len(sessions)
    total_events = len(events)

    # Live sessions have no duration yet and are left out of the mean
    completed = [s for s in sessions if s.end_time is not None]
    average_session_duration = _mean([float(s.duration or 0) for s in completed])

    bounced = sum(1 for s in sessions if s.bounced)

    page_counts = Counter(e.page or UNKNOWN_PAGE for e in page_views)
    top_pages = [
        PageStat(page=page, views=views, percentage=_percentage(views, total_page_views))
        for page, views in _ranked(page_counts, TOP_PAGES_LIMIT)
    ]

    referrer_counts = Counter(s.referrer or DIRECT_REFERRER for s in sessions)
    top_referrers = [
        ReferrerStat(referrer=referrer, visits=visits, percentage=_percentage(visits, total_sessions))
        for referrer, visits in _ranked(referrer_counts, TOP_REFERRERS_LIMIT)
    ]

    type_counts, browser_counts, os_counts = _device_breakdowns(events)
    device_types = [
        DeviceTypeStat(type=kind.capitalize(), count=count, percentage=_percentage(count, total_events))
        for kind, count in _ranked(type_counts)
    ]
    browsers = [
        BrowserStat(browser=browser, count=count, percentage=_percentage(count, total_events))
        for browser, count in _ranked(browser_counts, TOP_BROWSERS_LIMIT)
    ]
    operating_systems = [
        OperatingSystemStat(os=os_name, count=count, percentage=_percentage(count, total_events))
        for os_name, count in _ranked(os_counts, TOP_OS_LIMIT)
    ]

    realtime_cutoff = now - REALTIME_WINDOW_MS
    real_time_visitors = len(
        {s.id for s in sessions if s.start_time >= realtime_cutoff and s.end_time is None}
    )

    time_on_page = [_as_number(e.value) for e in events if e.type == "time_on_page"]

    exit_counts = Counter(s.exit_page for s in sessions if s.exit_page)
    exit_pages = [
        ExitPageStat(page=page, exits=exits, percentage=_percentage(exits, total_sessions))
        for page, exits in _ranked(exit_counts, TOP_EXIT_PAGES_LIMIT)
    ]

    return AnalyticsStats(
        total_page_views=total_page_views,
        unique_visitors=len({s.id for s in sessions}),
        total_sessions=total_sessions,
        average_session_duration=average_session_duration,
        bounce_rate=_percentage(bounced, total_sessions),
        top_pages=top_pages,
        top_referrers=top_referrers,
        device_types=device_types,
        browsers=browsers,
        operating_systems=operating_systems,
        hourly_traffic=_hourly_traffic(page_views),
        daily_traffic=_daily_traffic(page_views, sessions, days, now),
        real_time_visitors=real_time_visitors,
        average_time_on_page=_mean(time_on_page),
        exit_pages=exit_pages,
    )


def recent_events(events: Iterable[AnalyticsEvent], since: int, limit: int = REALTIME_RECENT_EVENTS) -> List[RecentEvent]:
    """Newest-first events at or after ``since``."""
    recent = sorted((e for e in events if e.timestamp >= since), key=lambda e: e.timestamp, reverse=True)
    return [RecentEvent(type=e.type, page=e.page, timestamp=e.timestamp) for e in recent[:limit]]


def compute_realtime(data: AnalyticsData, now: Optional[int] = None) -> RealtimeStats:
    """Live panel: open sessions, last-24h page views and the latest activity."""
    if now is None:
        now = now_ms()
    stats = compute_stats(data, days=1, now=now)

    return RealtimeStats(
        active_users=stats.real_time_visitors,
        page_views=stats.total_page_views,
        top_pages=stats.top_pages[:REALTIME_TOP_PAGES],
        recent_events=recent_events(data.events, now - REALTIME_WINDOW_MS),
    )
