"""
Tests for the aggregation engine.

Tests cover:
- Empty input and bucket shapes
- Window filtering by event timestamp and session start time
- Top pages, referrers and exit pages with percentages
- Device, browser and OS breakdowns
- Bounce rate, session duration and time-on-page averages
- Real-time visitors and the live panel
"""

from datetime import datetime

import pytest

from sitepulse.core.clock import DAY_MS
from sitepulse.schemas import AnalyticsData, DeviceInfo
from sitepulse.services.stats import compute_realtime, compute_stats, recent_events

from conftest import NOW

MINUTE_MS = 60 * 1000


def local_date(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).date().isoformat()


class TestEmptyLog:
    """Tests for stats over an empty log."""

    def test_empty_log_yields_zeros(self):
        """Test that no data produces an all-zero snapshot."""
        stats = compute_stats(AnalyticsData(), now=NOW)

        assert stats.total_page_views == 0
        assert stats.unique_visitors == 0
        assert stats.total_sessions == 0
        assert stats.average_session_duration == 0
        assert stats.bounce_rate == 0
        assert stats.real_time_visitors == 0
        assert stats.average_time_on_page == 0
        assert stats.top_pages == []
        assert stats.top_referrers == []
        assert stats.device_types == []
        assert stats.exit_pages == []

    def test_hourly_traffic_has_24_ordered_buckets(self):
        """Test that hourly traffic always covers hours 0-23 in order."""
        stats = compute_stats(AnalyticsData(), now=NOW)

        assert [h.hour for h in stats.hourly_traffic] == list(range(24))
        assert all(h.views == 0 for h in stats.hourly_traffic)

    @pytest.mark.parametrize("days", [1, 7, 30, 90])
    def test_daily_traffic_has_one_bucket_per_day(self, days):
        """Test that daily traffic has exactly `days` buckets, oldest first."""
        stats = compute_stats(AnalyticsData(), days=days, now=NOW)

        assert len(stats.daily_traffic) == days
        dates = [d.date for d in stats.daily_traffic]
        assert dates == sorted(dates)
        assert dates[-1] == local_date(NOW)


class TestTopPages:
    """Tests for page view ranking."""

    def test_top_pages_scenario(self, factory):
        """Test two views of / and one of /blog."""
        data = AnalyticsData(
            events=[
                factory.event(page="/", session_id="s1"),
                factory.event(page="/blog", session_id="s1"),
                factory.event(page="/", session_id="s2"),
            ],
            sessions=[factory.session("s1"), factory.session("s2")],
        )

        stats = compute_stats(data, now=NOW)

        assert stats.total_page_views == 3
        assert [(p.page, p.views) for p in stats.top_pages] == [("/", 2), ("/blog", 1)]
        assert stats.top_pages[0].percentage == pytest.approx(66.67)
        assert stats.top_pages[1].percentage == pytest.approx(33.33)

    def test_top_page_views_sum_to_total(self, factory):
        """Test that with few pages the top list accounts for every view."""
        pages = ["/", "/about", "/", "/blog", "/contact", "/", "/about"]
        data = AnalyticsData(events=[factory.event(page=p) for p in pages])

        stats = compute_stats(data, now=NOW)

        assert sum(p.views for p in stats.top_pages) == stats.total_page_views == len(pages)

    def test_top_pages_limited_to_ten(self, factory):
        """Test that only the ten most viewed pages are listed."""
        data = AnalyticsData(events=[factory.event(page=f"/page-{i}") for i in range(15)])

        stats = compute_stats(data, now=NOW)

        assert len(stats.top_pages) == 10

    def test_ties_keep_first_seen_order(self, factory):
        """Test that equal counts are listed in first-seen order."""
        data = AnalyticsData(events=[factory.event(page="/b"), factory.event(page="/a")])

        stats = compute_stats(data, now=NOW)

        assert [p.page for p in stats.top_pages] == ["/b", "/a"]

    def test_missing_page_counted_as_unknown(self, factory):
        """Test that a page view without a page is bucketed as Unknown."""
        data = AnalyticsData(events=[factory.event(page="")])

        stats = compute_stats(data, now=NOW)

        assert stats.top_pages[0].page == "Unknown"

    def test_only_page_views_are_ranked(self, factory):
        """Test that clicks and scrolls do not count as views."""
        data = AnalyticsData(
            events=[
                factory.event(page="/"),
                factory.event(event_type="click", page="/pricing", element="cta"),
                factory.event(event_type="scroll", page="/pricing", value=50),
            ]
        )

        stats = compute_stats(data, now=NOW)

        assert stats.total_page_views == 1
        assert [p.page for p in stats.top_pages] == ["/"]


class TestWindow:
    """Tests for the trailing day window."""

    def test_old_events_and_sessions_excluded(self, factory):
        """Test that data before now - days is dropped."""
        old = NOW - 31 * DAY_MS
        data = AnalyticsData(
            events=[factory.event(timestamp=old), factory.event(timestamp=NOW - MINUTE_MS)],
            sessions=[factory.session("old", start_time=old), factory.session("new", start_time=NOW - MINUTE_MS)],
        )

        stats = compute_stats(data, days=30, now=NOW)

        assert stats.total_page_views == 1
        assert stats.total_sessions == 1
        assert stats.unique_visitors == 1

    def test_cutoff_is_inclusive(self, factory):
        """Test that data exactly at the cutoff is kept."""
        cutoff = NOW - 7 * DAY_MS
        data = AnalyticsData(events=[factory.event(timestamp=cutoff)])

        stats = compute_stats(data, days=7, now=NOW)

        assert stats.total_page_views == 1

    def test_same_input_same_output(self, factory):
        """Test that stats are reproducible with a pinned clock."""
        data = AnalyticsData(
            events=[factory.event(page="/"), factory.event(event_type="time_on_page", value=4000)],
            sessions=[factory.session("s1", end_time=NOW + 60_000)],
        )

        first = compute_stats(data, now=NOW)
        second = compute_stats(data, now=NOW)

        assert first.model_dump() == second.model_dump()


class TestReferrers:
    """Tests for referrer breakdown."""

    def test_empty_referrer_is_direct(self, factory):
        """Test that sessions without a referrer count as Direct."""
        data = AnalyticsData(
            sessions=[
                factory.session("s1", referrer=""),
                factory.session("s2", referrer=""),
                factory.session("s3", referrer="https://www.google.com/"),
            ]
        )

        stats = compute_stats(data, now=NOW)

        assert [(r.referrer, r.visits) for r in stats.top_referrers] == [
            ("Direct", 2),
            ("https://www.google.com/", 1),
        ]
        assert stats.top_referrers[0].percentage == pytest.approx(66.67)
        assert stats.top_referrers[1].percentage == pytest.approx(33.33)


class TestSessionMetrics:
    """Tests for bounce rate, durations and exit pages."""

    def test_bounce_rate_zero_without_sessions(self, factory):
        """Test that events without sessions do not divide by zero."""
        data = AnalyticsData(events=[factory.event()])

        stats = compute_stats(data, now=NOW)

        assert stats.bounce_rate == 0

    def test_bounce_rate_percentage(self, factory):
        """Test one bounced session out of four."""
        data = AnalyticsData(
            sessions=[
                factory.session("s1", bounced=True),
                factory.session("s2"),
                factory.session("s3"),
                factory.session("s4"),
            ]
        )

        stats = compute_stats(data, now=NOW)

        assert stats.bounce_rate == 25.0

    def test_average_duration_ignores_live_sessions(self, factory):
        """Test that sessions without an end time are left out of the mean."""
        data = AnalyticsData(
            sessions=[
                factory.session("s1", start_time=NOW - 10 * MINUTE_MS, end_time=NOW - 9 * MINUTE_MS),
                factory.session("s2", start_time=NOW - 10 * MINUTE_MS, end_time=NOW - 7 * MINUTE_MS),
                factory.session("live", start_time=NOW - MINUTE_MS),
            ]
        )

        stats = compute_stats(data, now=NOW)

        assert stats.average_session_duration == 2 * MINUTE_MS

    def test_exit_pages(self, factory):
        """Test exit page ranking against all sessions in the window."""
        data = AnalyticsData(
            sessions=[
                factory.session("s1", exit_page="/contact"),
                factory.session("s2", exit_page="/contact"),
                factory.session("s3", exit_page="/"),
                factory.session("s4", exit_page=None),
            ]
        )

        stats = compute_stats(data, now=NOW)

        assert [(e.page, e.exits, e.percentage) for e in stats.exit_pages] == [
            ("/contact", 2, 50.0),
            ("/", 1, 25.0),
        ]

    def test_average_time_on_page(self, factory):
        """Test that numeric and numeric-string values are averaged."""
        data = AnalyticsData(
            events=[
                factory.event(event_type="time_on_page", value=2000),
                factory.event(event_type="time_on_page", value="4000"),
            ]
        )

        stats = compute_stats(data, now=NOW)

        assert stats.average_time_on_page == 3000

    def test_realtime_visitors(self, factory):
        """Test that only open sessions from the last five minutes count."""
        data = AnalyticsData(
            sessions=[
                factory.session("live", start_time=NOW - MINUTE_MS),
                factory.session("stale", start_time=NOW - 10 * MINUTE_MS),
                factory.session("ended", start_time=NOW - MINUTE_MS, end_time=NOW - 30_000),
            ]
        )

        stats = compute_stats(data, now=NOW)

        assert stats.real_time_visitors == 1


class TestDevices:
    """Tests for device, browser and OS breakdowns."""

    def test_device_types_capitalized(self, factory):
        """Test device type labels and percentages over all events."""
        data = AnalyticsData(
            events=[
                factory.event(device=DeviceInfo(type="desktop")),
                factory.event(device=DeviceInfo(type="desktop")),
                factory.event(device=DeviceInfo(type="desktop")),
                factory.event(device=DeviceInfo(type="mobile")),
            ]
        )

        stats = compute_stats(data, now=NOW)

        assert [(d.type, d.count, d.percentage) for d in stats.device_types] == [
            ("Desktop", 3, 75.0),
            ("Mobile", 1, 25.0),
        ]

    def test_browsers_limited_to_five(self, factory):
        """Test that only the five most common browsers are listed."""
        names = ["Chrome", "Chrome", "Firefox", "Safari", "Edge", "Opera", "Brave"]
        data = AnalyticsData(events=[factory.event(device=DeviceInfo(browser=b)) for b in names])

        stats = compute_stats(data, now=NOW)

        assert len(stats.browsers) == 5
        assert stats.browsers[0].browser == "Chrome"
        assert stats.browsers[0].count == 2

    def test_operating_systems(self, factory):
        """Test OS breakdown."""
        data = AnalyticsData(
            events=[
                factory.event(device=DeviceInfo(os="macOS")),
                factory.event(device=DeviceInfo(os="Windows")),
                factory.event(device=DeviceInfo(os="macOS")),
            ]
        )

        stats = compute_stats(data, now=NOW)

        assert [(o.os, o.count) for o in stats.operating_systems] == [("macOS", 2), ("Windows", 1)]

    def test_percentages_within_bounds(self, factory):
        """Test that every percentage lies in [0, 100]."""
        data = AnalyticsData(
            events=[factory.event(page=f"/{i % 3}", device=DeviceInfo(type="tablet")) for i in range(7)],
            sessions=[factory.session(f"s{i}", referrer=f"https://ref{i % 2}.example") for i in range(5)],
        )

        stats = compute_stats(data, now=NOW)

        groups = [stats.top_pages, stats.top_referrers, stats.device_types, stats.browsers, stats.operating_systems]
        for group in groups:
            for item in group:
                assert 0 <= item.percentage <= 100
        assert 0 <= stats.bounce_rate <= 100


class TestHistograms:
    """Tests for hourly and daily traffic."""

    def test_hourly_bucket_uses_local_hour(self, factory):
        """Test that page views land in their local hour."""
        data = AnalyticsData(events=[factory.event(), factory.event()])

        stats = compute_stats(data, now=NOW)

        hour = datetime.fromtimestamp(NOW / 1000).hour
        assert stats.hourly_traffic[hour].views == 2
        assert sum(h.views for h in stats.hourly_traffic) == 2

    def test_daily_views_and_visitors(self, factory):
        """Test that views and visitors are counted on their local day."""
        two_days_ago = NOW - 2 * DAY_MS
        data = AnalyticsData(
            events=[
                factory.event(timestamp=NOW),
                factory.event(timestamp=NOW),
                factory.event(timestamp=two_days_ago),
            ],
            sessions=[factory.session("today", start_time=NOW), factory.session("earlier", start_time=two_days_ago)],
        )

        stats = compute_stats(data, days=7, now=NOW)

        by_date = {d.date: d for d in stats.daily_traffic}
        assert by_date[local_date(NOW)].views == 2
        assert by_date[local_date(NOW)].visitors == 1
        assert by_date[local_date(two_days_ago)].views == 1
        assert by_date[local_date(two_days_ago)].visitors == 1
        assert sum(d.views for d in stats.daily_traffic) == 3


class TestRealtime:
    """Tests for the live panel."""

    def test_realtime_panel(self, factory):
        """Test active users, 24h page views and recent events."""
        data = AnalyticsData(
            events=[
                factory.event(page="/", timestamp=NOW - 2 * MINUTE_MS),
                factory.event(event_type="click", page="/", timestamp=NOW - MINUTE_MS, element="cta"),
                factory.event(page="/blog", timestamp=NOW - 3 * 60 * MINUTE_MS),
                factory.event(page="/old", timestamp=NOW - 2 * DAY_MS),
            ],
            sessions=[factory.session("live", start_time=NOW - 2 * MINUTE_MS)],
        )

        panel = compute_realtime(data, now=NOW)

        assert panel.active_users == 1
        assert panel.page_views == 2
        assert [p.page for p in panel.top_pages] == ["/", "/blog"]
        assert [(e.type, e.timestamp) for e in panel.recent_events] == [
            ("click", NOW - MINUTE_MS),
            ("page_view", NOW - 2 * MINUTE_MS),
        ]

    def test_recent_events_newest_first_and_limited(self, factory):
        """Test that at most ten recent events are returned, newest first."""
        events = [factory.event(timestamp=NOW - i * 1000) for i in range(12)]

        recent = recent_events(events, since=NOW - 5 * MINUTE_MS)

        assert len(recent) == 10
        assert recent[0].timestamp == NOW
        assert [e.timestamp for e in recent] == sorted((e.timestamp for e in recent), reverse=True)
