#!/usr/bin/env python3
"""
Seed demo analytics for local dashboard work.

Generates a few weeks of visits (page views, scroll milestones, time on
page, outbound clicks) spread across devices and referrers, and stores them
the same way the collector does.

Usage:
    python scripts/seed_demo_data.py [--days 30] [--visits-per-day 40]
"""

import argparse
import os
import random
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlmodel import Session, select

from sitepulse.core.clock import DAY_MS, now_ms
from sitepulse.db import create_db_and_tables, engine
from sitepulse.models.analytics import AnalyticsEventRecord, AnalyticsSessionRecord
from sitepulse.schemas import AnalyticsEvent, AnalyticsSession, DeviceInfo, LocationInfo
from sitepulse.tracker.probe import classify_screen, detect_browser, detect_os
from sitepulse.tracker.tracker import (
    SCROLL_MILESTONES,
    compute_bounced,
    generate_event_id,
    generate_session_id,
)

PAGES = ["/", "/about", "/services", "/blog", "/blog/launch-notes", "/careers", "/contact"]
REFERRERS = ["", "", "", "https://www.google.com/", "https://www.linkedin.com/", "https://news.ycombinator.com/"]
OUTBOUND = ["https://github.com/", "https://www.linkedin.com/company/example"]

DEVICES = [
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        (1920, 1080),
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.1 Safari/605.1.15",
        (1440, 900),
    ),
    (
        "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
        (1366, 768),
    ),
    (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1",
        (390, 844),
    ),
    (
        "Mozilla/5.0 (iPad; CPU OS 17_1 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1",
        (820, 1180),
    ),
]


def simulate_visit(start: int, rng: random.Random):
    """One visit: a handful of page views with the interactions between them."""
    user_agent, (width, height) = rng.choice(DEVICES)
    device = DeviceInfo(
        type=classify_screen(width),
        os=detect_os(user_agent),
        browser=detect_browser(user_agent),
        screen_resolution=f"{width}x{height}",
    )
    referrer = rng.choice(REFERRERS)
    session_id = generate_session_id(start)

    events = []
    clock = start

    def emit(event_type, page, element=None, value=None):
        events.append(
            AnalyticsEvent(
                id=generate_event_id(clock),
                type=event_type,
                page=page,
                element=element,
                value=value,
                timestamp=clock,
                session_id=session_id,
                user_agent=user_agent,
                referrer=referrer,
                location=LocationInfo(country="France", city="Paris"),
                device=device,
            )
        )

    pages = [rng.choice(PAGES) for _ in range(rng.choices([1, 2, 3, 5], weights=[5, 3, 2, 1])[0])]
    for page in pages:
        emit("page_view", page)

        depth = rng.randint(0, 100)
        for milestone in SCROLL_MILESTONES:
            if depth >= milestone:
                clock += rng.randint(500, 5000)
                emit("scroll", page, element=f"{milestone}%", value=milestone)

        if rng.random() < 0.1:
            clock += rng.randint(1000, 10_000)
            href = rng.choice(OUTBOUND)
            emit("external_link", page, element=href, value=href)

        dwell = rng.randint(2_000, 120_000)
        clock += dwell
        emit("time_on_page", page, element=page, value=dwell)

    page_views = len(pages)
    end_time = clock
    session = AnalyticsSession(
        id=session_id,
        start_time=start,
        end_time=end_time,
        duration=end_time - start,
        page_views=page_views,
        events=len(events),
        referrer=referrer,
        landing_page=pages[0],
        exit_page=pages[-1],
        bounced=compute_bounced(page_views, end_time - start),
    )
    return events, session


def main():
    """Main seeding function."""
    parser = argparse.ArgumentParser(description="Seed demo analytics data")
    parser.add_argument("--days", type=int, default=30)
    parser.add_argument("--visits-per-day", type=int, default=40)
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args()

    print("Seeding demo analytics...")

    create_db_and_tables()
    rng = random.Random(args.seed)
    now = now_ms()

    with Session(engine) as session:
        existing = len(session.exec(select(AnalyticsSessionRecord.id)).all())
        if existing:
            print(f"  - Database already holds {existing} sessions; adding more")

        total_events = 0
        total_sessions = 0
        for day in range(args.days):
            day_start = now - (day + 1) * DAY_MS
            for _ in range(args.visits_per_day):
                start = day_start + rng.randint(0, DAY_MS - 1)
                events, summary = simulate_visit(start, rng)
                for event in events:
                    session.add(AnalyticsEventRecord.from_event(event))
                session.add(AnalyticsSessionRecord.from_session(summary))
                total_events += len(events)
                total_sessions += 1
            session.commit()

        print(f"    Created {total_sessions} sessions")
        print(f"    Created {total_events} events")

    print("Demo data seeding complete!")


if __name__ == "__main__":
    main()
