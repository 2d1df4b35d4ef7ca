"""
Database access for the stored event/session log.
"""

from datetime import timedelta
from typing import Optional

from sqlmodel import Session, col, func, select

from sitepulse.core.clock import DAY_MS, ms_to_datetime, now_ms
from sitepulse.models.analytics import AnalyticsEventRecord, AnalyticsSessionRecord
from sitepulse.schemas import AnalyticsData


def fetch_window(session: Session, days: int, now: Optional[int] = None) -> AnalyticsData:
    """Events and sessions from the trailing ``days`` window, ordered by time."""
    if now is None:
        now = now_ms()
    cutoff = ms_to_datetime(now - days * DAY_MS)

    event_rows = session.exec(
        select(AnalyticsEventRecord)
        .where(AnalyticsEventRecord.timestamp >= cutoff)
        .order_by(col(AnalyticsEventRecord.timestamp))
    ).all()
    session_rows = session.exec(
        select(AnalyticsSessionRecord)
        .where(AnalyticsSessionRecord.start_time >= cutoff)
        .order_by(col(AnalyticsSessionRecord.start_time))
    ).all()

    return AnalyticsData(
        events=[row.to_event() for row in event_rows],
        sessions=[row.to_session() for row in session_rows],
    )


def count_page_views(session: Session, days: int = 30, now: Optional[int] = None) -> int:
    """Number of page views in the trailing ``days`` window."""
    if now is None:
        now = now_ms()
    cutoff = ms_to_datetime(now) - timedelta(days=days)

    count = session.exec(
        select(func.count())
        .select_from(AnalyticsEventRecord)
        .where(AnalyticsEventRecord.event_type == "page_view")
        .where(AnalyticsEventRecord.timestamp >= cutoff)
    ).one()
    return int(count or 0)
