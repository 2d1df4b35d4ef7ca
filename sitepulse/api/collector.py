"""
Collector endpoints: receive tracker events and session summaries.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
import structlog

from sitepulse.core.clock import ms_to_datetime
from sitepulse.core.context import set_session_id
from sitepulse.db import get_session
from sitepulse.models.analytics import AnalyticsEventRecord, AnalyticsSessionRecord
from sitepulse.schemas import AnalyticsEvent, AnalyticsSession, SessionEnd
from sitepulse.tracker.probe import device_from_user_agent

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/events")
async def save_event(
    event: AnalyticsEvent,
    request: Request,
    session: Session = Depends(get_session),
):
    """Store one tracker event. Re-posting a known event id is a no-op."""
    set_session_id(event.session_id)

    if session.get(AnalyticsEventRecord, event.id) is not None:
        logger.info("Duplicate event ignored", event_id=event.id)
        return {"success": True}

    if event.device is None:
        user_agent = event.user_agent or request.headers.get("user-agent", "")
        if user_agent:
            event.device = device_from_user_agent(user_agent)

    session.add(AnalyticsEventRecord.from_event(event))
    session.commit()

    return {"success": True}


@router.post("/sessions")
async def upsert_session(
    summary: AnalyticsSession,
    session: Session = Depends(get_session),
):
    """
    Insert or update a session summary keyed by id.

    Repeated pushes during a live visit converge to the latest counts, even
    when they arrive out of order; start time, referrer and landing page
    keep their first value.
    """
    set_session_id(summary.id)

    record = session.get(AnalyticsSessionRecord, summary.id)
    if record is None:
        try:
            session.add(AnalyticsSessionRecord.from_session(summary))
            session.commit()
            return {"success": True}
        except IntegrityError:
            # Another request inserted the row first
            session.rollback()
            record = session.get(AnalyticsSessionRecord, summary.id)

    if not record.apply_summary(summary):
        logger.info("Stale session summary ignored", session_id=summary.id, events=summary.events)
        return {"success": True}

    session.add(record)
    session.commit()

    return {"success": True}


@router.post("/sessions/end")
async def end_session(
    end: SessionEnd,
    session: Session = Depends(get_session),
):
    """Stamp end time and duration. Unknown or already-ended sessions are left alone."""
    set_session_id(end.id)

    record = session.get(AnalyticsSessionRecord, end.id)
    if record is None:
        logger.info("End for unknown session ignored", session_id=end.id)
        return {"success": True}

    if record.end_time is not None:
        logger.info("Session already ended", session_id=end.id)
        return {"success": True}

    record.end_time = ms_to_datetime(end.end_time)
    record.duration = end.duration
    session.add(record)
    session.commit()

    return {"success": True}
