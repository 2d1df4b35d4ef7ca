"""
Analytics tables: raw tracker events and per-visit session summaries.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import Column, DateTime
from sqlalchemy.types import JSON
from sqlmodel import Field, SQLModel

from sitepulse.core.clock import datetime_to_ms, ms_to_datetime
from sitepulse.schemas import (
    AnalyticsEvent,
    AnalyticsSession,
    DeviceInfo,
    LocationInfo,
)


class AnalyticsEventRecord(SQLModel, table=True):
    """One captured interaction. Rows are never updated."""

    __tablename__ = "analytics_events"

    id: str = Field(primary_key=True)
    event_type: str = Field(index=True)  # page_view, click, scroll, ...
    page: Optional[str] = Field(default=None, index=True)
    element: Optional[str] = Field(default=None)
    value: Optional[Any] = Field(default=None, sa_column=Column(JSON))  # str or number
    duration: Optional[int] = Field(default=None)
    session_id: str = Field(index=True)
    user_id: Optional[str] = Field(default=None)
    user_agent: Optional[str] = Field(default=None)
    referrer: Optional[str] = Field(default=None)
    location: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    device: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    timestamp: datetime = Field(sa_type=DateTime(timezone=True), index=True)

    @classmethod
    def from_event(cls, event: AnalyticsEvent) -> "AnalyticsEventRecord":
        return cls(
            id=event.id,
            event_type=event.type,
            page=event.page,
            element=event.element,
            value=event.value,
            duration=event.duration,
            session_id=event.session_id,
            user_id=event.user_id,
            user_agent=event.user_agent[:500] if event.user_agent else None,
            referrer=event.referrer,
            location=event.location.model_dump(exclude_none=True),
            device=event.device.model_dump() if event.device else None,
            timestamp=ms_to_datetime(event.timestamp),
        )

    def to_event(self) -> AnalyticsEvent:
        device = None
        if self.device:
            try:
                device = DeviceInfo.model_validate(self.device)
            except ValidationError:
                device = None

        return AnalyticsEvent(
            id=self.id,
            type=self.event_type,
            page=self.page or "",
            element=self.element,
            value=self.value,
            duration=self.duration,
            timestamp=datetime_to_ms(self.timestamp),
            session_id=self.session_id,
            user_id=self.user_id,
            user_agent=self.user_agent or "",
            referrer=self.referrer or "",
            location=LocationInfo.model_validate(self.location or {}),
            device=device,
        )


class AnalyticsSessionRecord(SQLModel, table=True):
    """Running summary of one visit, upserted by the tracker."""

    __tablename__ = "analytics_sessions"

    id: str = Field(primary_key=True)
    start_time: datetime = Field(sa_type=DateTime(timezone=True), index=True)
    end_time: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    duration: Optional[int] = Field(default=None)  # ms, set once at session end
    page_views: int = Field(default=0)
    events: int = Field(default=0)
    referrer: Optional[str] = Field(default=None)
    landing_page: Optional[str] = Field(default=None)
    exit_page: Optional[str] = Field(default=None)
    bounced: bool = Field(default=False)

    @classmethod
    def from_session(cls, session: AnalyticsSession) -> "AnalyticsSessionRecord":
        return cls(
            id=session.id,
            start_time=ms_to_datetime(session.start_time),
            end_time=ms_to_datetime(session.end_time) if session.end_time is not None else None,
            duration=session.duration,
            page_views=session.page_views,
            events=session.events,
            referrer=session.referrer,
            landing_page=session.landing_page,
            exit_page=session.exit_page,
            bounced=session.bounced,
        )

    def apply_summary(self, session: AnalyticsSession) -> bool:
        """
        Merge a summary push. Start time, referrer and landing page stay as first seen.

        Counts only grow within a visit, so a push carrying fewer events than
        already stored arrived late and is ignored.
        """
        if session.events < self.events:
            return False
        self.page_views = session.page_views
        self.events = session.events
        self.exit_page = session.exit_page
        self.bounced = session.bounced
        return True

    def to_session(self) -> AnalyticsSession:
        return AnalyticsSession(
            id=self.id,
            start_time=datetime_to_ms(self.start_time),
            end_time=datetime_to_ms(self.end_time) if self.end_time else None,
            duration=self.duration,
            page_views=self.page_views,
            events=self.events,
            referrer=self.referrer or "",
            landing_page=self.landing_page or "",
            exit_page=self.exit_page,
            bounced=self.bounced,
        )
