"""
Test fixtures for sitepulse tests.

Provides database session fixtures, admin credentials, a controllable clock
and a factory for tracker events and sessions.
"""

import os

# Settings are read at import time, so the test environment goes first
os.environ.setdefault("SECRET_KEY", "sitepulse-test-secret-key-0123456789abcdef")
os.environ.setdefault("ENVIRONMENT", "test")

import itertools
from datetime import timedelta
from typing import Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.pool import StaticPool

from sitepulse.core.jwt import create_access_token
from sitepulse.db import get_session
from sitepulse.main import app
from sitepulse.models.analytics import AnalyticsEventRecord, AnalyticsSessionRecord
from sitepulse.schemas import AnalyticsEvent, AnalyticsSession, DeviceInfo, LocationInfo

# Use in-memory SQLite for tests (fast, isolated)
TEST_DATABASE_URL = "sqlite:///:memory:"

# 2023-11-14T22:13:20Z
NOW = 1_700_000_000_000


@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def test_session(test_engine) -> Generator[Session, None, None]:
    """Provide a test database session."""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(scope="function")
def client(test_engine):
    """Create test client with test database."""

    def override_get_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()


# ============================================
# Auth Fixtures
# ============================================


@pytest.fixture
def admin_token() -> str:
    """JWT carrying the admin role."""
    return create_access_token(subject="admin@example.org", expires_delta=timedelta(minutes=30))


@pytest.fixture
def viewer_token() -> str:
    """Valid JWT without the admin role."""
    return create_access_token(subject="viewer@example.org", role="viewer", expires_delta=timedelta(minutes=30))


@pytest.fixture
def auth_headers(admin_token: str) -> dict:
    return {"Authorization": f"Bearer {admin_token}"}


# ============================================
# Clock
# ============================================


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = NOW):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================
# Analytics Data Factory
# ============================================


class AnalyticsFactory:
    """
    Builds wire-model events and sessions with sensible defaults.
    Timestamps default to NOW so aggregation tests can pin the clock.
    """

    USER_AGENTS = {
        "chrome_windows": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        "safari_mac": (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/17.1 Safari/605.1.15"
        ),
        "safari_iphone": (
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1"
        ),
    }

    def __init__(self):
        self._ids = itertools.count(1)

    def event(
        self,
        event_type: str = "page_view",
        page: str = "/",
        timestamp: int = NOW,
        session_id: str = "session_a",
        element: Optional[str] = None,
        value=None,
        device: Optional[DeviceInfo] = None,
        user_agent: str = "",
    ) -> AnalyticsEvent:
        return AnalyticsEvent(
            id=f"event_{timestamp}_{next(self._ids):09d}",
            type=event_type,
            page=page,
            element=element,
            value=value,
            timestamp=timestamp,
            session_id=session_id,
            user_agent=user_agent,
            location=LocationInfo(country="France", city="Paris"),
            device=device if device is not None else DeviceInfo(os="Windows", browser="Chrome"),
        )

    def session(
        self,
        session_id: str = "session_a",
        start_time: int = NOW,
        end_time: Optional[int] = None,
        page_views: int = 1,
        events: int = 1,
        referrer: str = "",
        landing_page: str = "/",
        exit_page: Optional[str] = "/",
        bounced: bool = False,
    ) -> AnalyticsSession:
        return AnalyticsSession(
            id=session_id,
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time if end_time is not None else None,
            page_views=page_views,
            events=events,
            referrer=referrer,
            landing_page=landing_page,
            exit_page=exit_page,
            bounced=bounced,
        )

    def store(
        self,
        session: Session,
        events: Optional[List[AnalyticsEvent]] = None,
        sessions: Optional[List[AnalyticsSession]] = None,
    ) -> None:
        """Persist wire models as database rows."""
        for event in events or []:
            session.add(AnalyticsEventRecord.from_event(event))
        for summary in sessions or []:
            session.add(AnalyticsSessionRecord.from_session(summary))
        session.commit()


@pytest.fixture
def factory() -> AnalyticsFactory:
    """Provide an analytics data factory."""
    return AnalyticsFactory()
