"""
Admin analytics endpoints.
Protected by admin token verification.
"""

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from sitepulse.api import deps
from sitepulse.core.clock import now_ms
from sitepulse.db import get_session
from sitepulse.schemas import AnalyticsStats, DashboardStats, RealtimeStats
from sitepulse.services.analytics_log import count_page_views, fetch_window
from sitepulse.services.stats import compute_realtime, compute_stats

router = APIRouter()


@router.get("/analytics", response_model=AnalyticsStats)
def get_analytics(
    days: int = Query(default=30, ge=1, le=365),
    session: Session = Depends(get_session),
    admin: dict = Depends(deps.get_current_admin),
):
    """Statistics snapshot for the trailing `days` window."""
    now = now_ms()
    data = fetch_window(session, days, now=now)
    return compute_stats(data, days, now=now)


@router.get("/analytics/realtime", response_model=RealtimeStats)
def get_realtime(
    session: Session = Depends(get_session),
    admin: dict = Depends(deps.get_current_admin),
):
    """Open visits and latest activity over the last day."""
    now = now_ms()
    data = fetch_window(session, 1, now=now)
    return compute_realtime(data, now=now)


@router.get("/dashboard/stats", response_model=DashboardStats)
def get_dashboard_stats(
    session: Session = Depends(get_session),
    admin: dict = Depends(deps.get_current_admin),
):
    """Headline numbers for the admin home page."""
    return DashboardStats(monthly_views=count_page_views(session, days=30))
