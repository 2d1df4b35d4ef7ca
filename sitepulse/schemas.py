"""
Wire models shared by the tracker, the collector API and the aggregation engine.

JSON payloads use camelCase keys so the collector stays drop-in compatible
with browser trackers and dashboards; Python code uses snake_case attributes.
"""

from typing import List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EventType = Literal[
    "page_view",
    "click",
    "form_submit",
    "download",
    "external_link",
    "scroll",
    "time_on_page",
]
DeviceType = Literal["desktop", "tablet", "mobile"]
EventValue = Union[int, float, str]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LocationInfo(CamelModel):
    country: Optional[str] = None
    city: Optional[str] = None
    ip: Optional[str] = None


class DeviceInfo(CamelModel):
    type: DeviceType = "desktop"
    os: str = "unknown"
    browser: str = "unknown"
    screen_resolution: str = "unknown"


class AnalyticsEvent(CamelModel):
    id: str
    type: EventType
    page: str = ""
    element: Optional[str] = None
    value: Optional[EventValue] = None
    duration: Optional[int] = None
    timestamp: int  # ms since epoch
    session_id: str
    user_id: Optional[str] = None
    user_agent: str = ""
    referrer: str = ""
    location: LocationInfo = Field(default_factory=LocationInfo)
    device: Optional[DeviceInfo] = None


class AnalyticsSession(CamelModel):
    id: str
    start_time: int
    end_time: Optional[int] = None
    duration: Optional[int] = None
    page_views: int = 0
    events: int = 0
    referrer: str = ""
    landing_page: str = ""
    exit_page: Optional[str] = None
    bounced: bool = False


class SessionEnd(CamelModel):
    id: str
    end_time: int
    duration: int


class AnalyticsData(CamelModel):
    events: List[AnalyticsEvent] = Field(default_factory=list)
    sessions: List[AnalyticsSession] = Field(default_factory=list)


# --- Aggregated statistics ---


class PageStat(CamelModel):
    page: str
    views: int
    percentage: float


class ReferrerStat(CamelModel):
    referrer: str
    visits: int
    percentage: float


class DeviceTypeStat(CamelModel):
    type: str
    count: int
    percentage: float


class BrowserStat(CamelModel):
    browser: str
    count: int
    percentage: float


class OperatingSystemStat(CamelModel):
    os: str
    count: int
    percentage: float


class HourlyTraffic(CamelModel):
    hour: int
    views: int


class DailyTraffic(CamelModel):
    date: str  # YYYY-MM-DD
    views: int
    visitors: int


class ExitPageStat(CamelModel):
    page: str
    exits: int
    percentage: float


class AnalyticsStats(CamelModel):
    total_page_views: int = 0
    unique_visitors: int = 0
    total_sessions: int = 0
    average_session_duration: float = 0
    bounce_rate: float = 0
    top_pages: List[PageStat] = Field(default_factory=list)
    top_referrers: List[ReferrerStat] = Field(default_factory=list)
    device_types: List[DeviceTypeStat] = Field(default_factory=list)
    browsers: List[BrowserStat] = Field(default_factory=list)
    operating_systems: List[OperatingSystemStat] = Field(default_factory=list)
    hourly_traffic: List[HourlyTraffic] = Field(default_factory=list)
    daily_traffic: List[DailyTraffic] = Field(default_factory=list)
    real_time_visitors: int = 0
    average_time_on_page: float = 0
    exit_pages: List[ExitPageStat] = Field(default_factory=list)


class RecentEvent(CamelModel):
    type: str
    page: str
    timestamp: int


class RealtimeStats(CamelModel):
    active_users: int = 0
    page_views: int = 0
    top_pages: List[PageStat] = Field(default_factory=list)
    recent_events: List[RecentEvent] = Field(default_factory=list)


class DashboardStats(CamelModel):
    monthly_views: int = 0
