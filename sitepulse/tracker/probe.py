"""
Device and location probing.

Device classification is synchronous and derived from the page environment;
location is a best-effort async lookup that never raises.
"""

from typing import Optional

from user_agents import parse as parse_ua

from sitepulse.core.errors import error_boundary
from sitepulse.schemas import DeviceInfo, LocationInfo
from sitepulse.tracker.environment import PageEnvironment

MOBILE_MAX_WIDTH = 768
TABLET_MAX_WIDTH = 1024

# First match wins, so order matters (e.g. Chrome UAs also contain "Safari")
OS_MARKERS = [
    ("Windows", "Windows"),
    ("Mac", "macOS"),
    ("Linux", "Linux"),
    ("Android", "Android"),
    ("iOS", "iOS"),
]
BROWSER_MARKERS = [
    ("Chrome", "Chrome"),
    ("Firefox", "Firefox"),
    ("Safari", "Safari"),
    ("Edge", "Edge"),
]

UNKNOWN = "unknown"

PLACEHOLDER_LOCATION = LocationInfo(country="France", city="Paris", ip="192.168.1.1")


def classify_screen(width: int) -> str:
    """Bucket a screen width into mobile/tablet/desktop."""
    if width < MOBILE_MAX_WIDTH:
        return "mobile"
    if width < TABLET_MAX_WIDTH:
        return "tablet"
    return "desktop"


def _first_marker(user_agent: str, markers) -> str:
    for marker, name in markers:
        if marker in user_agent:
            return name
    return UNKNOWN


def detect_os(user_agent: str) -> str:
    return _first_marker(user_agent or "", OS_MARKERS)


def detect_browser(user_agent: str) -> str:
    return _first_marker(user_agent or "", BROWSER_MARKERS)


def get_device_info(environment: Optional[PageEnvironment]) -> DeviceInfo:
    """Describe the device from the current window state."""
    if environment is None:
        return DeviceInfo()

    return DeviceInfo(
        type=classify_screen(environment.screen_width),
        os=detect_os(environment.user_agent),
        browser=detect_browser(environment.user_agent),
        screen_resolution=environment.screen_resolution,
    )


def device_type_from_user_agent(user_agent_string: str) -> str:
    """Classify a raw User-Agent header when no screen size is known."""
    try:
        ua = parse_ua(user_agent_string)
    except Exception:
        return "desktop"
    if ua.is_tablet:
        return "tablet"
    if ua.is_mobile:
        return "mobile"
    return "desktop"


def device_from_user_agent(user_agent_string: str) -> DeviceInfo:
    """Server-side device descriptor for events posted without one."""
    return DeviceInfo(
        type=device_type_from_user_agent(user_agent_string),
        os=detect_os(user_agent_string),
        browser=detect_browser(user_agent_string),
    )


async def get_location_info() -> LocationInfo:
    """
    Coarse visitor location.

    Placeholder until a geolocation service is wired in; any replacement
    must keep returning an empty LocationInfo on failure instead of raising.
    """
    with error_boundary("get_location_info"):
        return PLACEHOLDER_LOCATION.model_copy()
    return LocationInfo()
