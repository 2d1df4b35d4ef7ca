"""
Time helpers.

Events and sessions carry millisecond epoch timestamps on the wire; the
database stores timezone-aware UTC datetimes. Conversions happen only here.
"""

from datetime import datetime, timezone
import time

DAY_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    """Current wall-clock time in milliseconds since epoch."""
    return int(time.time() * 1000)


def ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def datetime_to_ms(dt: datetime) -> int:
    # SQLite hands DateTime(timezone=True) columns back without an offset
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))
