from .analytics import AnalyticsEventRecord, AnalyticsSessionRecord

__all__ = [
    "AnalyticsEventRecord",
    "AnalyticsSessionRecord",
]
