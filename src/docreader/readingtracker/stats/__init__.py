"""Reading statistics and analytics."""

from .analytics import (
    ActivityBucket,
    CategoryStats,
    DailyStats,
    ReadingStreak,
    category_stats,
    daily_reading_stats,
    reading_by_hour,
    reading_speed,
    reading_streak,
    time_spent_on_day,
    total_time_spent,
    total_words_read,
    weekly_activity,
)
from .bridge import (
    AnalyticsBridge,
    AnalyticsFunction,
    OffloadRequest,
    OffloadResponse,
    get_analytics_bridge,
    reset_analytics_bridge,
)

__all__ = [
    "ActivityBucket",
    "CategoryStats",
    "DailyStats",
    "ReadingStreak",
    "category_stats",
    "daily_reading_stats",
    "reading_by_hour",
    "reading_speed",
    "reading_streak",
    "time_spent_on_day",
    "total_time_spent",
    "total_words_read",
    "weekly_activity",
    "AnalyticsBridge",
    "AnalyticsFunction",
    "OffloadRequest",
    "OffloadResponse",
    "get_analytics_bridge",
    "reset_analytics_bridge",
]
