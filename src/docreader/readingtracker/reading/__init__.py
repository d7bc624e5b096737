"""Reading session tracking and progress management."""

from .progress import (
    NOTHING_READ,
    CompletionCalculator,
    MostRead,
    ReadingMetric,
    completion_ratio,
)
from .session import (
    ReadingSession,
    SessionTracker,
)
from .store import ReadingRecordStore

__all__ = [
    "ReadingSession",
    "SessionTracker",
    "ReadingRecordStore",
    "CompletionCalculator",
    "MostRead",
    "NOTHING_READ",
    "ReadingMetric",
    "completion_ratio",
]
