"""Database module for local SQLite storage."""

from .models import Base, ReadingEventRecord
from .schemas import ReadingEvent
from .sqlite import Database

__all__ = [
    "Base",
    "ReadingEventRecord",
    "ReadingEvent",
    "Database",
]
