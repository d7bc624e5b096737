"""Pydantic schemas for data validation.

A ReadingEvent is the only persisted record: one completed observation of a
user reading one section of one document.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_CATEGORY = "uncategorized"


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to integer milliseconds since the epoch."""
    return (moment - datetime(1970, 1, 1, tzinfo=timezone.utc)) // timedelta(milliseconds=1)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds back to an aware UTC datetime."""
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=value)


def truncate_ms(moment: datetime) -> datetime:
    """Drop sub-millisecond precision, the resolution events are stored at."""
    return moment.replace(microsecond=moment.microsecond - moment.microsecond % 1000)


def elapsed_ms(started_at: datetime, ended_at: datetime) -> int:
    """Whole milliseconds between two instants, never negative."""
    return max(0, (ended_at - started_at) // timedelta(milliseconds=1))


class ReadingEvent(BaseModel):
    """One completed reading of a section. Immutable once created."""

    document_path: str = Field(..., min_length=1)
    section_id: str = Field(..., min_length=1)
    category: str = DEFAULT_CATEGORY
    started_at: datetime
    ended_at: datetime
    duration_ms: int = Field(..., ge=0)
    word_count: int = Field(0, ge=0)

    model_config = {"frozen": True}

    @field_validator("started_at", "ended_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Naive timestamps are taken to be UTC; precision is whole milliseconds."""
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return truncate_ms(v)

    @field_validator("category")
    @classmethod
    def default_category(cls, v: str) -> str:
        return v or DEFAULT_CATEGORY

    @model_validator(mode="after")
    def check_span(self) -> "ReadingEvent":
        if self.ended_at < self.started_at:
            raise ValueError("ended_at must not be before started_at")
        if self.duration_ms != elapsed_ms(self.started_at, self.ended_at):
            raise ValueError("duration_ms must equal the time between started_at and ended_at")
        return self

    @classmethod
    def from_span(
        cls,
        document_path: str,
        section_id: str,
        started_at: datetime,
        ended_at: datetime,
        category: Optional[str] = None,
        word_count: int = 0,
    ) -> "ReadingEvent":
        """Build an event, deriving duration_ms from the two timestamps."""
        started_at, ended_at = truncate_ms(started_at), truncate_ms(ended_at)
        return cls(
            document_path=document_path,
            section_id=section_id,
            category=category or DEFAULT_CATEGORY,
            started_at=started_at,
            ended_at=ended_at,
            duration_ms=elapsed_ms(started_at, ended_at),
            word_count=word_count,
        )

    def local_started_at(self, tz=None) -> datetime:
        """Start time converted to ``tz`` (the process's local zone by default)."""
        return self.started_at.astimezone(tz)
