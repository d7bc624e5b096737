"""Reading analytics and statistics calculations.

Pure functions over a sequence of reading events. Nothing here touches the
database or the clock unless the caller leaves ``today`` unset, so the same
events always produce the same statistics:
- Time spent per calendar day and trailing daily stats
- Words read and reading speed
- Per-category totals
- Streaks and time-of-day / day-of-week patterns

Calendar days are taken in ``tz`` (the process's local zone when None).
"""

from calendar import day_name
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Mapping, Optional, Sequence

from ..db.schemas import ReadingEvent

MS_PER_MINUTE = 60_000

# {document_path: {section_id: word_count}}
WordCounts = Mapping[str, Mapping[str, int]]


@dataclass
class DailyStats:
    """Reading totals for one calendar day."""

    day: date
    time_spent: int = 0  # milliseconds
    words_read: int = 0

    def to_dict(self) -> dict:
        return {"day": self.day.isoformat(), "time_spent": self.time_spent, "words_read": self.words_read}

    @classmethod
    def from_dict(cls, data: dict) -> "DailyStats":
        return cls(
            day=date.fromisoformat(data["day"]),
            time_spent=data["time_spent"],
            words_read=data["words_read"],
        )


@dataclass
class CategoryStats:
    """Reading totals for one category."""

    category: str
    total_time: int = 0  # milliseconds
    total_words: int = 0
    session_count: int = 0
    average_session_length: float = 0.0  # milliseconds

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CategoryStats":
        return cls(**data)


@dataclass
class ReadingStreak:
    """Consecutive reading days."""

    current_streak: int = 0
    longest_streak: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ReadingStreak":
        return cls(**data)


@dataclass
class ActivityBucket:
    """Readings falling in one hour of the day or one weekday."""

    label: str
    index: int
    count: int = 0
    time_spent: int = 0  # milliseconds

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ActivityBucket":
        return cls(**data)


def local_day(event: ReadingEvent, tz: Optional[tzinfo] = None) -> date:
    """Calendar day on which an event started."""
    return event.local_started_at(tz).date()


def current_date(tz: Optional[tzinfo] = None) -> date:
    """Today in ``tz`` (the local zone when None)."""
    return datetime.now(tz).date() if tz is not None else date.today()


def time_spent_on_day(
    day: date, events: Iterable[ReadingEvent], tz: Optional[tzinfo] = None
) -> int:
    """Milliseconds read on ``day``."""
    return sum(event.duration_ms for event in events if local_day(event, tz) == day)


def total_time_spent(events: Iterable[ReadingEvent]) -> int:
    """Milliseconds read across all events."""
    return sum(event.duration_ms for event in events)


def event_words(
    event: ReadingEvent, word_count_overrides: Optional[WordCounts] = None
) -> int:
    """Words attributed to an event, falling back to the override map."""
    if event.word_count:
        return event.word_count
    if word_count_overrides:
        return word_count_overrides.get(event.document_path, {}).get(event.section_id, 0)
    return 0


def total_words_read(
    events: Iterable[ReadingEvent],
    word_count_overrides: Optional[WordCounts] = None,
) -> int:
    """Sum of words read.

    Args:
        events: Reading events
        word_count_overrides: ``{document_path: {section_id: words}}`` used
            for events whose own word count is zero

    Returns:
        Total words
    """
    return sum(event_words(event, word_count_overrides) for event in events)


def reading_speed(
    events: Sequence[ReadingEvent],
    word_count_overrides: Optional[WordCounts] = None,
) -> float:
    """Words per minute, 0.0 when no time was spent."""
    total_ms = total_time_spent(events)
    if total_ms <= 0:
        return 0.0
    minutes = total_ms / MS_PER_MINUTE
    return round(total_words_read(events, word_count_overrides) / minutes, 1)


def daily_reading_stats(
    events: Iterable[ReadingEvent],
    days: int = 7,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> list[DailyStats]:
    """Per-day totals for the trailing ``days`` days ending at ``today``.

    Always returns exactly ``days`` entries (none when ``days`` <= 0),
    ordered oldest first, with days lacking events zero-filled.
    """
    if days <= 0:
        return []
    if today is None:
        today = current_date(tz)

    start = today - timedelta(days=days - 1)
    stats = {
        start + timedelta(days=offset): DailyStats(day=start + timedelta(days=offset))
        for offset in range(days)
    }

    for event in events:
        entry = stats.get(local_day(event, tz))
        if entry is None:
            continue
        entry.time_spent += event.duration_ms
        entry.words_read += event.word_count

    return list(stats.values())


def category_stats(events: Iterable[ReadingEvent]) -> dict[str, CategoryStats]:
    """Totals per category, keyed in order of first appearance."""
    by_category: dict[str, CategoryStats] = {}
    for event in events:
        stats = by_category.get(event.category)
        if stats is None:
            stats = by_category[event.category] = CategoryStats(category=event.category)
        stats.total_time += event.duration_ms
        stats.total_words += event.word_count
        stats.session_count += 1

    for stats in by_category.values():
        if stats.session_count > 0:
            stats.average_session_length = stats.total_time / stats.session_count

    return by_category


def reading_streak(
    events: Iterable[ReadingEvent],
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> ReadingStreak:
    """Current and longest runs of consecutive reading days.

    The current streak counts back from today, or from yesterday when
    nothing has been read yet today.
    """
    reading_days = sorted({local_day(event, tz) for event in events})
    if not reading_days:
        return ReadingStreak()
    if today is None:
        today = current_date(tz)

    # Longest run
    longest_streak = 1
    current_run = 1
    for previous, current in zip(reading_days, reading_days[1:]):
        if current - previous == timedelta(days=1):
            current_run += 1
            longest_streak = max(longest_streak, current_run)
        else:
            current_run = 1

    # Run ending today or yesterday
    day_set = set(reading_days)
    check_date = today if today in day_set else today - timedelta(days=1)
    current_streak = 0
    while check_date in day_set:
        current_streak += 1
        check_date -= timedelta(days=1)

    return ReadingStreak(current_streak=current_streak, longest_streak=longest_streak)


def reading_by_hour(
    events: Iterable[ReadingEvent], tz: Optional[tzinfo] = None
) -> list[ActivityBucket]:
    """24 buckets, one per hour of the day, by session start time."""
    buckets = [ActivityBucket(label=f"{hour:02d}:00", index=hour) for hour in range(24)]
    for event in events:
        bucket = buckets[event.local_started_at(tz).hour]
        bucket.count += 1
        bucket.time_spent += event.duration_ms
    return buckets


def weekly_activity(
    events: Iterable[ReadingEvent], tz: Optional[tzinfo] = None
) -> list[ActivityBucket]:
    """7 buckets, Monday first, by the weekday a session started on."""
    buckets = [ActivityBucket(label=day_name[index], index=index) for index in range(7)]
    for event in events:
        bucket = buckets[local_day(event, tz).weekday()]
        bucket.count += 1
        bucket.time_spent += event.duration_ms
    return buckets
