"""Tests for reading analytics calculations."""

from datetime import date, datetime, timedelta, timezone

import pytest

from docreader.readingtracker.stats.analytics import (
    CategoryStats,
    DailyStats,
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

UTC = timezone.utc
TODAY = date(2025, 1, 15)


def _at(day: date, hour: int = 9, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)


class TestTimeAndWords:
    """Tests for time and word totals."""

    def test_time_spent_on_day(self, science_events, make_event):
        """Test only events starting on the day are counted."""
        events = science_events + [make_event("s3", started_at=_at(date(2025, 1, 14)))]

        assert time_spent_on_day(TODAY, events, tz=UTC) == 90_000
        assert time_spent_on_day(date(2025, 1, 14), events, tz=UTC) == 60_000
        assert time_spent_on_day(date(2025, 1, 1), events, tz=UTC) == 0

    def test_day_follows_timezone(self, make_event):
        """Test calendar days are taken in the given zone."""
        late = make_event(started_at=datetime(2025, 1, 15, 23, 30, tzinfo=UTC))
        plus_two = timezone(timedelta(hours=2))

        assert time_spent_on_day(date(2025, 1, 15), [late], tz=UTC) == 60_000
        assert time_spent_on_day(date(2025, 1, 16), [late], tz=plus_two) == 60_000

    def test_total_time_spent(self, science_events):
        """Test summing durations."""
        assert total_time_spent(science_events) == 90_000
        assert total_time_spent([]) == 0

    def test_total_words_read(self, science_events):
        """Test summing recorded word counts."""
        assert total_words_read(science_events) == 300

    def test_word_count_overrides(self, make_event):
        """Test overrides fill in events recorded without a word count."""
        events = [make_event("s1", word_count=0), make_event("s2", word_count=40)]

        assert total_words_read(events) == 40
        assert total_words_read(events, {"science/physics.md": {"s1": 200, "s2": 999}}) == 240

    def test_overrides_are_per_document(self, make_event):
        """Test a section id shared by two documents takes its own document's count."""
        events = [make_event("intro", document_path="science/a.md")]
        counts = {"science/a.md": {"intro": 100}, "history/b.md": {"intro": 900}}

        assert total_words_read(events, counts) == 100
        assert total_words_read(events, {"history/b.md": {"intro": 900}}) == 0


class TestReadingSpeed:
    """Tests for words per minute."""

    def test_speed(self, science_events):
        """Test 300 words over 1.5 minutes is 200 wpm."""
        assert reading_speed(science_events) == 200.0

    def test_rounded_to_one_decimal(self, make_event):
        """Test the speed is rounded to one decimal place."""
        events = [make_event(duration_ms=180_000, word_count=100)]

        assert reading_speed(events) == 33.3

    def test_no_events(self):
        """Test speed without readings is zero."""
        assert reading_speed([]) == 0.0

    def test_zero_duration(self, make_event):
        """Test zero total time never divides by zero."""
        assert reading_speed([make_event(duration_ms=0, word_count=50)]) == 0.0


class TestDailyStats:
    """Tests for trailing daily stats."""

    @pytest.mark.parametrize("days", [1, 7, 30])
    def test_exact_length_when_empty(self, days):
        """Test the result always has one entry per requested day."""
        stats = daily_reading_stats([], days, today=TODAY, tz=UTC)

        assert len(stats) == days
        assert all(entry.time_spent == 0 and entry.words_read == 0 for entry in stats)

    def test_zero_days(self, science_events):
        """Test a non-positive window is empty."""
        assert daily_reading_stats(science_events, 0, today=TODAY, tz=UTC) == []
        assert daily_reading_stats(science_events, -3, today=TODAY, tz=UTC) == []

    def test_oldest_first(self):
        """Test entries run from the oldest day to today."""
        stats = daily_reading_stats([], 7, today=TODAY, tz=UTC)

        assert stats[0].day == date(2025, 1, 9)
        assert stats[-1].day == TODAY
        assert [entry.day for entry in stats] == sorted(entry.day for entry in stats)

    def test_sparse_events(self, make_event):
        """Test days without readings are zero-filled."""
        events = [
            make_event(started_at=_at(TODAY), duration_ms=1000, word_count=10),
            make_event(started_at=_at(date(2025, 1, 12)), duration_ms=2000, word_count=20),
            make_event(started_at=_at(date(2024, 12, 1)), duration_ms=5000, word_count=50),
        ]

        stats = daily_reading_stats(events, 7, today=TODAY, tz=UTC)

        assert len(stats) == 7
        by_day = {entry.day: entry for entry in stats}
        assert by_day[TODAY].time_spent == 1000
        assert by_day[date(2025, 1, 12)].words_read == 20
        assert sum(entry.time_spent for entry in stats) == 3000

    def test_dense_events(self, make_event):
        """Test several events per day accumulate."""
        events = [
            make_event(started_at=_at(TODAY - timedelta(days=offset), hour), word_count=5)
            for offset in range(10)
            for hour in (8, 20)
        ]

        stats = daily_reading_stats(events, 7, today=TODAY, tz=UTC)

        assert len(stats) == 7
        assert all(entry.time_spent == 120_000 for entry in stats)
        assert all(entry.words_read == 10 for entry in stats)

    def test_dict_round_trip(self):
        """Test DailyStats serializes its day as an ISO date."""
        entry = DailyStats(day=TODAY, time_spent=5, words_read=2)

        assert entry.to_dict()["day"] == "2025-01-15"
        assert DailyStats.from_dict(entry.to_dict()) == entry


class TestCategoryStats:
    """Tests for per-category totals."""

    def test_science_example(self, science_events):
        """Test totals and average for one category."""
        stats = category_stats(science_events)

        assert stats == {
            "science": CategoryStats(
                category="science",
                total_time=90_000,
                total_words=300,
                session_count=2,
                average_session_length=45_000.0,
            )
        }

    def test_multiple_categories(self, science_events, make_event):
        """Test categories are keyed in order of first appearance."""
        events = [make_event("r1", document_path="history/rome.md", category="history")]
        events += science_events

        stats = category_stats(events)

        assert list(stats) == ["history", "science"]
        assert stats["history"].session_count == 1
        assert stats["history"].average_session_length == 60_000.0

    def test_empty(self):
        """Test no events gives no categories."""
        assert category_stats([]) == {}


class TestReadingStreak:
    """Tests for streak calculation."""

    def _events_on(self, make_event, days):
        return [make_event(started_at=_at(day)) for day in days]

    def test_no_reading(self):
        """Test an empty history has no streak."""
        streak = reading_streak([], today=TODAY, tz=UTC)

        assert streak.current_streak == 0
        assert streak.longest_streak == 0

    def test_streak_through_today(self, make_event):
        """Test consecutive days ending today."""
        days = [TODAY - timedelta(days=n) for n in range(3)]

        streak = reading_streak(self._events_on(make_event, days), today=TODAY, tz=UTC)

        assert streak.current_streak == 3
        assert streak.longest_streak == 3

    def test_streak_through_yesterday(self, make_event):
        """Test a streak is still current before today's reading."""
        days = [TODAY - timedelta(days=n) for n in range(1, 3)]

        streak = reading_streak(self._events_on(make_event, days), today=TODAY, tz=UTC)

        assert streak.current_streak == 2

    def test_broken_streak(self, make_event):
        """Test an old run counts as longest but not current."""
        days = [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3), date(2025, 1, 10)]

        streak = reading_streak(self._events_on(make_event, days), today=TODAY, tz=UTC)

        assert streak.current_streak == 0
        assert streak.longest_streak == 3

    def test_same_day_counts_once(self, make_event):
        """Test several readings on one day are one streak day."""
        events = [make_event(started_at=_at(TODAY, hour)) for hour in (8, 12, 18)]

        streak = reading_streak(events, today=TODAY, tz=UTC)

        assert streak.current_streak == 1
        assert streak.longest_streak == 1


class TestActivityPatterns:
    """Tests for hour-of-day and weekday buckets."""

    def test_reading_by_hour(self, make_event):
        """Test 24 buckets keyed by start hour."""
        events = [
            make_event(started_at=_at(TODAY, 9)),
            make_event(started_at=_at(TODAY, 9, 30), duration_ms=1000),
            make_event(started_at=_at(TODAY, 22)),
        ]

        buckets = reading_by_hour(events, tz=UTC)

        assert len(buckets) == 24
        assert buckets[9].label == "09:00"
        assert buckets[9].count == 2
        assert buckets[9].time_spent == 61_000
        assert buckets[22].count == 1
        assert sum(bucket.count for bucket in buckets) == 3

    def test_weekly_activity(self, make_event):
        """Test 7 buckets, Monday first."""
        # 2025-01-15 is a Wednesday
        events = [make_event(started_at=_at(TODAY)), make_event(started_at=_at(date(2025, 1, 13)))]

        buckets = weekly_activity(events, tz=UTC)

        assert [bucket.label for bucket in buckets][:3] == ["Monday", "Tuesday", "Wednesday"]
        assert len(buckets) == 7
        assert buckets[0].count == 1
        assert buckets[2].count == 1
        assert buckets[6].count == 0

    def test_empty_patterns(self):
        """Test empty input still yields every bucket."""
        assert len(reading_by_hour([], tz=UTC)) == 24
        assert len(weekly_activity([], tz=UTC)) == 7
