"""Tests for the reading service."""

import asyncio
import time
from datetime import date, timezone
from pathlib import Path

import pytest

from docreader.readingtracker.config import Config
from docreader.readingtracker.db.sqlite import Database
from docreader.readingtracker.reading.progress import ReadingMetric
from docreader.readingtracker.service import ReadingService
from docreader.readingtracker.stats.bridge import AnalyticsBridge

UTC = timezone.utc
TODAY = date(2025, 1, 15)


def _config(db_path: Path, **overrides) -> Config:
    values = dict(
        db_path=db_path,
        min_session_ms=500,
        max_events_per_document=0,
        retention_days=0,
        offload_enabled=False,
        log_level="WARNING",
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def service(db: Database, temp_db_path, catalog, clock):
    """An initialized service with an in-process bridge and manual clock."""
    bridge = AnalyticsBridge(use_worker=False)
    reading_service = ReadingService(
        config=_config(temp_db_path), db=db, catalog=catalog, bridge=bridge, clock=clock
    )
    reading_service.init()
    yield reading_service
    reading_service.dispose()
    bridge.shutdown()


class TestLifecycle:
    """Tests for init and dispose."""

    def test_not_ready_until_init(self, db, temp_db_path):
        """Test reads before init report nothing read."""
        service = ReadingService(
            config=_config(temp_db_path), db=db, bridge=AnalyticsBridge(use_worker=False)
        )

        assert not service.is_ready
        assert asyncio.run(service.is_section_read("doc", "s1")) is False

        service.init()
        assert service.is_ready
        service.dispose()

    def test_context_manager(self, temp_db_path):
        """Test the service owns and closes its own database."""
        config = _config(temp_db_path)
        with ReadingService(config=config, bridge=AnalyticsBridge(use_worker=False)) as service:
            assert service.is_ready

        assert not service.is_ready

    def test_retention_on_init(self, db, temp_db_path, make_event):
        """Test readings older than the retention window are dropped at startup."""
        db.create_reading_event(make_event("s1"))
        service = ReadingService(
            config=_config(temp_db_path, retention_days=30),
            db=db,
            bridge=AnalyticsBridge(use_worker=False),
        )

        service.init()

        assert asyncio.run(service.read_sections("science/physics.md")) == frozenset()
        service.dispose()

    def test_dispose_ends_open_sessions(self, service, clock):
        """Test disposing records sessions still in progress."""
        tracker = service.open_tracker()
        tracker.start_reading("science/physics.md", "s1")
        clock.advance(seconds=30)

        service.dispose()

        assert service.db.count_reading_events() == 1


class TestReadState:
    """Tests for tracking through the service."""

    def test_tracked_reading_updates_progress(self, service, clock):
        """Test the completion scenario end to end."""
        tracker = service.open_tracker(background_writes=False)
        for section in ("s1", "s2"):
            tracker.start_reading("science/physics.md", section)
            clock.advance(seconds=10)
        tracker.end_reading()

        assert asyncio.run(service.is_section_read("science/physics.md", "s2"))
        assert asyncio.run(service.document_completion_percentage("science/physics.md", 4)) == 50
        assert asyncio.run(service.total_time_spent("science/physics.md")) == 20_000

    def test_short_sessions_discarded(self, service, clock):
        """Test sessions under the configured minimum are not recorded."""
        tracker = service.open_tracker(background_writes=False)
        tracker.start_reading("science/physics.md", "s1")
        clock.advance(ms=200)

        assert tracker.end_reading() is None
        assert asyncio.run(service.read_sections("science/physics.md")) == frozenset()

    def test_close_tracker(self, service, clock):
        """Test closing a tracker ends its session."""
        tracker = service.open_tracker()
        tracker.start_reading("history/rome.md", "r1")
        clock.advance(seconds=5)

        service.close_tracker(tracker)
        service.store.flush()

        assert asyncio.run(service.read_sections("history/rome.md")) == {"r1"}

    def test_most_read(self, service, make_event):
        """Test most-read through the service."""
        service.store.append(make_event("s1"))
        service.store.append(make_event("s2"))
        service.store.append(make_event("r1", document_path="history/rome.md"))

        result = asyncio.run(service.most_read())
        by_events = asyncio.run(service.most_read(metric=ReadingMetric.EVENTS))

        assert result.title == "Physics Primer"
        assert by_events.count == 2


class TestAnalytics:
    """Tests for analytics through the service."""

    @pytest.fixture
    def recorded(self, service, science_events, make_event):
        for event in science_events:
            service.store.append(event)
        service.store.append(
            make_event("r1", document_path="history/rome.md", category="history")
        )
        return service

    def test_category_stats(self, recorded):
        """Test category totals from stored events."""
        stats = asyncio.run(recorded.category_stats())

        assert stats["science"].total_time == 90_000
        assert stats["science"].average_session_length == 45_000.0
        assert stats["history"].session_count == 1

    def test_words_use_catalog_counts(self, recorded):
        """Test catalog word counts fill in events recorded without one."""
        assert asyncio.run(recorded.total_words_read()) == 700
        assert asyncio.run(recorded.total_words_read("history")) == 400
        assert asyncio.run(recorded.reading_speed("science")) == 200.0

    def test_daily_and_patterns(self, recorded):
        """Test daily stats, streak and activity buckets."""
        daily = asyncio.run(recorded.daily_reading_stats(7, today=TODAY, tz=UTC))
        streak = asyncio.run(recorded.reading_streak(today=TODAY, tz=UTC))
        hours = asyncio.run(recorded.reading_by_hour(tz=UTC))
        weekdays = asyncio.run(recorded.weekly_activity(tz=UTC))

        assert len(daily) == 7
        assert daily[-1].time_spent == 150_000
        assert streak.current_streak == 1
        assert hours[9].count == 3
        assert weekdays[2].count == 3

    def test_shared_section_ids_use_own_document_counts(self, service, make_event):
        """Test a section id used by two documents is credited the right word count."""
        service.catalog.register_sections("science/a.md", {"intro": 100})
        service.catalog.register_sections("history/b.md", {"intro": 900})
        service.store.append(make_event("intro", document_path="science/a.md"))

        assert asyncio.run(service.total_words_read()) == 100

    @pytest.mark.parametrize(
        "call", [lambda svc: svc.category_stats(), lambda svc: svc.most_read()]
    )
    def test_slow_reads_leave_event_loop_free(self, service, monkeypatch, call):
        """Test other coroutines keep running while the event log is read."""

        def slow_events(document_path=None, strict=False):
            time.sleep(0.3)
            return []

        monkeypatch.setattr(service.store, "all_events", slow_events)

        async def scenario():
            ticks = 0
            done = asyncio.Event()

            async def ticker():
                nonlocal ticks
                while not done.is_set():
                    ticks += 1
                    await asyncio.sleep(0.01)

            task = asyncio.create_task(ticker())
            await call(service)
            done.set()
            await task
            return ticks

        assert asyncio.run(scenario()) >= 5

    def test_time_spent(self, recorded):
        """Test time totals overall and for one day."""
        assert asyncio.run(recorded.total_time_spent()) == 150_000
        assert asyncio.run(recorded.time_spent_on_day(TODAY, tz=UTC)) == 150_000
