"""Reading service: the surface the UI layer talks to.

Wires the store, session trackers, completion calculator and analytics bridge
together with an explicit lifecycle::

    service = ReadingService(config=get_config())
    service.init()
    tracker = service.open_tracker()
    tracker.start_reading("guides/intro.md", "setup")
    ...
    service.dispose()
"""

import asyncio
import logging
import threading
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from .config import Config, get_config
from .db.schemas import ReadingEvent
from .db.sqlite import Database
from .documents.catalog import DocumentCatalog
from .reading.progress import CompletionCalculator, MostRead, ReadingMetric
from .reading.session import Clock, SessionTracker
from .reading.store import ReadingRecordStore
from .stats.analytics import ActivityBucket, CategoryStats, DailyStats, ReadingStreak
from .stats.bridge import AnalyticsBridge, get_analytics_bridge

logger = logging.getLogger(__name__)


class ReadingService:
    """Reading tracking and analytics for one process."""

    def __init__(
        self,
        config: Optional[Config] = None,
        db: Optional[Database] = None,
        catalog: Optional[DocumentCatalog] = None,
        bridge: Optional[AnalyticsBridge] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the service. Nothing is read until ``init()``.

        Args:
            config: Configuration (default: from environment)
            db: Database instance (default: opened at config.db_path)
            catalog: Document metadata registry
            bridge: Analytics bridge (default: the process-wide one)
            clock: Clock handed to session trackers
        """
        self.config = config or get_config()
        self._owns_db = db is None
        self.db = db or Database(str(self.config.db_path))
        self.catalog = catalog or DocumentCatalog()
        self.store = ReadingRecordStore(
            self.db, max_events_per_document=self.config.max_events_per_document
        )
        self.calculator = CompletionCalculator(self.store, self.catalog)
        self.bridge = bridge or get_analytics_bridge(use_worker=self.config.offload_enabled)
        self.clock = clock

        self._trackers: list[SessionTracker] = []
        self._lock = threading.Lock()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    @property
    def is_ready(self) -> bool:
        return self.store.is_ready

    def init(self) -> None:
        """Load stored reading state. Raises PersistenceError on failure."""
        self.store.init()
        if self.config.retention_days > 0:
            cutoff = datetime.now(timezone.utc) - timedelta(days=self.config.retention_days)
            self.store.prune(before=cutoff)

    def dispose(self) -> None:
        """End every open session and flush pending writes."""
        with self._lock:
            trackers, self._trackers = self._trackers, []
        for tracker in trackers:
            tracker.dispose()
        self.store.dispose()
        if self._owns_db:
            self.db.dispose()

    def __enter__(self) -> "ReadingService":
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def open_tracker(self, background_writes: bool = True) -> SessionTracker:
        """Create a session tracker for one reading surface."""
        tracker = SessionTracker(
            self.store,
            catalog=self.catalog,
            clock=self.clock,
            min_session_ms=self.config.min_session_ms,
            background_writes=background_writes,
        )
        with self._lock:
            self._trackers.append(tracker)
        return tracker

    def close_tracker(self, tracker: SessionTracker) -> None:
        """End a surface's session and stop tracking it."""
        tracker.dispose()
        with self._lock:
            if tracker in self._trackers:
                self._trackers.remove(tracker)

    # ========================================================================
    # Read state
    # ========================================================================

    async def is_section_read(self, document_path: str, section_id: str) -> bool:
        return self.store.is_section_read(document_path, section_id)

    async def read_sections(self, document_path: str) -> frozenset[str]:
        return self.store.load(document_path)

    async def document_completion_percentage(
        self, document_path: str, total_sections: int
    ) -> float:
        return await asyncio.to_thread(
            self.calculator.completion_percentage, document_path, total_sections
        )

    async def most_read(
        self,
        document_paths: Optional[Iterable[str]] = None,
        metric: ReadingMetric = ReadingMetric.SECTIONS,
    ) -> MostRead:
        if document_paths is not None:
            document_paths = list(document_paths)
        return await asyncio.to_thread(self.calculator.most_read, document_paths, metric)

    # ========================================================================
    # Analytics
    # ========================================================================

    def _load_events(
        self, category: Optional[str] = None, document_path: Optional[str] = None
    ) -> list[ReadingEvent]:
        events = self.store.all_events(document_path)
        if category is not None:
            events = [event for event in events if event.category == category]
        return events

    async def _events(
        self, category: Optional[str] = None, document_path: Optional[str] = None
    ) -> list[ReadingEvent]:
        # Full-log scans run on a worker thread, off the event loop
        return await asyncio.to_thread(self._load_events, category, document_path)

    async def time_spent_on_day(self, day: date, tz: Optional[tzinfo] = None) -> int:
        return await self.bridge.time_spent_on_day(day, await self._events(), tz=tz)

    async def total_words_read(self, category: Optional[str] = None) -> int:
        return await self.bridge.total_words_read(
            await self._events(category), self.catalog.word_count_map()
        )

    async def reading_speed(self, category: Optional[str] = None) -> float:
        return await self.bridge.reading_speed(
            await self._events(category), self.catalog.word_count_map()
        )

    async def daily_reading_stats(
        self, days: int = 7, today: Optional[date] = None, tz: Optional[tzinfo] = None
    ) -> list[DailyStats]:
        events = await self._events()
        return await self.bridge.daily_reading_stats(events, days, today=today, tz=tz)

    async def category_stats(self) -> dict[str, CategoryStats]:
        return await self.bridge.category_stats(await self._events())

    async def total_time_spent(self, document_path: Optional[str] = None) -> int:
        events = await self._events(document_path=document_path)
        return await self.bridge.total_time_spent(events)

    async def reading_streak(
        self, today: Optional[date] = None, tz: Optional[tzinfo] = None
    ) -> ReadingStreak:
        return await self.bridge.reading_streak(await self._events(), today=today, tz=tz)

    async def reading_by_hour(self, tz: Optional[tzinfo] = None) -> list[ActivityBucket]:
        return await self.bridge.reading_by_hour(await self._events(), tz=tz)

    async def weekly_activity(self, tz: Optional[tzinfo] = None) -> list[ActivityBucket]:
        return await self.bridge.weekly_activity(await self._events(), tz=tz)
