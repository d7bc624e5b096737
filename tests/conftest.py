"""Pytest configuration and shared fixtures.

This module provides fixtures for testing the reading tracker, including
temporary databases, a controllable clock, and sample reading events.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest

from docreader.readingtracker.config import reset_config
from docreader.readingtracker.db.schemas import ReadingEvent
from docreader.readingtracker.db.sqlite import Database
from docreader.readingtracker.documents.catalog import DocumentCatalog
from docreader.readingtracker.reading.store import ReadingRecordStore
from docreader.readingtracker.stats.bridge import reset_analytics_bridge


# ============================================================================
# Clock
# ============================================================================


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int = 0, seconds: float = 0) -> datetime:
        self.now += timedelta(milliseconds=ms, seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> ManualClock:
    """A manual clock starting at 2025-01-15 09:00 UTC."""
    return ManualClock()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    reset_config()

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    database.dispose()


@pytest.fixture
def store(db: Database) -> Generator[ReadingRecordStore, None, None]:
    """An initialized reading record store."""
    record_store = ReadingRecordStore(db)
    record_store.init()
    yield record_store
    record_store.dispose()


@pytest.fixture
def catalog() -> DocumentCatalog:
    """Catalog with two documents in two categories."""
    documents = DocumentCatalog()
    documents.register_sections(
        "science/physics.md",
        {"s1": 200, "s2": 100, "s3": 300, "s4": 50},
        title="Physics Primer",
    )
    documents.register_sections("history/rome.md", {"r1": 400, "r2": 250})
    return documents


@pytest.fixture(autouse=True)
def _reset_bridge() -> Generator[None, None, None]:
    """Never leak the process-wide analytics bridge between tests."""
    yield
    reset_analytics_bridge()


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def make_event() -> Callable[..., ReadingEvent]:
    """Factory for reading events with sensible defaults."""

    def _make(
        section_id: str = "s1",
        document_path: str = "science/physics.md",
        category: str = "science",
        started_at: Optional[datetime] = None,
        duration_ms: int = 60_000,
        word_count: int = 0,
    ) -> ReadingEvent:
        if started_at is None:
            started_at = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        return ReadingEvent(
            document_path=document_path,
            section_id=section_id,
            category=category,
            started_at=started_at,
            ended_at=started_at + timedelta(milliseconds=duration_ms),
            duration_ms=duration_ms,
            word_count=word_count,
        )

    return _make


@pytest.fixture
def science_events(make_event) -> list[ReadingEvent]:
    """The two-event science example."""
    return [
        make_event("s1", duration_ms=60_000, word_count=200),
        make_event(
            "s2",
            started_at=datetime(2025, 1, 15, 9, 5, tzinfo=timezone.utc),
            duration_ms=30_000,
            word_count=100,
        ),
    ]
