"""SQLite database operations.

Handles database connection, session management, and reading event storage.
"""

import os
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base, ReadingEventRecord
from .schemas import ReadingEvent, from_epoch_ms, to_epoch_ms


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     READINGTRACKER_DB_PATH env var or default location.
        """
        if db_path is None:
            db_path = os.environ.get(
                "READINGTRACKER_DB_PATH",
                str(Path.home() / ".readingtracker" / "readings.db"),
            )

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Reading Event Operations
    # ========================================================================

    def create_reading_event(
        self, event: ReadingEvent, session: Optional[Session] = None
    ) -> ReadingEventRecord:
        """Append a reading event to the log."""

        def _create(s: Session) -> ReadingEventRecord:
            record = ReadingEventRecord(
                document_path=event.document_path,
                section_id=event.section_id,
                category=event.category,
                started_at_ms=to_epoch_ms(event.started_at),
                ended_at_ms=to_epoch_ms(event.ended_at),
                duration_ms=event.duration_ms,
                word_count=event.word_count,
            )
            s.add(record)
            s.flush()
            s.refresh(record)
            s.expunge(record)
            return record

        if session:
            return _create(session)
        with self.get_session() as s:
            return _create(s)

    def get_reading_events(
        self,
        document_path: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> list[ReadingEvent]:
        """Get reading events ordered by start time, then insertion order."""

        def _get(s: Session) -> list[ReadingEvent]:
            stmt = select(ReadingEventRecord)
            if document_path is not None:
                stmt = stmt.where(ReadingEventRecord.document_path == document_path)
            stmt = stmt.order_by(ReadingEventRecord.started_at_ms, ReadingEventRecord.id)
            return [record_to_event(r) for r in s.execute(stmt).scalars().all()]

        if session:
            return _get(session)
        with self.get_session() as s:
            return _get(s)

    def get_read_sections(self, session: Optional[Session] = None) -> dict[str, set[str]]:
        """Map every document path to the distinct section ids read in it."""

        def _get(s: Session) -> dict[str, set[str]]:
            stmt = select(
                ReadingEventRecord.document_path, ReadingEventRecord.section_id
            ).distinct()
            read: dict[str, set[str]] = {}
            for document_path, section_id in s.execute(stmt).all():
                read.setdefault(document_path, set()).add(section_id)
            return read

        if session:
            return _get(session)
        with self.get_session() as s:
            return _get(s)

    def count_reading_events(
        self, document_path: Optional[str] = None, session: Optional[Session] = None
    ) -> int:
        """Count events, optionally for one document."""

        def _count(s: Session) -> int:
            stmt = select(func.count(ReadingEventRecord.id))
            if document_path is not None:
                stmt = stmt.where(ReadingEventRecord.document_path == document_path)
            return s.execute(stmt).scalar() or 0

        if session:
            return _count(session)
        with self.get_session() as s:
            return _count(s)

    def delete_reading_events(
        self, document_path: str, session: Optional[Session] = None
    ) -> int:
        """Delete every event of a document. Returns rows removed."""

        def _delete(s: Session) -> int:
            stmt = delete(ReadingEventRecord).where(
                ReadingEventRecord.document_path == document_path
            )
            return s.execute(stmt).rowcount or 0

        if session:
            return _delete(session)
        with self.get_session() as s:
            return _delete(s)

    def prune_reading_events(
        self,
        before: Optional[datetime] = None,
        keep_latest_per_document: Optional[int] = None,
        document_path: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> int:
        """Apply retention to the event log.

        Args:
            before: Drop events that started before this instant
            keep_latest_per_document: Keep only the N most recent events of each document
            document_path: Restrict pruning to one document

        Returns:
            Number of events removed
        """

        def _prune(s: Session) -> int:
            removed = 0

            if before is not None:
                stmt = delete(ReadingEventRecord).where(
                    ReadingEventRecord.started_at_ms < to_epoch_ms(before)
                )
                if document_path is not None:
                    stmt = stmt.where(ReadingEventRecord.document_path == document_path)
                removed += s.execute(stmt).rowcount or 0

            if keep_latest_per_document is not None:
                if document_path is not None:
                    paths = [document_path]
                else:
                    paths = list(
                        s.execute(select(ReadingEventRecord.document_path).distinct()).scalars()
                    )
                for path in paths:
                    keep_ids = (
                        select(ReadingEventRecord.id)
                        .where(ReadingEventRecord.document_path == path)
                        .order_by(
                            ReadingEventRecord.started_at_ms.desc(),
                            ReadingEventRecord.id.desc(),
                        )
                        .limit(keep_latest_per_document)
                    )
                    stmt = delete(ReadingEventRecord).where(
                        ReadingEventRecord.document_path == path,
                        ReadingEventRecord.id.not_in(keep_ids.scalar_subquery()),
                    ).execution_options(synchronize_session=False)
                    removed += s.execute(stmt).rowcount or 0

            return removed

        if session:
            return _prune(session)
        with self.get_session() as s:
            return _prune(s)


def record_to_event(record: ReadingEventRecord) -> ReadingEvent:
    """Convert a stored row back into an immutable ReadingEvent."""
    return ReadingEvent(
        document_path=record.document_path,
        section_id=record.section_id,
        category=record.category,
        started_at=from_epoch_ms(record.started_at_ms),
        ended_at=from_epoch_ms(record.ended_at_ms),
        duration_ms=record.duration_ms,
        word_count=record.word_count,
    )
