"""Reading session management.

Turns "the user is now looking at section X" transitions into discrete,
timestamped reading events. A tracker holds at most one active session; each
independent reading surface should own its own tracker.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from ..db.schemas import ReadingEvent, elapsed_ms, truncate_ms
from ..documents.catalog import DocumentCatalog
from ..errors import PersistenceError
from .store import ReadingRecordStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ReadingSession:
    """An active reading session."""

    document_path: str
    section_id: str
    started_at: datetime

    @property
    def key(self) -> tuple[str, str]:
        return (self.document_path, self.section_id)

    def duration_ms(self, now: datetime) -> int:
        """Elapsed milliseconds up to ``now``."""
        return elapsed_ms(self.started_at, now)


class SessionTracker:
    """State machine with two states: idle and reading one section.

    ``start_reading`` with the key already active is a no-op; with another
    key it first ends the current session. ``end_reading`` while idle is a
    no-op, so cleanup paths may call it freely.
    """

    def __init__(
        self,
        store: ReadingRecordStore,
        catalog: Optional[DocumentCatalog] = None,
        clock: Optional[Clock] = None,
        min_session_ms: int = 0,
        background_writes: bool = True,
    ):
        """Initialize session tracker.

        Args:
            store: Store that receives finished events
            catalog: Source of category and word counts for sections
            clock: Returns the current aware datetime (default: UTC now)
            min_session_ms: Sessions shorter than this are discarded
            background_writes: Persist on the store's writer thread instead of inline
        """
        self.store = store
        self.catalog = catalog or DocumentCatalog()
        self.clock = clock or utc_now
        self.min_session_ms = min_session_ms
        self.background_writes = background_writes
        self.last_error: Optional[PersistenceError] = None

        self._lock = threading.Lock()
        self._active_session: Optional[ReadingSession] = None

    @property
    def active_session(self) -> Optional[ReadingSession]:
        """Get active reading session."""
        return self._active_session

    def has_active_session(self) -> bool:
        """Check if there's an active reading session."""
        return self._active_session is not None

    def start_reading(self, document_path: str, section_id: str) -> ReadingSession:
        """Make ``section_id`` of ``document_path`` the active reading target.

        Returns:
            The active session (the existing one when the key is unchanged)

        Raises:
            ValueError: If the document path or section id is empty
        """
        if not document_path or not section_id:
            raise ValueError("document_path and section_id must not be empty")

        with self._lock:
            current = self._active_session
            if current is not None and current.key == (document_path, section_id):
                return current

            if current is not None:
                self._finish(current)

            self._active_session = ReadingSession(
                document_path=document_path,
                section_id=section_id,
                started_at=truncate_ms(self.clock()),
            )
            logger.debug("Started reading %s#%s", document_path, section_id)
            return self._active_session

    def end_reading(self) -> Optional[ReadingEvent]:
        """End the active session and hand its event to the store.

        The state change happens before persistence; a failed write is logged
        and kept in ``last_error`` but never raised.

        Returns:
            The emitted event, or None if idle or the session was too short
        """
        with self._lock:
            current = self._active_session
            if current is None:
                return None
            return self._finish(current)

    def cancel(self) -> bool:
        """Drop the active session without recording it.

        Returns:
            True if a session was cancelled, False if idle
        """
        with self._lock:
            if self._active_session is None:
                return False
            self._active_session = None
            return True

    def dispose(self) -> None:
        """Teardown hook: end any active session without waiting on storage."""
        self.end_reading()

    def __enter__(self) -> "SessionTracker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def _finish(self, session: ReadingSession) -> Optional[ReadingEvent]:
        # Caller holds self._lock
        self._active_session = None

        ended_at = max(truncate_ms(self.clock()), session.started_at)
        duration = session.duration_ms(ended_at)
        if duration < self.min_session_ms:
            logger.debug(
                "Discarding %dms session on %s#%s",
                duration,
                session.document_path,
                session.section_id,
            )
            return None

        event = ReadingEvent(
            document_path=session.document_path,
            section_id=session.section_id,
            category=self.catalog.category_for(session.document_path),
            started_at=session.started_at,
            ended_at=ended_at,
            duration_ms=duration,
            word_count=self.catalog.word_count_for(
                session.document_path, session.section_id
            ),
        )
        self._persist(event)
        return event

    def _persist(self, event: ReadingEvent) -> None:
        if self.background_writes:
            self.store.submit(event, on_error=self._record_failure)
            return
        try:
            self.store.append(event)
        except PersistenceError as e:
            self.last_error = e
            logger.warning(
                "Dropped reading of %s#%s: %s", event.document_path, event.section_id, e
            )

    def _record_failure(self, error: PersistenceError) -> None:
        self.last_error = error
