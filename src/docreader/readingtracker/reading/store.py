"""Reading record store.

Write-through wrapper around the event table that keeps an in-memory index of
which sections of each document have been read. The index is filled by
``init()``; until that completes, reads return empty results.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..db.schemas import ReadingEvent
from ..db.sqlite import Database
from ..errors import InitializationNotReady, PersistenceError

logger = logging.getLogger(__name__)

EventListener = Callable[[ReadingEvent], None]


class ReadingRecordStore:
    """Durable mapping of (document, section) to completed reading events."""

    def __init__(self, db: Database, max_events_per_document: int = 0):
        """Initialize the store.

        Args:
            db: Database instance the events are written through to
            max_events_per_document: Retention cap applied on append (0 = unlimited)
        """
        self.db = db
        self.max_events_per_document = max_events_per_document
        self.last_error: Optional[PersistenceError] = None

        self._lock = threading.RLock()
        self._ready = threading.Event()
        self._read_sections: dict[str, set[str]] = {}
        self._listeners: list[EventListener] = []
        self._writer: Optional[ThreadPoolExecutor] = None
        self._pending: set[Future] = set()
        self._disposed = False

    # ========================================================================
    # Lifecycle
    # ========================================================================

    @property
    def is_ready(self) -> bool:
        """True once ``init()`` has loaded the read-section index."""
        return self._ready.is_set()

    def init(self) -> None:
        """Create tables and load the read-section index.

        Raises:
            PersistenceError: If storage could not be read. Safe to call again.
        """
        try:
            with self._lock:
                self.db.create_tables()
                self._read_sections = self.db.get_read_sections()
                self._disposed = False
        except SQLAlchemyError as e:
            raise self._fail("init", f"Could not load reading records: {e}") from e

        self.last_error = None
        self._ready.set()
        logger.debug("Loaded read state for %d documents", len(self._read_sections))

    def dispose(self) -> None:
        """Wait for queued writes and stop the background writer."""
        self.flush()
        with self._lock:
            writer, self._writer = self._writer, None
            self._disposed = True
        if writer is not None:
            writer.shutdown(wait=True)
        self._ready.clear()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until ``init()`` completes in another thread."""
        return self._ready.wait(timeout)

    # ========================================================================
    # Writes
    # ========================================================================

    def append(self, event: ReadingEvent) -> ReadingEvent:
        """Persist an event. Duplicates are accepted.

        The retention cap runs once the event is recorded and announced. A
        failing cap is kept in ``last_error`` and logged, never raised, since
        the event itself is already durable.

        Raises:
            PersistenceError: If the write failed. The event is not recorded.
        """
        with self._lock:
            try:
                self.db.create_reading_event(event)
            except SQLAlchemyError as e:
                raise self._fail("write", f"Could not save reading event: {e}") from e
            self._read_sections.setdefault(event.document_path, set()).add(event.section_id)

        self._notify(event)

        if self.max_events_per_document > 0:
            with self._lock:
                try:
                    self._apply_cap(event.document_path)
                except SQLAlchemyError as e:
                    self._fail(
                        "retention", f"Could not trim events of {event.document_path}: {e}"
                    )
        return event

    def submit(
        self,
        event: ReadingEvent,
        on_error: Optional[Callable[[PersistenceError], None]] = None,
    ) -> "Future[ReadingEvent]":
        """Queue an event for a background write and return immediately.

        The returned future never raises into the caller at submit time; a
        failed write resolves the future with ``PersistenceError``. ``on_error``
        runs before the future resolves.
        """
        with self._lock:
            if self._disposed:
                error = self._fail("write", "Store is disposed; reading event dropped")
                if on_error is not None:
                    on_error(error)
                future: Future = Future()
                future.set_exception(error)
                return future
            if self._writer is None:
                self._writer = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="reading-store"
                )
            future = self._writer.submit(self._write, event, on_error)
            self._pending.add(future)

        future.add_done_callback(self._write_done)
        return future

    def _write(
        self, event: ReadingEvent, on_error: Optional[Callable[[PersistenceError], None]]
    ) -> ReadingEvent:
        try:
            return self.append(event)
        except PersistenceError as e:
            if on_error is not None:
                on_error(e)
            raise

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for every queued write to finish."""
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            try:
                future.result(timeout=timeout)
            except PersistenceError:
                # Already logged and recorded in last_error
                pass

    def _write_done(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        error = future.exception()
        if error is not None:
            logger.warning("Background write failed: %s", error)

    def _apply_cap(self, document_path: str) -> None:
        removed = self.db.prune_reading_events(
            keep_latest_per_document=self.max_events_per_document,
            document_path=document_path,
        )
        if removed:
            self._reload_document(document_path)

    def clear_document(self, document_path: str) -> int:
        """Erase every event of a document. Returns the number removed."""
        with self._lock:
            try:
                removed = self.db.delete_reading_events(document_path)
            except SQLAlchemyError as e:
                raise self._fail("write", f"Could not clear {document_path}: {e}") from e
            self._read_sections.pop(document_path, None)
        return removed

    def prune(
        self,
        before: Optional[datetime] = None,
        keep_latest_per_document: Optional[int] = None,
    ) -> int:
        """Apply retention and rebuild the read-section index."""
        with self._lock:
            try:
                removed = self.db.prune_reading_events(
                    before=before, keep_latest_per_document=keep_latest_per_document
                )
                if removed:
                    self._read_sections = self.db.get_read_sections()
            except SQLAlchemyError as e:
                raise self._fail("write", f"Could not prune reading events: {e}") from e
        if removed:
            logger.info("Pruned %d reading events", removed)
        return removed

    # ========================================================================
    # Reads
    # ========================================================================

    def load(self, document_path: str, strict: bool = False) -> frozenset[str]:
        """Distinct section ids with at least one event for a document.

        Args:
            document_path: Document to look up
            strict: Raise instead of returning an empty set before ``init()``

        Raises:
            InitializationNotReady: If strict and the store is not initialized
        """
        if not self._check_ready(strict):
            return frozenset()
        with self._lock:
            return frozenset(self._read_sections.get(document_path, ()))

    def is_section_read(self, document_path: str, section_id: str) -> bool:
        if not self._check_ready(False):
            return False
        with self._lock:
            return section_id in self._read_sections.get(document_path, ())

    def read_sections_by_document(self) -> dict[str, frozenset[str]]:
        """Snapshot of the whole read-section index."""
        if not self._check_ready(False):
            return {}
        with self._lock:
            return {path: frozenset(ids) for path, ids in self._read_sections.items()}

    def all_events(
        self, document_path: Optional[str] = None, strict: bool = False
    ) -> list[ReadingEvent]:
        """Events ordered by start time, ties broken by insertion order.

        Raises:
            PersistenceError: If storage could not be read
            InitializationNotReady: If strict and the store is not initialized
        """
        if not self._check_ready(strict):
            return []
        try:
            return self.db.get_reading_events(document_path)
        except SQLAlchemyError as e:
            raise self._fail("read", f"Could not read reading events: {e}") from e

    def events_for(self, document_path: str) -> list[ReadingEvent]:
        return self.all_events(document_path)

    def _check_ready(self, strict: bool) -> bool:
        if self.is_ready:
            return True
        if strict:
            raise InitializationNotReady("Reading record store has not been initialized")
        logger.debug("Store read before init(); returning empty result")
        return False

    def _reload_document(self, document_path: str) -> None:
        events = self.db.get_reading_events(document_path)
        sections = {event.section_id for event in events}
        if sections:
            self._read_sections[document_path] = sections
        else:
            self._read_sections.pop(document_path, None)

    def _fail(self, operation: str, message: str) -> PersistenceError:
        error = PersistenceError(message, operation=operation)
        self.last_error = error
        logger.error(message)
        return error

    # ========================================================================
    # Change notification
    # ========================================================================

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Call ``listener`` after every successful append.

        Returns:
            A function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: ReadingEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Reading event listener failed")
