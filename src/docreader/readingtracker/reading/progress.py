"""Reading progress tracking.

Completion percentages and "most read" lookups. Every call is a pure read of
the store's current snapshot, so callers may poll as often as they like.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..documents.catalog import DocumentCatalog
from .store import ReadingRecordStore


class ReadingMetric(str, Enum):
    """What "most read" counts."""

    SECTIONS = "sections"  # distinct sections read
    EVENTS = "events"  # reading events recorded


@dataclass(frozen=True)
class MostRead:
    """The most read document, or the empty result when nothing was read."""

    document_path: Optional[str]
    title: str
    count: int

    def __bool__(self) -> bool:
        return self.document_path is not None


NOTHING_READ = MostRead(document_path=None, title="None yet", count=0)


def completion_ratio(
    read_section_ids: Iterable[str],
    total_sections: int,
    section_ids: Optional[Iterable[str]] = None,
) -> float:
    """Percentage of sections read, unrounded, in [0, 100].

    Args:
        read_section_ids: Sections with at least one reading event
        total_sections: Number of sections in the document
        section_ids: Valid section ids; reads outside this set are ignored
    """
    if total_sections <= 0:
        return 0.0
    read = set(read_section_ids)
    if section_ids is not None:
        read &= set(section_ids)
    return min(100.0, 100.0 * len(read) / total_sections)


class CompletionCalculator:
    """Derives document completion from the reading record store."""

    def __init__(self, store: ReadingRecordStore, catalog: Optional[DocumentCatalog] = None):
        self.store = store
        self.catalog = catalog or DocumentCatalog()

    def completion_percentage(
        self,
        document_path: str,
        total_sections: int,
        section_ids: Optional[Iterable[str]] = None,
    ) -> float:
        """Share of a document's sections that have been read.

        Args:
            document_path: Document to measure
            total_sections: Section count of the document
            section_ids: Valid section ids (default: the catalog's, when registered)

        Returns:
            Unrounded percentage; 0 when total_sections is 0
        """
        if section_ids is None:
            document = self.catalog.get(document_path)
            if document is not None and document.section_ids:
                section_ids = document.section_ids
        return completion_ratio(self.store.load(document_path), total_sections, section_ids)

    def most_read(
        self,
        document_paths: Optional[Iterable[str]] = None,
        metric: ReadingMetric = ReadingMetric.SECTIONS,
    ) -> MostRead:
        """Find the document with the highest read count.

        Ties go to the document that comes first: in ``document_paths`` when
        given, otherwise in order of first reading.

        Args:
            document_paths: Candidate documents (default: every document read)
            metric: Count distinct sections or reading events

        Returns:
            MostRead, or NOTHING_READ when no candidate has been read
        """
        metric = ReadingMetric(metric)
        sections: dict[str, set[str]] = {}
        events: dict[str, int] = {}
        for event in self.store.all_events():
            sections.setdefault(event.document_path, set()).add(event.section_id)
            events[event.document_path] = events.get(event.document_path, 0) + 1

        order = list(document_paths) if document_paths is not None else list(sections)

        best = NOTHING_READ
        for path in order:
            if metric is ReadingMetric.SECTIONS:
                count = len(sections.get(path, ()))
            else:
                count = events.get(path, 0)
            if count > best.count:
                best = MostRead(
                    document_path=path, title=self.catalog.title_for(path), count=count
                )
        return best

    def total_time_spent(self, document_path: str) -> int:
        """Milliseconds spent on a document across all readings."""
        return sum(event.duration_ms for event in self.store.events_for(document_path))
