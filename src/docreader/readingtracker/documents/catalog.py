"""Registry of document metadata.

The tracker never parses documents itself. Whatever loads and splits them
registers ``(document_path, section_id, category, word_count)`` facts here,
and the session tracker looks them up when it turns a session into an event.
"""

import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..db.schemas import DEFAULT_CATEGORY


def category_from_path(document_path: str) -> str:
    """Category is the first segment of the document path."""
    parts = document_path.strip("/").split("/")
    if len(parts) > 1 and parts[0]:
        return parts[0]
    return DEFAULT_CATEGORY


def title_from_path(document_path: str) -> str:
    """Title is the last path segment without its markdown extension."""
    name = document_path.rstrip("/").split("/")[-1]
    if name.endswith(".md"):
        name = name[: -len(".md")]
    return name


@dataclass
class DocumentMetadata:
    """Facts about one document and its sections."""

    path: str
    title: str = ""
    category: str = ""
    section_word_counts: dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        if not self.title:
            self.title = title_from_path(self.path)
        if not self.category:
            self.category = category_from_path(self.path)

    @property
    def total_sections(self) -> int:
        return len(self.section_word_counts)

    @property
    def section_ids(self) -> list[str]:
        return list(self.section_word_counts)

    def word_count(self, section_id: str) -> int:
        return self.section_word_counts.get(section_id, 0)


class DocumentCatalog:
    """Thread-safe lookup of document metadata by path."""

    def __init__(self, documents: Optional[Iterable[DocumentMetadata]] = None):
        self._lock = threading.Lock()
        self._documents: dict[str, DocumentMetadata] = {}
        for document in documents or []:
            self.register(document)

    def register(self, document: DocumentMetadata) -> DocumentMetadata:
        """Add or replace a document's metadata."""
        with self._lock:
            self._documents[document.path] = document
        return document

    def register_sections(
        self,
        document_path: str,
        sections: dict[str, int],
        title: str = "",
        category: str = "",
    ) -> DocumentMetadata:
        """Register a document from a ``{section_id: word_count}`` mapping."""
        return self.register(
            DocumentMetadata(
                path=document_path,
                title=title,
                category=category,
                section_word_counts=dict(sections),
            )
        )

    def get(self, document_path: str) -> Optional[DocumentMetadata]:
        with self._lock:
            return self._documents.get(document_path)

    def category_for(self, document_path: str) -> str:
        document = self.get(document_path)
        return document.category if document else category_from_path(document_path)

    def title_for(self, document_path: str) -> str:
        document = self.get(document_path)
        return document.title if document else title_from_path(document_path)

    def word_count_for(self, document_path: str, section_id: str) -> int:
        document = self.get(document_path)
        return document.word_count(section_id) if document else 0

    def word_count_map(self) -> dict[str, dict[str, int]]:
        """Word counts as ``{document_path: {section_id: word_count}}``.

        Section ids are only unique within their document, so counts stay
        nested under the path.
        """
        with self._lock:
            return {
                path: dict(document.section_word_counts)
                for path, document in self._documents.items()
            }

    def paths(self) -> list[str]:
        """Registered document paths in registration order."""
        with self._lock:
            return list(self._documents)

    def __contains__(self, document_path: str) -> bool:
        with self._lock:
            return document_path in self._documents

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)
