"""Document metadata supplied by the document-parsing component."""

from .catalog import (
    DocumentCatalog,
    DocumentMetadata,
    category_from_path,
    title_from_path,
)

__all__ = [
    "DocumentCatalog",
    "DocumentMetadata",
    "category_from_path",
    "title_from_path",
]
