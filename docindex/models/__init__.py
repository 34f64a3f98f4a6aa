"""Import all models so SQLModel.metadata picks them up."""

from docindex.models.base import DocumentSource, as_utc, utcnow
from docindex.models.document import (
    Document,
    DocumentListItem,
    DocumentRead,
    DocumentSummary,
    preview_of,
    to_list_item,
    to_read,
    to_summary,
)

__all__ = [
    "Document",
    "DocumentListItem",
    "DocumentRead",
    "DocumentSource",
    "DocumentSummary",
    "as_utc",
    "preview_of",
    "to_list_item",
    "to_read",
    "to_summary",
    "utcnow",
]
