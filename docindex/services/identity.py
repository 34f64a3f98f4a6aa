"""Document identity and normalisation shared by every write path."""

from __future__ import annotations

import hashlib
import json
from typing import Any

from docindex.core.exceptions import ExtractionError
from docindex.models.base import DocumentSource, utcnow
from docindex.models.document import Document

MAX_CONTENT_LENGTH = 100_000
TRUNCATION_MARKER = "\n\n... (content truncated)"


def document_id(source: DocumentSource | str, source_id: str) -> str:
    """Stable id for an origin location.

    Hashes the locator only, never the bytes: edits keep the id, renames
    produce a new one.
    """
    key = f"{DocumentSource(source).value}:{source_id}"
    return hashlib.md5(key.encode("utf-8")).hexdigest()


def truncate_content(text: str, max_length: int = MAX_CONTENT_LENGTH) -> str:
    if len(text) > max_length:
        return text[:max_length] + TRUNCATION_MARKER
    return text


def make_document(
    source: DocumentSource | str,
    source_id: str,
    title: str,
    content: str,
    metadata: dict[str, Any] | None = None,
) -> Document:
    """Build a normalised Document ready for the store.

    Raises:
        ExtractionError: If the content is blank or the metadata is not
            JSON-serialisable. Nothing is written in either case.
    """
    if not content or not content.strip():
        raise ExtractionError(source_id, "no text content extracted")

    try:
        metadata_json = json.dumps(metadata or {}, ensure_ascii=False, default=str)
    except (TypeError, ValueError) as exc:
        raise ExtractionError(source_id, f"metadata is not serialisable: {exc}") from exc

    source = DocumentSource(source)
    return Document(
        id=document_id(source, source_id),
        source=source.value,
        source_id=source_id,
        title=title.strip() or source_id,
        content=truncate_content(content),
        metadata_json=metadata_json,
        last_synced=utcnow(),
    )
