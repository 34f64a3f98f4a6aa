"""Error taxonomy shared by the crawler, watcher, store and API."""

from __future__ import annotations


class DocIndexError(Exception):
    """Base class for all docindex errors."""

    code = "docindex_error"


class ExtractionError(DocIndexError):
    """A single file could not be turned into text. Recoverable per file."""

    code = "extraction_error"

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class ConfigurationError(DocIndexError):
    """Missing or invalid roots, extensions or store path."""

    code = "configuration_error"


class StoreError(DocIndexError):
    """I/O or constraint failure inside the persistent index store."""

    code = "store_error"


class NotFoundError(DocIndexError):
    """Unknown document identifier."""

    code = "not_found"

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class InvalidQueryError(DocIndexError):
    """Search text that is blank or has no searchable terms."""

    code = "invalid_query"
