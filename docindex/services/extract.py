"""Text extraction from local files (TXT, MD, PDF, DOCX, PPTX)."""

from __future__ import annotations

import logging
import re
import warnings
from enum import StrEnum
from io import BytesIO
from pathlib import Path

from docindex.core.exceptions import ExtractionError
from docindex.services.slide_extract import extract_pptx

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100

_MARKDOWN_HEADING = re.compile(r"^#[ \t]+(.+)$", re.MULTILINE)


class DocumentFormat(StrEnum):
    TEXT = "text"
    MARKDOWN = "markdown"
    PDF = "pdf"
    DOCX = "docx"
    PPTX = "pptx"


_FORMATS_BY_EXTENSION = {
    ".txt": DocumentFormat.TEXT,
    ".md": DocumentFormat.MARKDOWN,
    ".markdown": DocumentFormat.MARKDOWN,
    ".pdf": DocumentFormat.PDF,
    ".docx": DocumentFormat.DOCX,
    ".pptx": DocumentFormat.PPTX,
}


def classify(filename: str) -> DocumentFormat:
    """Map a filename to its format. Unknown extensions are read as text."""
    ext = Path(filename).suffix.lower()
    return _FORMATS_BY_EXTENSION.get(ext, DocumentFormat.TEXT)


def extract_text(filename: str, content: bytes) -> str:
    """Extract plain text from file bytes based on the file extension.

    Args:
        filename: File name or path (used to determine the format).
        content: Raw file bytes.

    Returns:
        Extracted text as a string.

    Raises:
        ExtractionError: If the bytes cannot be decoded or parsed. The
            underlying exception is chained as ``__cause__``.
    """
    fmt = classify(filename)
    try:
        if fmt == DocumentFormat.PDF:
            return _extract_pdf(filename, content)
        if fmt == DocumentFormat.DOCX:
            return _extract_docx(content)
        if fmt == DocumentFormat.PPTX:
            return extract_pptx(content)
        return content.decode("utf-8")
    except ExtractionError:
        raise
    except Exception as exc:
        raise ExtractionError(filename, f"cannot extract {fmt} text: {exc}") from exc


def _extract_pdf(filename: str, content: bytes) -> str:
    from pypdf import PdfReader

    reader = PdfReader(BytesIO(content), strict=False)
    pages: list[str] = []
    for number, page in enumerate(reader.pages, start=1):
        # Broken font tables only cost us that page's text layer
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            try:
                pages.append(page.extract_text() or "")
            except Exception:
                logger.warning("Skipping unreadable text layer on page %d of %s", number, filename)
    return "\n".join(pages)


def _extract_docx(content: bytes) -> str:
    from docx import Document

    doc = Document(BytesIO(content))
    parts = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text for cell in row.cells if cell.text]
            if cells:
                parts.append("\t".join(cells))
    return "\n".join(parts)


def derive_title(filename: str, text: str) -> str:
    """Best-effort human label for a document.

    Markdown uses its first level-1 heading, presentations their first
    non-empty line when short enough; everything else the bare file name.
    """
    fallback = Path(filename).stem
    fmt = classify(filename)

    if fmt == DocumentFormat.MARKDOWN:
        match = _MARKDOWN_HEADING.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()

    if fmt == DocumentFormat.PPTX:
        first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
        if first_line and len(first_line) < MAX_TITLE_LENGTH:
            return first_line

    return fallback
