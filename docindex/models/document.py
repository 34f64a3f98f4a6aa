"""Document model — one indexed unit of text plus provenance metadata."""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Text, UniqueConstraint
from sqlmodel import Column, Field, SQLModel

from docindex.models.base import DocumentSource, as_utc, utcnow

PREVIEW_LENGTH = 200


class Document(SQLModel, table=True):
    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("source", "source_id", name="uq_documents_source"),)

    # Derived from (source, source_id), see services.identity.document_id
    id: str = Field(primary_key=True, max_length=64)
    # Plain text column holding a DocumentSource value
    source: str = Field(max_length=32, nullable=False, index=True)
    source_id: str = Field(sa_column=Column(Text, nullable=False))

    title: str = Field(default="", index=True)
    content: str = Field(sa_column=Column(Text, nullable=False))

    # Open key/value map from the origin (file size, timestamps, url, ...)
    metadata_json: str = Field(default="{}", sa_column=Column(Text, nullable=False, server_default="{}"))

    # Stored as UTC; SQLite keeps no offset, see models.base.as_utc
    last_synced: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )

    @property
    def meta(self) -> dict[str, Any]:
        return json.loads(self.metadata_json) if self.metadata_json else {}


# ── Pydantic schemas ─────────────────────────────────────────

class DocumentRead(SQLModel):
    id: str
    source: DocumentSource
    source_id: str
    title: str
    content: str
    metadata: dict[str, Any]
    last_synced: datetime


class DocumentSummary(SQLModel):
    id: str
    title: str
    source: DocumentSource
    preview: str
    metadata: dict[str, Any]


class DocumentListItem(SQLModel):
    id: str
    title: str
    source: DocumentSource
    last_synced: str


def preview_of(content: str, length: int = PREVIEW_LENGTH) -> str:
    """Leading slice of the content; not authoritative."""
    if len(content) <= length:
        return content
    return content[:length] + "..."


def to_read(doc: Document) -> DocumentRead:
    return DocumentRead(
        id=doc.id,
        source=doc.source,
        source_id=doc.source_id,
        title=doc.title,
        content=doc.content,
        metadata=doc.meta,
        last_synced=as_utc(doc.last_synced),
    )


def to_summary(doc: Document) -> DocumentSummary:
    return DocumentSummary(
        id=doc.id,
        title=doc.title,
        source=doc.source,
        preview=preview_of(doc.content),
        metadata=doc.meta,
    )


def to_list_item(doc: Document) -> DocumentListItem:
    # Files report their own modification time; fall back to the sync time
    updated_at = doc.meta.get("updated_at")
    return DocumentListItem(
        id=doc.id,
        title=doc.title,
        source=doc.source,
        last_synced=updated_at or as_utc(doc.last_synced).isoformat(),
    )
