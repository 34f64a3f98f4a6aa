"""Remote-source connectors feed the same write path as the local crawler."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from docindex.core.exceptions import ExtractionError
from docindex.models.base import DocumentSource
from docindex.models.document import Document
from docindex.services.identity import make_document
from docindex.services.store import IndexStore

logger = logging.getLogger(__name__)


@dataclass
class RemoteRecord:
    """What a connector hands over; how it got it is its own business."""
    source_id: str
    title: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


class Connector(Protocol):
    source: DocumentSource

    def fetch(self) -> AsyncIterator[RemoteRecord]: ...


async def sync_connector(store: IndexStore, connector: Connector) -> int:
    """Pull every record from ``connector`` and commit them as one batch.

    Records that cannot be normalised (blank content, bad metadata) are
    skipped before the write.

    Returns:
        Number of documents written.
    """
    documents: list[Document] = []
    async for record in connector.fetch():
        try:
            documents.append(
                make_document(
                    connector.source,
                    record.source_id,
                    title=record.title,
                    content=record.content,
                    metadata=record.metadata,
                )
            )
        except ExtractionError as exc:
            logger.warning("Skipping %s record %s: %s", connector.source, record.source_id, exc)

    count = await store.upsert_batch(documents)
    logger.info("Synced %d %s documents", count, connector.source)
    return count
