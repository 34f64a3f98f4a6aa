"""Read path behind the search / get / list / stats tools."""

from __future__ import annotations

from pydantic import BaseModel

from docindex.core.exceptions import NotFoundError
from docindex.models.base import DocumentSource
from docindex.models.document import (
    DocumentListItem,
    DocumentRead,
    DocumentSummary,
    to_list_item,
    to_read,
    to_summary,
)
from docindex.services.store import DEFAULT_LIST_LIMIT, DEFAULT_SEARCH_LIMIT, IndexStore

MAX_SEARCH_LIMIT = 100
MAX_LIST_LIMIT = 500


class SearchResponse(BaseModel):
    total: int
    documents: list[DocumentSummary]


class ListResponse(BaseModel):
    total: int
    documents: list[DocumentListItem]


def _clamp(value: int | None, default: int, maximum: int) -> int:
    if value is None:
        return default
    return max(1, min(value, maximum))


class SearchService:
    def __init__(self, store: IndexStore) -> None:
        self.store = store

    async def search(
        self,
        query: str,
        source: DocumentSource | None = None,
        limit: int | None = None,
    ) -> SearchResponse:
        """Ranked matches with content previews.

        Raises:
            ValueError: If ``query`` is blank or has no searchable terms.
        """
        if not query or not query.strip():
            raise ValueError("query must be a non-empty string")
        docs = await self.store.search(
            query,
            source=source,
            limit=_clamp(limit, DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT),
        )
        return SearchResponse(total=len(docs), documents=[to_summary(d) for d in docs])

    async def list_documents(
        self,
        source: DocumentSource | None = None,
        limit: int | None = None,
    ) -> ListResponse:
        docs = await self.store.list_all(
            source=source,
            limit=_clamp(limit, DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT),
        )
        return ListResponse(total=len(docs), documents=[to_list_item(d) for d in docs])

    async def get_document(self, document_id: str) -> DocumentRead:
        doc = await self.store.get(document_id)
        if doc is None:
            raise NotFoundError(document_id)
        return to_read(doc)

    async def stats(self) -> dict[str, int]:
        return await self.store.stats()
