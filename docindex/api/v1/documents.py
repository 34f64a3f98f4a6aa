"""Search / get / list / stats / reindex tools over the document index."""

from fastapi import APIRouter, Query
from pydantic import BaseModel

from docindex.api.deps import AppSettings, CrawlerDep, Search, Store
from docindex.core.exceptions import InvalidQueryError
from docindex.models.base import DocumentSource
from docindex.models.document import DocumentRead
from docindex.services.search import (
    DEFAULT_LIST_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    MAX_LIST_LIMIT,
    MAX_SEARCH_LIMIT,
    ListResponse,
    SearchResponse,
)
from docindex.workers.sync import reindex

router = APIRouter(tags=["documents"])


class StatsResponse(BaseModel):
    stats: dict[str, int]


@router.get("/search", response_model=SearchResponse)
async def search_documents(
    search: Search,
    query: str = Query(min_length=1),
    source: DocumentSource | None = None,
    limit: int = Query(DEFAULT_SEARCH_LIMIT, ge=1, le=MAX_SEARCH_LIMIT),
) -> SearchResponse:
    """Full-text search over titles and content, best match first."""
    try:
        return await search.search(query, source=source, limit=limit)
    except ValueError as exc:
        raise InvalidQueryError(str(exc)) from exc


@router.get("/documents", response_model=ListResponse)
async def list_documents(
    search: Search,
    source: DocumentSource | None = None,
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT),
) -> ListResponse:
    """Documents ordered by most recent sync."""
    return await search.list_documents(source=source, limit=limit)


@router.get("/documents/{document_id}", response_model=DocumentRead)
async def get_document(document_id: str, search: Search) -> DocumentRead:
    return await search.get_document(document_id)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(search: Search) -> StatsResponse:
    return StatsResponse(stats=await search.stats())


@router.post("/reindex", response_model=dict[str, int])
async def reindex_documents(
    store: Store,
    settings: AppSettings,
    crawler: CrawlerDep,
) -> dict[str, int]:
    """Run a full crawl (and remote sync) to completion; counts per source."""
    counts = await reindex(store, settings, crawler)
    return {str(source): count for source, count in counts.items()}
