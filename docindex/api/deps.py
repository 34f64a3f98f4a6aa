"""FastAPI dependencies resolving the handles owned by the app lifespan."""

from typing import Annotated

from fastapi import Depends, Request

from docindex.core.config import Settings, get_settings
from docindex.services.search import SearchService
from docindex.services.store import IndexStore
from docindex.workers.crawl import Crawler


def get_store(request: Request) -> IndexStore:
    return request.app.state.store


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search


def get_crawler(request: Request) -> Crawler | None:
    return getattr(request.app.state, "crawler", None)


# Typed shorthand for use in route signatures
Store = Annotated[IndexStore, Depends(get_store)]
Search = Annotated[SearchService, Depends(get_search_service)]
CrawlerDep = Annotated[Crawler | None, Depends(get_crawler)]
AppSettings = Annotated[Settings, Depends(get_settings)]
