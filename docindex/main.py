"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from docindex.api.v1 import v1_router
from docindex.core.config import get_settings
from docindex.core.exceptions import (
    ConfigurationError,
    DocIndexError,
    ExtractionError,
    InvalidQueryError,
    NotFoundError,
    StoreError,
)
from docindex.services.search import SearchService
from docindex.services.store import open_store
from docindex.workers.crawl import Crawler
from docindex.workers.watch import LiveWatcher

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[DocIndexError], int] = {
    NotFoundError: 404,
    ConfigurationError: 409,
    InvalidQueryError: 422,
    ExtractionError: 422,
    StoreError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    async with open_store(settings.database_path) as store:
        app.state.store = store
        app.state.search = SearchService(store)
        app.state.crawler = None
        watcher: LiveWatcher | None = None

        if settings.local.enabled and settings.local.watch_paths:
            crawler = Crawler(store, settings.local)
            app.state.crawler = crawler
            if settings.local.watch:
                watcher = LiveWatcher(crawler, quiet_period=settings.local.debounce_seconds)
                try:
                    await watcher.start()
                except ConfigurationError as exc:
                    logger.warning("File watcher not started: %s", exc)
                    watcher = None

        try:
            yield
        finally:
            if watcher is not None:
                await watcher.stop()


app = FastAPI(
    title="docindex",
    version="0.1.0",
    description="Document crawling and incremental full-text index",
    lifespan=lifespan,
)


# ── Error payloads ───────────────────────────────────────────

@app.exception_handler(DocIndexError)
async def docindex_error_handler(_request: Request, exc: DocIndexError) -> JSONResponse:
    status_code = next(
        (ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUS),
        500,
    )
    if status_code >= 500:
        logger.error("Request failed: %s", exc)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": str(exc)},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "validation_error", "detail": jsonable_encoder(exc.errors())},
    )


# ── API routes ───────────────────────────────────────────────
app.include_router(v1_router)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    return {"status": "ok"}
