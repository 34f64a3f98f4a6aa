"""Shared test fixtures — on-disk SQLite index per test + test client."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from docindex.core.config import LocalSourceSettings, Settings, get_settings
from docindex.main import app
from docindex.services.search import SearchService
from docindex.services.store import IndexStore, open_store
from docindex.workers.crawl import Crawler


@pytest.fixture
async def store(tmp_path: Path) -> AsyncGenerator[IndexStore, None]:
    async with open_store(tmp_path / "index" / "knowledge.db") as s:
        yield s


@pytest.fixture
def docs_root(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    root.mkdir()
    return root


@pytest.fixture
def local_settings(docs_root: Path) -> LocalSourceSettings:
    return LocalSourceSettings(watch_paths=[str(docs_root)], debounce_seconds=0.05)


@pytest.fixture
def settings(tmp_path: Path, local_settings: LocalSourceSettings) -> Settings:
    return Settings(
        local=local_settings,
        database_path=str(tmp_path / "index" / "knowledge.db"),
    )


@pytest.fixture
def crawler(store: IndexStore, local_settings: LocalSourceSettings) -> Crawler:
    return Crawler(store, local_settings)


@pytest.fixture
async def client(store, crawler, settings) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client wired to the per-test store."""
    app.state.store = store
    app.state.search = SearchService(store)
    app.state.crawler = crawler
    app.dependency_overrides[get_settings] = lambda: settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    for name in ("store", "search", "crawler"):
        if hasattr(app.state, name):
            delattr(app.state, name)
