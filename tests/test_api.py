"""Tests for the HTTP tool surface."""

import pytest
from httpx import AsyncClient

from docindex.core.exceptions import StoreError
from docindex.services.identity import make_document


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_reindex_then_search_and_get(client: AsyncClient, docs_root):
    (docs_root / "guide.md").write_text("# Setup Guide\n\ninstall the widget")
    (docs_root / "faq.txt").write_text("frequently asked widget questions")

    resp = await client.post("/v1/reindex")
    assert resp.status_code == 200
    assert resp.json() == {"local": 2}

    resp = await client.get("/v1/search", params={"query": "install widget"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 1
    hit = data["documents"][0]
    assert hit["title"] == "Setup Guide"
    assert hit["source"] == "local"

    resp = await client.get(f"/v1/documents/{hit['id']}")
    assert resp.status_code == 200
    assert "install the widget" in resp.json()["content"]


@pytest.mark.asyncio
async def test_list_and_stats(client: AsyncClient, store):
    await store.upsert(make_document("local", "/docs/a.md", title="A", content="alpha"))
    await store.upsert(make_document("feishu", "doc-1", title="B", content="beta"))

    resp = await client.get("/v1/documents", params={"source": "feishu"})
    assert resp.status_code == 200
    assert [d["title"] for d in resp.json()["documents"]] == ["B"]

    resp = await client.get("/v1/stats")
    assert resp.json() == {"stats": {"local": 1, "feishu": 1}}


@pytest.mark.asyncio
async def test_unknown_document_is_structured_404(client: AsyncClient):
    resp = await client.get("/v1/documents/nope")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_query_without_terms_is_422(client: AsyncClient):
    resp = await client.get("/v1/search", params={"query": "*** ()"})
    assert resp.status_code == 422
    assert resp.json()["error"] == "invalid_query"


@pytest.mark.asyncio
async def test_validation_errors_are_structured(client: AsyncClient):
    resp = await client.get("/v1/search", params={"query": "x", "limit": 1000})
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"

    resp = await client.get("/v1/search", params={"query": "x", "source": "dropbox"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_reindex_with_no_source_enabled_is_409(client: AsyncClient, settings):
    settings.local.enabled = False
    resp = await client.post("/v1/reindex")
    assert resp.status_code == 409
    assert resp.json()["error"] == "configuration_error"


@pytest.mark.asyncio
async def test_store_failure_is_503(client: AsyncClient, store, monkeypatch):
    async def broken(*args, **kwargs):
        raise StoreError("disk I/O error")

    monkeypatch.setattr(store, "stats", broken)
    resp = await client.get("/v1/stats")
    assert resp.status_code == 503
    assert resp.json() == {"error": "store_error", "detail": "disk I/O error"}


@pytest.mark.asyncio
async def test_lifespan_opens_and_releases_handles(settings, monkeypatch):
    from docindex import main as main_module

    settings.local.watch = False
    monkeypatch.setattr(main_module, "get_settings", lambda: settings)
    app = main_module.app

    async with app.router.lifespan_context(app):
        assert app.state.crawler is not None
        assert await app.state.search.stats() == {}

    for name in ("store", "search", "crawler"):
        delattr(app.state, name)
