"""Tests for the full reindex and the batch entrypoint."""

from unittest.mock import patch

import pytest

from docindex.core.config import FeishuSettings, LocalSourceSettings, Settings
from docindex.core.exceptions import ConfigurationError
from docindex.workers import main as worker_main
from docindex.workers.sync import reindex


@pytest.mark.asyncio
async def test_reindex_local_only(store, settings, docs_root):
    (docs_root / "a.md").write_text("alpha")
    counts = await reindex(store, settings)
    assert counts == {"local": 1}


@pytest.mark.asyncio
async def test_reindex_without_sources_raises(store, tmp_path):
    settings = Settings(
        local=LocalSourceSettings(enabled=False),
        feishu=FeishuSettings(enabled=False),
        database_path=str(tmp_path / "x.db"),
    )
    with pytest.raises(ConfigurationError):
        await reindex(store, settings)


@pytest.mark.asyncio
async def test_worker_run_exit_codes(settings, docs_root, tmp_path):
    (docs_root / "a.md").write_text("alpha")
    with patch.object(worker_main, "get_settings", return_value=settings):
        assert await worker_main.run() == 0

    broken = Settings(
        local=LocalSourceSettings(watch_paths=[str(tmp_path / "absent")]),
        database_path=str(tmp_path / "other.db"),
    )
    with patch.object(worker_main, "get_settings", return_value=broken):
        assert await worker_main.run() == 1
