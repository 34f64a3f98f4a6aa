"""Full reindex — local crawl plus every enabled remote connector."""

from __future__ import annotations

import logging

from docindex.core.config import Settings
from docindex.core.exceptions import ConfigurationError
from docindex.models.base import DocumentSource
from docindex.services.connectors import sync_connector
from docindex.services.feishu import FeishuClient, FeishuDocxConnector
from docindex.services.store import IndexStore
from docindex.workers.crawl import Crawler

logger = logging.getLogger(__name__)


async def reindex(
    store: IndexStore,
    settings: Settings,
    crawler: Crawler | None = None,
) -> dict[str, int]:
    """Run one full reindex and return the document count per source.

    Raises:
        ConfigurationError: If no source is enabled, or the local roots are
            all missing.
    """
    counts: dict[str, int] = {}

    if settings.local.enabled:
        crawler = crawler or Crawler(store, settings.local)
        counts[DocumentSource.LOCAL] = await crawler.index_all()

    if settings.feishu.enabled and settings.feishu.document_ids:
        async with FeishuClient(settings.feishu) as client:
            connector = FeishuDocxConnector(client, settings.feishu.document_ids)
            counts[DocumentSource.FEISHU] = await sync_connector(store, connector)

    if not counts:
        raise ConfigurationError("No document source is enabled")

    logger.info("Reindex finished: %s", counts)
    return counts
