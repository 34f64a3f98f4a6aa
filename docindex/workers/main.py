"""Batch reindex entrypoint: ``python -m docindex.workers.main``."""

import asyncio
import logging
import sys

from docindex.core.config import get_settings
from docindex.core.exceptions import DocIndexError
from docindex.services.store import open_store
from docindex.workers.sync import reindex

logger = logging.getLogger(__name__)


async def run() -> int:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        settings.validate_local()
        async with open_store(settings.database_path) as store:
            counts = await reindex(store, settings)
            stats = await store.stats()
    except DocIndexError as exc:
        logger.error("Reindex failed: %s", exc)
        return 1

    for source, count in counts.items():
        logger.info("Indexed %d %s documents this run", count, source)
    for source, count in stats.items():
        logger.info("  %s: %d documents in store", source, count)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run()))
