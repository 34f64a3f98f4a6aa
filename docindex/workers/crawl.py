"""Crawl orchestrator — walk the configured roots and index every matching file."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from fnmatch import fnmatch
from pathlib import PurePath

from docindex.core.config import LocalSourceSettings
from docindex.core.exceptions import ConfigurationError, ExtractionError
from docindex.models.base import DocumentSource, utcnow
from docindex.models.document import Document
from docindex.services.extract import derive_title, extract_text
from docindex.services.identity import document_id, make_document
from docindex.services.store import IndexStore

logger = logging.getLogger(__name__)

MAX_WORKERS = 4  # concurrent extractions during a full crawl


@dataclass
class CrawlStats:
    scanned: int = 0
    indexed: int = 0
    failed: int = 0
    missing_roots: int = 0
    # Unreached records under a scanned root (renamed, removed or now excluded)
    removed: int = 0
    # Unreached records outside every scanned root; reported, never deleted
    stale: int = 0


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _pattern_matches(pattern: str, rel_path: str, abs_path: str, name: str) -> bool:
    if fnmatch(rel_path, pattern):
        return True
    if os.path.isabs(pattern) and fnmatch(abs_path, pattern):
        return True
    if pattern.startswith("**/"):
        # "**/" also matches zero directories
        tail = pattern[3:]
        return fnmatch(rel_path, tail) or fnmatch(name, tail)
    return False


class Crawler:
    """Indexes local files into the store.

    Also serves as the single-document write path for the live watcher, so a
    watched change is processed exactly like a crawled file.
    """

    def __init__(
        self,
        store: IndexStore,
        settings: LocalSourceSettings,
        max_workers: int = MAX_WORKERS,
    ) -> None:
        self.store = store
        self.settings = settings
        self.max_workers = max_workers
        self.extensions = settings.normalized_extensions()
        self.roots = [os.path.abspath(os.path.expanduser(p)) for p in settings.watch_paths]
        self.exclude_patterns = list(settings.exclude_patterns)
        self.last_stats: CrawlStats | None = None

    # ── Matching ─────────────────────────────────────────────

    def _root_of(self, path: str) -> str | None:
        for root in self.roots:
            if path == root or path.startswith(root.rstrip(os.sep) + os.sep):
                return root
        return None

    def is_excluded(self, path: str, root: str | None = None) -> bool:
        root = root or self._root_of(path)
        abs_posix = PurePath(path).as_posix()
        rel_posix = PurePath(os.path.relpath(path, root)).as_posix() if root else abs_posix
        name = os.path.basename(path)
        return any(
            _pattern_matches(pattern, rel_posix, abs_posix, name)
            for pattern in self.exclude_patterns
        )

    def _skip_directory(self, dir_name: str) -> bool:
        """Prune ``**/<name>/**`` and ``**/<glob>`` style patterns while walking."""
        for pattern in self.exclude_patterns:
            if pattern.startswith("**/") and pattern.endswith("/**"):
                if fnmatch(dir_name, pattern[3:-3]):
                    return True
            elif pattern.startswith("**/") and "/" not in pattern[3:]:
                if fnmatch(dir_name, pattern[3:]):
                    return True
        return False

    def has_indexed_extension(self, path: str) -> bool:
        return os.path.splitext(path)[1].lower() in self.extensions

    def should_process(self, path: str) -> bool:
        """True for a file under a configured root with a configured extension."""
        root = self._root_of(path)
        if root is None:
            return False
        return self.has_indexed_extension(path) and not self.is_excluded(path, root)

    def iter_files(self, root: str) -> Iterator[str]:
        """Yield absolute paths of matching files under ``root``."""
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if not self._skip_directory(d))
            for filename in sorted(filenames):
                path = os.path.join(dirpath, filename)
                if not self.has_indexed_extension(path):
                    continue
                if self.is_excluded(path, root):
                    continue
                yield path

    def existing_roots(self) -> list[str]:
        """Configured roots that exist; missing ones are skipped with a warning.

        Raises:
            ConfigurationError: If no roots are configured or none exist.
        """
        if not self.roots:
            raise ConfigurationError("No local watch_paths configured")
        existing = []
        for root in self.roots:
            if os.path.isdir(root):
                existing.append(root)
            else:
                logger.warning("Root does not exist, skipping: %s", root)
        if not existing:
            raise ConfigurationError(
                f"None of the configured roots exist: {', '.join(self.roots)}"
            )
        return existing

    # ── Extraction ───────────────────────────────────────────

    def build_document(self, path: str) -> Document:
        """Read, extract and normalise one file. Blocking; run in a thread.

        Raises:
            ExtractionError: If the file cannot be read or yields no text.
        """
        try:
            with open(path, "rb") as fh:
                raw = fh.read()
            st = os.stat(path)
        except OSError as exc:
            raise ExtractionError(path, f"cannot read file: {exc}") from exc

        text = extract_text(path, raw)
        created = getattr(st, "st_birthtime", st.st_ctime)
        return make_document(
            DocumentSource.LOCAL,
            path,
            title=derive_title(path, text),
            content=text,
            metadata={
                "file_path": path,
                "file_size": st.st_size,
                "created_at": _iso(created),
                "updated_at": _iso(st.st_mtime),
            },
        )

    async def index_file(self, path: str) -> Document:
        """Re-extract one file and upsert it (single-document crawl)."""
        doc = await asyncio.to_thread(self.build_document, path)
        await self.store.upsert(doc)
        logger.info("Indexed %s", path)
        return doc

    async def remove_file(self, path: str) -> bool:
        """Drop the record backed by ``path`` without touching the file."""
        removed = await self.store.delete(document_id(DocumentSource.LOCAL, path))
        if removed:
            logger.info("Removed %s from index", path)
        return removed

    # ── Full crawl ───────────────────────────────────────────

    async def index_all(self) -> int:
        """Crawl every root and commit all extracted documents as one batch.

        Every matched file is re-read and re-written on each run; there is no
        modification-time shortcut. Records under a scanned root that the run
        did not reach are removed afterwards, unless something rewrote them
        after the crawl began.

        Returns:
            Number of documents indexed.
        """
        stats = CrawlStats()
        started = utcnow()
        roots = self.existing_roots()
        stats.missing_roots = len(self.roots) - len(roots)

        paths: list[str] = []
        seen: set[str] = set()
        for root in roots:
            logger.info("Scanning %s", root)
            found = 0
            for path in self.iter_files(root):
                if path in seen:
                    continue
                seen.add(path)
                paths.append(path)
                found += 1
            logger.info("Found %d matching files under %s", found, root)
        stats.scanned = len(paths)

        semaphore = asyncio.Semaphore(self.max_workers)

        async def _build(path: str) -> Document | None:
            async with semaphore:
                try:
                    return await asyncio.to_thread(self.build_document, path)
                except ExtractionError as exc:
                    logger.warning("Skipping %s: %s", path, exc)
                except Exception:
                    logger.exception("Unexpected failure extracting %s", path)
            stats.failed += 1
            return None

        results = await asyncio.gather(*(_build(p) for p in paths))
        documents = [doc for doc in results if doc is not None]

        logger.info("Saving %d documents to the index", len(documents))
        stats.indexed = await self.store.upsert_batch(documents)

        await self._reconcile(roots, paths, started, stats)

        self.last_stats = stats
        logger.info(
            "Crawl done. Scanned: %d, indexed: %d, failed: %d, removed: %d",
            stats.scanned,
            stats.indexed,
            stats.failed,
            stats.removed,
        )
        return stats.indexed

    async def _reconcile(
        self,
        roots: list[str],
        paths: list[str],
        started: datetime,
        stats: CrawlStats,
    ) -> None:
        """Drop records this crawl should have reached but did not.

        A record synced after ``started`` came from a concurrent watcher
        event and is kept.

        Only records under a root that was actually scanned are removed. Ones
        whose root is missing or no longer configured are counted as stale
        and kept.
        """
        reached = {document_id(DocumentSource.LOCAL, p) for p in paths}
        unreached = {
            doc_id: source_id
            for doc_id, source_id in (await self.store.source_ids(DocumentSource.LOCAL)).items()
            if doc_id not in reached
        }
        removable = [
            doc_id
            for doc_id, source_id in unreached.items()
            if any(source_id.startswith(root.rstrip(os.sep) + os.sep) for root in roots)
        ]
        stats.removed = await self.store.delete_batch(removable, synced_before=started)
        stats.stale = len(unreached) - len(removable)
        if stats.stale:
            logger.warning(
                "%d indexed local documents lie outside the scanned roots and are kept",
                stats.stale,
            )
