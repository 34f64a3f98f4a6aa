"""Persistent index store — document table plus its FTS5 projection."""

from __future__ import annotations

import asyncio
import logging
import re
import weakref
from collections.abc import AsyncGenerator, Iterable
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime
from pathlib import Path

from sqlalchemy import delete, func, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from docindex.core.database import create_engine_for_path, init_db
from docindex.core.exceptions import StoreError
from docindex.models.base import DocumentSource
from docindex.models.document import Document

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 20
DEFAULT_LIST_LIMIT = 50

_TOKEN = re.compile(r"\w+", re.UNICODE)

_SEARCH_SQL = """
SELECT d.id, d.source, d.source_id, d.title, d.content,
       d.metadata_json, d.last_synced
FROM documents AS d
JOIN documents_fts ON d.rowid = documents_fts.rowid
WHERE documents_fts MATCH :query {source_clause}
ORDER BY rank
LIMIT :limit
"""


def build_match_query(query: str) -> str:
    """Turn free text into an FTS5 query: every token quoted, all required.

    Raises:
        ValueError: If the text contains no searchable tokens.
    """
    tokens = _TOKEN.findall(query)
    if not tokens:
        raise ValueError("query contains no searchable terms")
    return " ".join(f'"{token}"' for token in tokens)


class IndexStore:
    """Single owner of the SQLite handle used by crawler, watcher and search.

    Writes go through ``upsert`` / ``upsert_batch`` only; the FTS5 table is
    maintained by triggers inside the same transaction.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        # Same-id writers queue up; different ids proceed independently
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # ── Writes ───────────────────────────────────────────────

    def _lock_for(self, document_id: str) -> asyncio.Lock:
        lock = self._locks.get(document_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[document_id] = lock
        return lock

    @staticmethod
    def _upsert_statement(doc: Document):
        stmt = sqlite_insert(Document.__table__).values(  # type: ignore[attr-defined]
            id=doc.id,
            source=doc.source,
            source_id=doc.source_id,
            title=doc.title,
            content=doc.content,
            metadata_json=doc.metadata_json,
            last_synced=doc.last_synced,
        )
        return stmt.on_conflict_do_update(
            index_elements=["source", "source_id"],
            set_={
                "title": stmt.excluded.title,
                "content": stmt.excluded.content,
                "metadata_json": stmt.excluded.metadata_json,
                "last_synced": stmt.excluded.last_synced,
            },
        )

    async def upsert(self, doc: Document) -> None:
        """Insert or replace the document stored for (source, source_id)."""
        async with self._lock_for(doc.id):
            try:
                async with self._session_factory() as session, session.begin():
                    await session.execute(self._upsert_statement(doc))
            except SQLAlchemyError as exc:
                raise StoreError(f"Failed to upsert document {doc.id}: {exc}") from exc

    async def upsert_batch(self, docs: Iterable[Document]) -> int:
        """Write all documents in one transaction; nothing is kept on failure.

        Returns:
            Number of documents written.
        """
        # Last occurrence of an id wins, same as sequential upserts would
        unique: dict[str, Document] = {}
        for doc in docs:
            unique[doc.id] = doc
        if not unique:
            return 0

        async with AsyncExitStack() as stack:
            # Sorted acquisition so two overlapping batches cannot deadlock
            for document_id in sorted(unique):
                await stack.enter_async_context(self._lock_for(document_id))
            try:
                async with self._session_factory() as session, session.begin():
                    for doc in unique.values():
                        await session.execute(self._upsert_statement(doc))
            except SQLAlchemyError as exc:
                raise StoreError(f"Batch upsert of {len(unique)} documents failed: {exc}") from exc

        logger.debug("Committed batch of %d documents", len(unique))
        return len(unique)

    async def delete(self, document_id: str) -> bool:
        """Remove a document. Unknown ids are a no-op.

        Returns:
            True if a row was removed.
        """
        async with self._lock_for(document_id):
            try:
                async with self._session_factory() as session, session.begin():
                    result = await session.execute(
                        delete(Document).where(Document.id == document_id)
                    )
            except SQLAlchemyError as exc:
                raise StoreError(f"Failed to delete document {document_id}: {exc}") from exc
        return bool(result.rowcount)

    async def delete_batch(
        self,
        document_ids: Iterable[str],
        synced_before: datetime | None = None,
    ) -> int:
        """Remove several documents in one transaction.

        With ``synced_before``, rows written at or after that instant are kept,
        so a concurrent writer's fresh record survives a stale id list.

        Returns:
            Number of rows removed.
        """
        ids = sorted(set(document_ids))
        if not ids:
            return 0
        async with AsyncExitStack() as stack:
            for document_id in ids:
                await stack.enter_async_context(self._lock_for(document_id))
            try:
                async with self._session_factory() as session, session.begin():
                    stmt = delete(Document).where(Document.id.in_(ids))  # type: ignore[attr-defined]
                    if synced_before is not None:
                        stmt = stmt.where(Document.last_synced < synced_before)  # type: ignore[operator]
                    result = await session.execute(stmt)
            except SQLAlchemyError as exc:
                raise StoreError(f"Batch delete of {len(ids)} documents failed: {exc}") from exc
        return result.rowcount or 0

    # ── Reads ────────────────────────────────────────────────

    async def get(self, document_id: str) -> Document | None:
        try:
            async with self._session_factory() as session:
                return await session.get(Document, document_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read document {document_id}: {exc}") from exc

    async def search(
        self,
        query: str,
        source: DocumentSource | str | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[Document]:
        """Ranked full-text search over title and content, best match first."""
        params: dict = {"query": build_match_query(query), "limit": limit}
        source_clause = ""
        if source:
            source_clause = "AND d.source = :source"
            params["source"] = DocumentSource(source).value

        stmt = select(Document).from_statement(
            text(_SEARCH_SQL.format(source_clause=source_clause))
            .bindparams(**params)
            .columns(*Document.__table__.columns)  # type: ignore[attr-defined]
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StoreError(f"Search failed: {exc}") from exc

    async def list_all(
        self,
        source: DocumentSource | str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[Document]:
        """Documents ordered by most recent sync first."""
        stmt = select(Document)
        if source:
            stmt = stmt.where(Document.source == DocumentSource(source).value)
        stmt = stmt.order_by(Document.last_synced.desc()).limit(limit)  # type: ignore[attr-defined]
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StoreError(f"Listing documents failed: {exc}") from exc

    async def stats(self) -> dict[str, int]:
        """Document count per source."""
        stmt = select(Document.source, func.count()).group_by(Document.source)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return {source: count for source, count in result.all()}
        except SQLAlchemyError as exc:
            raise StoreError(f"Reading stats failed: {exc}") from exc

    async def source_ids(self, source: DocumentSource | str) -> dict[str, str]:
        """Map of id -> source_id for every document of one source."""
        stmt = select(Document.id, Document.source_id).where(
            Document.source == DocumentSource(source).value
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return {doc_id: source_id for doc_id, source_id in result.all()}
        except SQLAlchemyError as exc:
            raise StoreError(f"Reading ids failed: {exc}") from exc

    async def fts_row(self, document_id: str) -> tuple[str, str] | None:
        """(title, content) as held by the full-text projection."""
        stmt = text(
            "SELECT title, content FROM documents_fts WHERE rowid = "
            "(SELECT rowid FROM documents WHERE id = :id)"
        ).bindparams(id=document_id)
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).first()
        except SQLAlchemyError as exc:
            raise StoreError(f"Reading full-text row failed: {exc}") from exc
        return (row[0], row[1]) if row else None

    async def close(self) -> None:
        await self.engine.dispose()


@asynccontextmanager
async def open_store(db_path: str | Path) -> AsyncGenerator[IndexStore, None]:
    """Open (creating if missing) the index at ``db_path`` and close it on exit."""
    engine = create_engine_for_path(db_path)
    store = IndexStore(engine)
    try:
        await init_db(engine)
        logger.info("Index store ready at %s", db_path)
        yield store
    finally:
        await store.close()
