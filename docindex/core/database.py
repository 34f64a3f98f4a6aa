"""Async SQLite engine, connection pragmas and schema bootstrap."""

import sqlite3
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

from docindex.core.exceptions import ConfigurationError, StoreError

# Milliseconds a writer waits on SQLite's single write lock before failing
BUSY_TIMEOUT_MS = 30_000

# External-content FTS5 table kept in step with `documents` by triggers.
# Updates and deletes must replay the old values through the 'delete' command.
FTS_SCHEMA = [
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
        id UNINDEXED,
        title,
        content,
        content='documents',
        content_rowid='rowid',
        tokenize='unicode61 remove_diacritics 2'
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS documents_ai AFTER INSERT ON documents BEGIN
        INSERT INTO documents_fts(rowid, id, title, content)
        VALUES (new.rowid, new.id, new.title, new.content);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS documents_ad AFTER DELETE ON documents BEGIN
        INSERT INTO documents_fts(documents_fts, rowid, id, title, content)
        VALUES ('delete', old.rowid, old.id, old.title, old.content);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS documents_au AFTER UPDATE ON documents BEGIN
        INSERT INTO documents_fts(documents_fts, rowid, id, title, content)
        VALUES ('delete', old.rowid, old.id, old.title, old.content);
        INSERT INTO documents_fts(rowid, id, title, content)
        VALUES (new.rowid, new.id, new.title, new.content);
    END
    """,
]


def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for_path(db_path: str | Path) -> AsyncEngine:
    """Build an async engine for a SQLite file, creating its directory."""
    if not str(db_path):
        raise ConfigurationError("database_path must not be empty")
    path = Path(db_path).expanduser().absolute()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"Cannot create store directory {path.parent}: {exc}") from exc

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{path}",
        echo=False,
        connect_args={"timeout": BUSY_TIMEOUT_MS / 1000},
    )
    event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
    return engine


async def init_db(engine: AsyncEngine) -> None:
    """Create the document table and its full-text projection if missing."""
    # Import all models so SQLModel.metadata picks them up
    import docindex.models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
            for statement in FTS_SCHEMA:
                await conn.exec_driver_sql(statement)
    except (SQLAlchemyError, sqlite3.Error) as exc:
        raise StoreError(f"Cannot initialise index store: {exc}") from exc
