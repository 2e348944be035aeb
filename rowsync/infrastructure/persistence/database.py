"""Database engine creation and transaction helpers."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from rowsync.config import Config
from rowsync.domain.shared.error import StorageUnavailableError
from rowsync.infrastructure.persistence.tables import metadata


def _expand_sqlite_path(url: str) -> str:
    """Expand ~ in SQLite URLs and ensure parent directory exists."""
    if not url.startswith("sqlite") or ":memory:" in url:
        return url

    # Extract path from URL (sqlite+aiosqlite:///path or sqlite:///path)
    prefix_end = url.index("///") + 3
    prefix = url[:prefix_end]
    path = url[prefix_end:]

    # Expand ~ and make absolute
    abs_path = os.path.abspath(os.path.expanduser(path))
    Path(abs_path).parent.mkdir(parents=True, exist_ok=True)

    return f"{prefix}{abs_path}"


def create_db_engine(config: Config) -> AsyncEngine:
    """Create async database engine.

    Handles SQLite and PostgreSQL with appropriate settings.
    """
    url = _expand_sqlite_path(config.database.url)

    if url.startswith("sqlite"):
        engine_kwargs: dict[str, Any] = {
            "echo": config.database.echo,
            "connect_args": {"check_same_thread": False, "timeout": 30},
        }
        if ":memory:" in url:
            # One shared connection, otherwise each connection sees its own database
            engine_kwargs["poolclass"] = StaticPool
        else:
            # Fresh connection per transaction so concurrent tasks take turns on the file lock
            engine_kwargs["poolclass"] = NullPool
        engine = create_async_engine(url, **engine_kwargs)
        _use_immediate_transactions(engine)
        return engine

    # PostgreSQL settings
    return create_async_engine(
        url,
        echo=config.database.echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """Take SQLite's write lock at BEGIN.

    Queue leases read then write; a deferred transaction would fail with
    "database is locked" instead of waiting when two of them overlap.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN IMMEDIATE")


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables directly from metadata (tests and throwaway databases)."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


@asynccontextmanager
async def transaction(engine: AsyncEngine, what: str) -> AsyncIterator[AsyncConnection]:
    """One committed transaction; driver failures become StorageUnavailableError."""
    try:
        async with engine.begin() as conn:
            yield conn
    except SQLAlchemyError as e:
        raise StorageUnavailableError(f"{what} unavailable: {e}") from e


@asynccontextmanager
async def connection(engine: AsyncEngine, what: str) -> AsyncIterator[AsyncConnection]:
    """Read-only connection; driver failures become StorageUnavailableError."""
    try:
        async with engine.connect() as conn:
            yield conn
    except SQLAlchemyError as e:
        raise StorageUnavailableError(f"{what} unavailable: {e}") from e
