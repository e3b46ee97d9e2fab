"""Engine and unit-of-work sessions for StitchDesk.

One ``get_session()`` block is one unit of work: lifecycle, conversion and
attachment operations only flush, and the block commits or rolls back as a
whole.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from stitchdesk.config import DBConfig, get_config
from stitchdesk.db.models import Base

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _is_sqlite(url: str) -> bool:
    return url.lower().startswith("sqlite")


def _engine_kwargs(db_config: DBConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": db_config.echo}
    if not _is_sqlite(db_config.url):
        kwargs.update(
            pool_size=db_config.pool_size,
            max_overflow=db_config.pool_max_overflow,
            pool_timeout=db_config.pool_timeout,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
    return kwargs


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it from config on first use."""
    global _engine

    if _engine is None:
        db_config = get_config().db
        _engine = create_async_engine(db_config.url, **_engine_kwargs(db_config))
        if _is_sqlite(db_config.url):
            event.listen(_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        # Records built after commit read loaded attributes only
        _session_factory = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a unit of work; commit on clean exit, roll back on any exception.

    Usage:
        async with get_session() as session:
            order = await create_order(session, symbols, actor, payload)
    """
    session = get_session_factory()()

    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db(drop: bool = False) -> None:
    """Create the schema, dropping existing tables first when ``drop`` is set.

    Production deployments manage the schema with migrations instead.
    """
    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine; the next ``get_engine()`` builds a fresh one."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
