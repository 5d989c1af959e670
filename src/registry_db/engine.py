"""Process-wide async engine plus the one transaction helper everyone uses.

``session_scope()`` is the only place a registry transaction is committed:
the FastAPI ``get_db`` dependency and the catalog sync CLI both enter it,
and repositories only ever ``flush()``.

Connections run at READ COMMITTED.  Form revisions insert ``max + 1``
inside a SAVEPOINT and retry on a unique violation; each retry must see
versions committed by the competing writer, which a snapshot-per-
transaction level would hide.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from registry_db.config import DatabaseSettings, load_database_settings

logger = logging.getLogger(__name__)

ISOLATION_LEVEL = "READ COMMITTED"

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(settings: DatabaseSettings) -> AsyncEngine:
    return create_async_engine(
        settings.async_url,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_pre_ping=True,
        isolation_level=ISOLATION_LEVEL,
        connect_args={
            "server_settings": {"statement_timeout": str(settings.statement_timeout_ms)},
        },
    )


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = load_database_settings()
        _engine = build_engine(settings)
        logger.info(
            "Database engine created (pool=%d+%d)", settings.pool_size, settings.max_overflow
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """Yield a session; commit if the block succeeds, roll back if it raises."""
    factory = factory or get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None
