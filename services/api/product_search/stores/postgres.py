"""PostgreSQL store (async SQLAlchemy + asyncpg).

Postgres only backs search analytics (search/click events). Nothing on the
search path depends on it: callers check `is_db_initialized()` first and
treat session errors as "analytics unavailable".
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from product_search.settings import get_settings


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db() -> None:
    """Create the engine and session factory from settings."""
    global _engine, _session_factory

    settings = get_settings()
    connect_args = {
        **settings.asyncpg_connect_args,
        "server_settings": {"application_name": settings.app_name},
    }
    _engine = create_async_engine(
        settings.async_database_url,
        echo=settings.debug,
        connect_args=connect_args,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Session that commits on success and rolls back on error.

    Usage:
        async with get_session() as session:
            session.add(SearchEvent(...))
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_db() -> None:
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


def is_db_initialized() -> bool:
    return _session_factory is not None
