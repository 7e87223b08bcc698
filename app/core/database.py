"""
Progress Store Database

Async SQLAlchemy 2.0 engine and sessions (asyncpg) for the courses,
enrollments and topic_progress tables.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base shared by the store's models."""
    pass


# Created on first use so importing models never opens a connection
_engine: Optional[AsyncEngine] = None
_async_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def _asyncpg_url(url: str) -> str:
    # asyncpg rejects libpq query options such as sslmode
    return url.split("?", 1)[0]


def _connect_args(use_ssl: bool) -> dict:
    if not use_ssl:
        return {}

    import ssl

    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return {"ssl": context}


def get_engine() -> AsyncEngine:
    """Return the shared async engine, creating it from settings."""
    global _engine
    if _engine is None:
        from app.core.config import settings

        _engine = create_async_engine(
            _asyncpg_url(settings.DATABASE_URL),
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            connect_args=_connect_args(settings.DATABASE_SSL),
        )
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    global _async_session_maker
    if _async_session_maker is None:
        # Progress responses read rows after commit
        _async_session_maker = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _async_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    The session is committed when the route returns and rolled back if it
    raises.

    Yields:
        AsyncSession: Request-scoped session.
    """
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the store's tables if they do not exist (development only)."""
    import app.models  # noqa: F401  registers the tables on Base.metadata

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _async_session_maker
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _async_session_maker = None
