"""
Database Session Management - Async SQLAlchemy sessions on the hosted Postgres.

Dashboards and the read-only proxy use the "read" engine, which points at
the replica when DATABASE_READ_URL is set. Imports, subscription creation
and mail logging use the "write" engine on the primary.
"""

from collections.abc import AsyncGenerator
from typing import Literal

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from structlog import get_logger

from app.config import settings

logger = get_logger(__name__)

EngineRole = Literal["write", "read"]

_ASYNC_DRIVER = "postgresql+asyncpg://"
_SYNC_PREFIXES = ("postgres://", "postgresql://")

_engines: dict[EngineRole, AsyncEngine] = {}
_session_factories: dict[EngineRole, async_sessionmaker[AsyncSession]] = {}


def to_async_url(url: str) -> str:
    """
    Point a hosted-database URL at the asyncpg driver.

    Connection strings copied from the hosting dashboard use the bare
    postgres:// or postgresql:// scheme; URLs that already name a driver
    are returned unchanged.
    """
    for prefix in _SYNC_PREFIXES:
        if url.startswith(prefix):
            return _ASYNC_DRIVER + url[len(prefix) :]
    return url


def _url_for(role: EngineRole) -> str:
    return to_async_url(settings.database_url if role == "write" else settings.read_database_url)


def get_engine(role: EngineRole) -> AsyncEngine:
    """Get or create the engine for one role."""
    engine = _engines.get(role)
    if engine is None:
        engine = create_async_engine(
            _url_for(role),
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
            # The hosted pooler closes idle connections without notice
            pool_pre_ping=True,
            connect_args={"server_settings": {"application_name": settings.service_name}},
            echo=settings.log_level.upper() == "DEBUG",
        )
        _engines[role] = engine
        logger.info("database_engine_created", role=role)
    return engine


def get_session_factory(role: EngineRole) -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory for one role."""
    factory = _session_factories.get(role)
    if factory is None:
        factory = async_sessionmaker(get_engine(role), class_=AsyncSession, expire_on_commit=False)
        _session_factories[role] = factory
    return factory


async def _session(role: EngineRole) -> AsyncGenerator[AsyncSession, None]:
    async with get_session_factory(role)() as session:
        yield session


async def get_write_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for a primary-database session.

    Usage:
        @router.post("/v1/imports/{entity}")
        async def import_csv(db: AsyncSession = Depends(get_write_db)):
            ...
    """
    async for session in _session("write"):
        yield session


async def get_read_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for a replica session (primary when no replica is set)."""
    async for session in _session("read"):
        yield session


async def close_engines() -> None:
    """Dispose every engine (for graceful shutdown)."""
    for role, engine in list(_engines.items()):
        await engine.dispose()
        logger.info("database_engine_disposed", role=role)
    _engines.clear()
    _session_factories.clear()
