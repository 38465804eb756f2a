"""
Async engine and per-request session management.

The engine is created lazily so importing the app never opens a pool.
Connection-level failures are translated to StoreConnectivityError here so
every caller (services, the request-scoped commit) reports them the same way.
"""

from contextlib import contextmanager
from functools import lru_cache
from typing import AsyncGenerator, Iterator

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from katagaki.core.config import get_settings
from katagaki.core.errors import ConfigurationError, StoreConnectivityError
from katagaki.core.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (OperationalError, InterfaceError, OSError) as e:
        logger.error("store_unreachable", operation=operation, error=str(e))
        raise StoreConnectivityError(details={"operation": operation}) from e


@lru_cache()
def get_engine() -> AsyncEngine:
    settings = get_settings()
    if not settings.DATABASE_URL:
        raise ConfigurationError("Entity store is not configured: DATABASE_URL is empty")

    try:
        url = make_url(settings.DATABASE_URL)
    except ArgumentError as e:
        raise ConfigurationError("Entity store is not configured: invalid DATABASE_URL") from e

    kwargs = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if url.get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    return create_async_engine(url, **kwargs)


@lru_cache()
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed on success."""
    async with get_session_factory()() as session:
        try:
            yield session
            with translate_store_errors("session.commit"):
                await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
        get_session_factory.cache_clear()
        get_engine.cache_clear()
