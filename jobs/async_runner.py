"""
Async runner for dramatiq tasks.

Runs the engine's async services inside synchronous dramatiq actors.
Each worker thread keeps one event loop, its own configuration provider
and opens a NullPool engine per job, so no connection or lock outlives
the loop it was created on.
"""

import asyncio
import threading
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from affiliate_engine.config.settings import settings
from affiliate_engine.services.configuration_provider import (
    ConfigurationProvider,
    RedisConfigSource,
)

T = TypeVar("T")

# Thread-local storage for event loops and config providers
_thread_local = threading.local()


def get_event_loop() -> asyncio.AbstractEventLoop:
    """
    Get or create event loop for current thread.

    Reusing one loop per thread prevents "Future attached to a different
    loop" errors.
    """
    loop = getattr(_thread_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_local.loop = loop
        logger.debug(
            "Created new event loop",
            extra={"thread": threading.current_thread().name},
        )
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run async coroutine in the thread's event loop.

    Args:
        coro: Async coroutine to run

    Returns:
        Result of the coroutine
    """
    return get_event_loop().run_until_complete(coro)


def get_config_provider() -> ConfigurationProvider:
    """Configuration provider of the current worker thread."""
    provider = getattr(_thread_local, "config_provider", None)
    if provider is None:
        provider = ConfigurationProvider(RedisConfigSource())
        _thread_local.config_provider = provider
    return provider


@asynccontextmanager
async def create_local_session() -> AsyncIterator[AsyncSession]:
    """
    Create a local database session for the current event loop.

    Usage:
        async with create_local_session() as session:
            await service.do_work()

    Yields:
        AsyncSession bound to the current event loop
    """
    local_engine = create_async_engine(
        settings.database_url,
        echo=False,
        poolclass=NullPool,
    )
    local_session_maker = async_sessionmaker(
        local_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    try:
        async with local_session_maker() as session:
            yield session
    finally:
        await local_engine.dispose()
