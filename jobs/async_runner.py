"""
Async runner for dramatiq tasks.

Runs the async services inside synchronous dramatiq actors. Each actor
call gets its own event loop and a NullPool engine, so no connection
outlives the loop that opened it.
"""

import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

from mlm_rewards.config.database import create_engine, create_session_maker

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run async coroutine to completion from a worker thread.

    Args:
        coro: Async coroutine to run

    Returns:
        Result of the coroutine
    """
    try:
        return asyncio.run(coro)
    except Exception as e:
        logger.exception(f"Error running async coroutine: {e}")
        raise


@asynccontextmanager
async def create_local_session(
    database_url: str | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    Create a database session bound to the current event loop.

    Usage:
        async with create_local_session() as session:
            await RankService(session).process_all_rank_advancements()

    Args:
        database_url: Override for settings.database_url

    Yields:
        AsyncSession on a dedicated NullPool engine
    """
    local_engine = create_engine(database_url, poolclass=NullPool)
    local_session_maker = create_session_maker(local_engine)

    try:
        async with local_session_maker() as session:
            yield session
    finally:
        await local_engine.dispose()
