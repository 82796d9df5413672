"""
Database configuration.

Engine and session factories. Jobs and the CLI build their own engine
per run; nothing is created at import time.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mlm_rewards.config.settings import settings


def create_engine(database_url: str | None = None, **kwargs) -> AsyncEngine:
    """Create async engine for the configured database."""
    return create_async_engine(
        database_url or settings.database_url,
        echo=settings.database_echo,
        **kwargs,
    )


def create_session_maker(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create session maker bound to engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
