"""
Base service class.

Session ownership, a per-service bound logger and the decorators used by
the facade services.
"""

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseService:
    """
    Base service class.

    Services receive one AsyncSession and decide where transactions end;
    repositories below them only flush.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
        """
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def rollback(self) -> None:
        """Rollback current transaction."""
        await self.session.rollback()


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Commit after the wrapped method returns, roll back if it raises.

    Usage:
        @transaction
        async def change_upline(self, user_id: int, new_upline_id: int | None):
            ...
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            await self.rollback()
            self.logger.error(
                f"Transaction failed in {func.__name__}",
                extra={"function": func.__name__, "error": str(e)},
            )
            raise

        await self.commit()
        return result

    return wrapper


def _summarize(result: Any) -> Any:
    """Loggable form of a run result."""
    if hasattr(result, "as_dict"):
        return result.as_dict()
    if isinstance(result, dict):
        return result
    return type(result).__name__


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Log start, outcome and duration of a batch operation.

    Results exposing ``as_dict()`` (run summaries) or plain dicts are logged
    as the outcome.

    Usage:
        @log_operation
        async def run_monthly_snapshot(self, year: int, month: int):
            ...
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        started = time.perf_counter()
        self.logger.info(
            f"Starting {func.__name__}",
            extra={"function": func.__name__, "args": args, "kwargs": kwargs},
        )

        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.error(
                f"Failed {func.__name__}",
                extra={
                    "function": func.__name__,
                    "duration_seconds": round(time.perf_counter() - started, 3),
                    "error": str(e),
                },
            )
            raise

        self.logger.info(
            f"Completed {func.__name__}",
            extra={
                "function": func.__name__,
                "duration_seconds": round(time.perf_counter() - started, 3),
                "result": _summarize(result),
            },
        )
        return result

    return wrapper
