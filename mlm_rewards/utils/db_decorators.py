"""
Database decorators for error translation and rollback.

Provides decorators that map driver failures onto the rewards error
taxonomy and roll back the session before an error escapes.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.utils.exceptions import TransientError


T = TypeVar("T")

TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError, DBAPIError)


def is_transient_db_error(exc: Exception) -> bool:
    """
    Check if an exception is a storage outage rather than an item failure.

    Batch loops re-raise these so the whole run is retried; integrity
    errors stay per-item failures.

    Args:
        exc: Exception to check

    Returns:
        True for TransientError and untranslated driver failures
    """
    if isinstance(exc, TransientError):
        return True
    return isinstance(exc, TRANSIENT_DB_ERRORS) and not isinstance(exc, IntegrityError)


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> AsyncSession | None:
    """Locate the session in call arguments or on a service instance."""
    session = kwargs.get('session')
    if session is not None:
        return session

    if args:
        if isinstance(args[0], AsyncSession):
            return args[0]
        # Bound method: session lives on the service/repository
        candidate = getattr(args[0], "session", None)
        if isinstance(candidate, AsyncSession):
            return candidate

    return None


def with_rollback_on_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that automatically rolls back the session on any exception.

    Usage:
        @with_rollback_on_error
        async def set_rebate_config(self, product_id: int, ...):
            # Your database operations
            pass

    The session is taken from a ``session`` keyword argument, a leading
    AsyncSession argument, or ``self.session``.

    Args:
        func: Async function to wrap

    Returns:
        Wrapped function with automatic rollback on error
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        session = _find_session(args, kwargs)

        if session is None:
            logger.warning(
                f"Function {func.__name__} decorated with @with_rollback_on_error "
                f"but no session argument found. Rollback will not be performed."
            )
            return await func(*args, **kwargs)

        try:
            return await func(*args, **kwargs)
        except Exception as e:
            try:
                await session.rollback()
                logger.info(
                    f"Rollback performed in {func.__name__} due to error: {type(e).__name__}"
                )
            except Exception as rollback_error:
                logger.error(
                    f"Failed to rollback in {func.__name__}: {rollback_error}",
                    exc_info=True
                )
            raise

    return wrapper


def translate_db_errors(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that re-raises driver-level failures as TransientError.

    Integrity errors are not translated: they signal constraint
    violations and are handled by the caller.

    Args:
        func: Async function to wrap

    Returns:
        Wrapped function
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await func(*args, **kwargs)
        except IntegrityError:
            raise
        except TRANSIENT_DB_ERRORS as e:
            logger.warning(
                f"Storage failure in {func.__name__}: {type(e).__name__}",
                extra={"function": func.__name__, "error": str(e)},
            )
            raise TransientError(
                f"Storage unavailable in {func.__name__}: {e}"
            ) from e

    return wrapper
