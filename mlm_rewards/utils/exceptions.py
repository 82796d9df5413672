"""
Exception types.

Every error raised by the rewards core derives from MLMError so callers can
catch the whole family. Batch operations catch per-item errors and report
them in their summaries instead of raising.
"""


class MLMError(Exception):
    """Base class for rewards core errors."""
    pass


class NotFoundError(MLMError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: int | str) -> None:
        """
        Initialize error.

        Args:
            entity: Entity name (e.g. "User", "Purchase")
            entity_id: Identifier that was looked up
        """
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidConfigError(MLMError):
    """Raised when rebate, commission or rank configuration is invalid."""
    pass


class InvalidTreeOperationError(MLMError):
    """Raised when a tree mutation would break the forest shape."""
    pass


class TransientError(MLMError):
    """Raised for retryable storage failures (connection lost, timeouts)."""
    pass


class ConcurrentConflictError(MLMError):
    """
    Raised when another worker won a compare-and-set.

    Callers treat it as a benign no-op.
    """
    pass


# Exception categories based on handling strategy

# Retry the whole unit later
RETRYABLE = (
    TransientError,
)

# Nothing to do, someone else already handled the item
BENIGN = (
    ConcurrentConflictError,
)


def is_retryable(exc: Exception) -> bool:
    """
    Check if exception should be retried.

    Args:
        exc: Exception to check

    Returns:
        True if the operation can be retried
    """
    return isinstance(exc, RETRYABLE)


def is_benign(exc: Exception) -> bool:
    """
    Check if exception signals a lost race.

    Args:
        exc: Exception to check

    Returns:
        True if exception can be treated as a no-op
    """
    return isinstance(exc, BENIGN)
