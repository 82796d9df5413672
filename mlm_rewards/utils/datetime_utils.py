"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def days_ago(days: int) -> datetime:
    """Return the UTC instant ``days`` days before now."""
    return utc_now() - timedelta(days=days)


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """
    Get half-open UTC bounds of a calendar month.

    Args:
        year: Calendar year
        month: Month number (1-12)

    Returns:
        Tuple (start, end) with start inclusive and end exclusive

    Raises:
        ValueError: If month is out of range
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be 1..12, got {month}")

    start = datetime(year, month, 1, tzinfo=UTC)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=UTC)
    else:
        end = datetime(year, month + 1, 1, tzinfo=UTC)
    return start, end


def previous_month(now: datetime | None = None) -> tuple[int, int]:
    """Return (year, month) of the month before ``now``."""
    now = now or utc_now()
    if now.month == 1:
        return now.year - 1, 12
    return now.year, now.month - 1
