"""
Monthly snapshot task.

Stores binary-plan volumes and bonuses per user for a calendar month.
Scheduled at the start of each month for the month that just ended.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import create_local_session, run_async
from mlm_rewards.config.constants import JOB_MAX_RETRIES, JOB_TIME_LIMIT_LONG
from mlm_rewards.services.binary_service import BinaryService
from mlm_rewards.utils.datetime_utils import previous_month


def resolve_period(year: int | None, month: int | None) -> tuple[int, int]:
    """
    Period to snapshot.

    Args:
        year: Explicit year, or None
        month: Explicit month, or None

    Returns:
        (year, month); the previous calendar month when either is missing
    """
    if year is None or month is None:
        return previous_month()
    return year, month


@dramatiq.actor(max_retries=JOB_MAX_RETRIES, time_limit=JOB_TIME_LIMIT_LONG)
def run_monthly_snapshot(year: int | None = None, month: int | None = None) -> None:
    """
    Snapshot a month.

    Re-running for the same period overwrites the stored rows.

    Args:
        year: Year (defaults to the previous month's)
        month: Month 1-12 (defaults to the previous month)
    """
    year, month = resolve_period(year, month)
    logger.info(f"Starting monthly snapshot for {year}-{month:02d}...")

    summary = run_async(_run_monthly_snapshot_async(year, month))

    if summary["skipped_users"]:
        logger.warning(
            f"Snapshot {year}-{month:02d} skipped malformed placements",
            extra={"skipped_users": summary["skipped_users"]},
        )
    logger.info(
        f"Monthly snapshot {year}-{month:02d} complete: "
        f"{summary['processed']} processed, {summary['failed']} failed"
    )


async def _run_monthly_snapshot_async(year: int, month: int) -> dict:
    async with create_local_session() as session:
        summary = await BinaryService(session).run_monthly_snapshot(year, month)
        return summary.as_dict()
