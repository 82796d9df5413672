"""
Rebate processing tasks.

Computes pending rebates for completed purchases and credits them to the
receivers' wallets.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import create_local_session, run_async
from mlm_rewards.config.constants import (
    JOB_MAX_RETRIES,
    JOB_TIME_LIMIT_LONG,
    JOB_TIME_LIMIT_STANDARD,
)
from mlm_rewards.services.rebate_service import RebateService


@dramatiq.actor(max_retries=JOB_MAX_RETRIES, time_limit=JOB_TIME_LIMIT_STANDARD)
def compute_purchase_rebates(purchase_id: int) -> None:
    """
    Create pending rebates for one purchase.

    Enqueued by checkout once a purchase completes.

    Args:
        purchase_id: Purchase ID
    """
    created = run_async(_compute_purchase_rebates_async(purchase_id))
    logger.info(
        f"Purchase {purchase_id}: {created} rebates created",
        extra={"purchase_id": purchase_id, "rebates_created": created},
    )


async def _compute_purchase_rebates_async(purchase_id: int) -> int:
    async with create_local_session() as session:
        rebates = await RebateService(session).compute_rebates_for_purchase(
            purchase_id
        )
        return len(rebates)


@dramatiq.actor(max_retries=JOB_MAX_RETRIES, time_limit=JOB_TIME_LIMIT_LONG)
def compute_missing_rebates(batch_size: int = 100) -> None:
    """Backfill rebates for completed purchases that have none."""
    logger.info("Starting rebate backfill...")
    stats = run_async(_compute_missing_rebates_async(batch_size))
    logger.info(
        f"Rebate backfill complete: {stats['rebates']} rebates "
        f"for {stats['purchases']} purchases, {stats['failed']} failed"
    )


async def _compute_missing_rebates_async(batch_size: int) -> dict[str, int]:
    async with create_local_session() as session:
        return await RebateService(session).compute_missing_rebates(batch_size)


@dramatiq.actor(max_retries=JOB_MAX_RETRIES, time_limit=JOB_TIME_LIMIT_LONG)
def process_pending_rebates(
    batch_size: int | None = None, max_batches: int | None = None
) -> None:
    """
    Credit pending rebates.

    Safe to run from several workers at once: each row is claimed by its
    status transition before the wallet is touched.

    Args:
        batch_size: Rows per batch (defaults to settings.rebate_batch_size)
        max_batches: Stop after this many batches
    """
    logger.info("Starting pending rebate processing...")
    summary = run_async(_process_pending_rebates_async(batch_size, max_batches))
    logger.info(
        f"Rebate processing complete: {summary['processed']} processed, "
        f"{summary['failed']} failed, total: {summary['total_amount']}"
    )


async def _process_pending_rebates_async(
    batch_size: int | None, max_batches: int | None
) -> dict:
    async with create_local_session() as session:
        summary = await RebateService(session).process_pending_rebates(
            batch_size, max_batches
        )
        return summary.as_dict()
