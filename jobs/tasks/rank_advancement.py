"""Rank advancement task."""

import dramatiq
from loguru import logger

from jobs.async_runner import create_local_session, run_async
from mlm_rewards.config.constants import JOB_MAX_RETRIES, JOB_TIME_LIMIT_LONG
from mlm_rewards.services.rank_service import RankService


@dramatiq.actor(max_retries=JOB_MAX_RETRIES, time_limit=JOB_TIME_LIMIT_LONG)
def process_rank_advancements() -> None:
    """Evaluate every user once and promote the eligible ones by one rank."""
    logger.info("Starting rank advancement run...")
    stats = run_async(_process_rank_advancements_async())
    logger.info(
        f"Rank advancement complete: {stats['advanced']} advanced "
        f"of {stats['processed']}, {stats['failed']} failed"
    )


async def _process_rank_advancements_async() -> dict[str, int]:
    async with create_local_session() as session:
        return await RankService(session).process_all_rank_advancements()
