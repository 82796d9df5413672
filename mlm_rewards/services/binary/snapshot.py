"""
Monthly snapshot module.

Writes one MonthlyPerformance row per user and period. Recomputing a
period overwrites the rows, so repeated runs converge on the same state.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.constants import SNAPSHOT_COMMIT_EVERY
from mlm_rewards.models.monthly_performance import MonthlyPerformance
from mlm_rewards.repositories.monthly_performance_repository import (
    MonthlyPerformanceRepository,
)
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.services.binary.commission_calculator import (
    BinaryCommissionCalculator,
)
from mlm_rewards.utils.db_decorators import (
    is_transient_db_error,
    translate_db_errors,
)
from mlm_rewards.utils.money import to_decimal


@dataclass
class SnapshotSummary:
    """Result of a snapshot run."""

    year: int
    month: int
    processed: int = 0
    failed: int = 0
    skipped_users: list[int] = field(default_factory=list)
    records: int = 0
    total_earnings: Decimal = Decimal("0")

    def as_dict(self) -> dict:
        """Summary for logs and job results."""
        return {
            "year": self.year,
            "month": self.month,
            "processed": self.processed,
            "failed": self.failed,
            "skipped_users": list(self.skipped_users),
            "records": self.records,
            "total_earnings": str(self.total_earnings),
        }


class MonthlySnapshotManager:
    """Runs and reads monthly binary plan snapshots."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize snapshot manager."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.performance_repo = MonthlyPerformanceRepository(session)
        self.calculator = BinaryCommissionCalculator(session)

    @translate_db_errors
    async def run_monthly_snapshot(self, year: int, month: int) -> SnapshotSummary:
        """
        Compute and store the snapshot of every user for a period.

        Users with malformed placement are skipped and reported; a failure
        for one user does not stop the run.

        Args:
            year: Period year
            month: Period month (1-12)

        Returns:
            SnapshotSummary
        """
        context = await self.calculator.load_period(year, month)
        existing = await self.performance_repo.get_period_user_ids(year, month)
        summary = SnapshotSummary(year=year, month=month)

        if context.graph.malformed:
            logger.warning(
                "Malformed binary placements skipped",
                extra={
                    "year": year,
                    "month": month,
                    "user_ids": sorted(context.graph.malformed),
                },
            )

        pending_commit = 0
        async for batch in self.user_repo.iter_ids_batched(SNAPSHOT_COMMIT_EVERY):
            for user_id in batch:
                if user_id in context.graph.malformed:
                    summary.skipped_users.append(user_id)
                    continue

                try:
                    result = context.compute(user_id)
                    if result.is_empty and user_id not in existing:
                        summary.processed += 1
                        continue

                    async with self.session.begin_nested():
                        await self.performance_repo.upsert(
                            user_id, year, month, **result.as_values()
                        )
                except Exception as e:
                    if is_transient_db_error(e):
                        raise
                    summary.failed += 1
                    logger.error(
                        f"Snapshot failed for user {user_id}",
                        extra={
                            "user_id": user_id,
                            "year": year,
                            "month": month,
                            "error": str(e),
                        },
                    )
                    continue

                summary.processed += 1
                summary.records += 1
                summary.total_earnings += result.total_earnings
                pending_commit += 1

            if pending_commit:
                await self.session.commit()
                pending_commit = 0

        logger.info(
            "Monthly snapshot finished",
            extra={
                "year": year,
                "month": month,
                "processed": summary.processed,
                "failed": summary.failed,
                "skipped": len(summary.skipped_users),
                "records": summary.records,
            },
        )
        return summary

    @translate_db_errors
    async def get_monthly_performance(
        self,
        user_id: int,
        year: int | None = None,
        month: int | None = None,
    ) -> list[MonthlyPerformance]:
        """Snapshot rows of a user, newest period first."""
        return await self.performance_repo.get_history(user_id, year, month)

    @translate_db_errors
    async def get_top_earners(
        self, year: int, month: int, limit: int = 10
    ) -> list[dict]:
        """
        Highest earners of a period.

        Args:
            year: Period year
            month: Period month
            limit: Max entries

        Returns:
            Dicts with user and earnings figures, best first
        """
        rows = await self.performance_repo.get_top_earners(year, month, limit)
        users = await self.user_repo.get_by_ids([row.user_id for row in rows])

        return [
            {
                "user_id": row.user_id,
                "name": users[row.user_id].name if row.user_id in users else None,
                "total_earnings": to_decimal(row.total_earnings),
                "direct_referral_bonus": to_decimal(row.direct_referral_bonus),
                "level_commissions": to_decimal(row.level_commissions),
                "group_volume_bonus": to_decimal(row.group_volume_bonus),
                "total_group_pv": to_decimal(row.total_group_pv),
            }
            for row in rows
        ]
