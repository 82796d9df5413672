"""
Rebate repository.

Data access layer for Rebate model. Status transitions are conditional
UPDATEs so that concurrent processors never credit a row twice.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.enums import RebateStatus
from mlm_rewards.models.rebate import Rebate
from mlm_rewards.repositories.base import BaseRepository
from mlm_rewards.utils.money import to_decimal


class RebateRepository(BaseRepository[Rebate]):
    """Rebate repository with claim-based status transitions."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rebate repository."""
        super().__init__(Rebate, session)

    async def get_existing_levels(self, purchase_id: int) -> set[int]:
        """Levels that already have a rebate row for the purchase."""
        stmt = select(Rebate.level).where(Rebate.purchase_id == purchase_id)
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def get_pending_ids(
        self, limit: int, after_id: int = 0
    ) -> list[int]:
        """
        Get pending rebate IDs using keyset pagination.

        Args:
            limit: Max number of IDs
            after_id: Only return IDs greater than this

        Returns:
            Pending rebate IDs in ascending order
        """
        stmt = (
            select(Rebate.id)
            .where(
                Rebate.status == RebateStatus.PENDING.value,
                Rebate.id > after_id,
            )
            .order_by(Rebate.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def claim(self, rebate_id: int, processed_at: datetime) -> bool:
        """
        Transition a rebate from pending to processed.

        Args:
            rebate_id: Rebate ID
            processed_at: Processing timestamp

        Returns:
            True if this caller won the claim
        """
        stmt = (
            update(Rebate)
            .where(
                Rebate.id == rebate_id,
                Rebate.status == RebateStatus.PENDING.value,
            )
            .values(
                status=RebateStatus.PROCESSED.value,
                processed_at=processed_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def attach_transaction(
        self, rebate_id: int, wallet_transaction_id: int
    ) -> None:
        """Link a processed rebate to its ledger row."""
        stmt = (
            update(Rebate)
            .where(Rebate.id == rebate_id)
            .values(wallet_transaction_id=wallet_transaction_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def mark_failed(
        self, rebate_id: int, reason: str, processed_at: datetime
    ) -> bool:
        """
        Transition a pending rebate to failed.

        Args:
            rebate_id: Rebate ID
            reason: Failure reason
            processed_at: Timestamp

        Returns:
            True if the row was still pending
        """
        stmt = (
            update(Rebate)
            .where(
                Rebate.id == rebate_id,
                Rebate.status == RebateStatus.PENDING.value,
            )
            .values(
                status=RebateStatus.FAILED.value,
                failure_reason=reason[:1000],
                processed_at=processed_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def reset_failed(self, rebate_ids: list[int] | None = None) -> int:
        """
        Move failed rebates back to pending.

        Args:
            rebate_ids: Restrict to these IDs (all failed rows if None)

        Returns:
            Number of rows reset
        """
        stmt = update(Rebate).where(Rebate.status == RebateStatus.FAILED.value)
        if rebate_ids is not None:
            stmt = stmt.where(Rebate.id.in_(rebate_ids))

        result = await self.session.execute(
            stmt.values(
                status=RebateStatus.PENDING.value,
                failure_reason=None,
                processed_at=None,
            ).execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def get_status_stats(self) -> dict[str, dict[str, int | Decimal]]:
        """
        Count and amount sum per status in a single query.

        Returns:
            Dict mapping status to {"count": n, "amount": total}
        """
        stmt = (
            select(
                Rebate.status,
                func.count(Rebate.id).label("count"),
                func.coalesce(func.sum(Rebate.amount), 0).label("amount"),
            )
            .group_by(Rebate.status)
        )
        result = await self.session.execute(stmt)

        stats: dict[str, dict[str, int | Decimal]] = {
            status.value: {"count": 0, "amount": Decimal("0")}
            for status in RebateStatus
        }
        for row in result.all():
            stats[row.status] = {
                "count": row.count,
                "amount": to_decimal(row.amount),
            }
        return stats

    async def sum_processed_for_receiver(self, receiver_id: int) -> Decimal:
        """Total of processed rebates received by a user."""
        stmt = select(
            func.coalesce(func.sum(Rebate.amount), 0)
        ).where(
            Rebate.receiver_id == receiver_id,
            Rebate.status == RebateStatus.PROCESSED.value,
        )
        result = await self.session.execute(stmt)
        return to_decimal(result.scalar())
