"""
Purchase repository.

Aggregations over completed purchases used by rebates, genealogy metrics,
the binary plan and rank eligibility.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.settings import settings
from mlm_rewards.models.enums import PurchaseStatus
from mlm_rewards.models.purchase import Purchase
from mlm_rewards.models.rebate import Rebate
from mlm_rewards.repositories.base import BaseRepository
from mlm_rewards.repositories.user_repository import chunked
from mlm_rewards.utils.money import to_decimal


class PurchaseRepository(BaseRepository[Purchase]):
    """Purchase repository with sales aggregations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize purchase repository."""
        super().__init__(Purchase, session)

    async def sum_completed_amount(
        self,
        user_ids: list[int],
        since: datetime | None = None,
    ) -> Decimal:
        """
        Sum total_amount of completed purchases made by users.

        Args:
            user_ids: Buyer IDs
            since: Only count purchases created at or after this time

        Returns:
            Sales total
        """
        total = Decimal("0")
        for chunk in chunked(list(user_ids), settings.genealogy_batch_size):
            stmt = select(
                func.coalesce(func.sum(Purchase.total_amount), 0)
            ).where(
                Purchase.user_id.in_(chunk),
                Purchase.status == PurchaseStatus.COMPLETED.value,
            )
            if since is not None:
                stmt = stmt.where(Purchase.created_at >= since)

            result = await self.session.execute(stmt)
            total += to_decimal(result.scalar())
        return total

    async def count_completed_since(self, user_id: int, since: datetime) -> int:
        """
        Count a user's completed purchases since a point in time.

        Args:
            user_id: Buyer ID
            since: Inclusive lower bound

        Returns:
            Number of purchases
        """
        stmt = select(func.count(Purchase.id)).where(
            Purchase.user_id == user_id,
            Purchase.status == PurchaseStatus.COMPLETED.value,
            Purchase.created_at >= since,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_period_volume_by_user(
        self, start: datetime, end: datetime
    ) -> dict[int, tuple[Decimal, int]]:
        """
        Personal PV and purchase count per user for a period.

        Args:
            start: Inclusive lower bound
            end: Exclusive upper bound

        Returns:
            Dict mapping user ID to (total PV, completed purchase count)
        """
        stmt = (
            select(
                Purchase.user_id,
                func.coalesce(func.sum(Purchase.total_pv), 0).label("pv"),
                func.count(Purchase.id).label("purchases"),
            )
            .where(
                Purchase.status == PurchaseStatus.COMPLETED.value,
                Purchase.created_at >= start,
                Purchase.created_at < end,
            )
            .group_by(Purchase.user_id)
        )
        result = await self.session.execute(stmt)
        return {
            row.user_id: (to_decimal(row.pv), row.purchases)
            for row in result.all()
        }

    async def get_completed_without_rebates(
        self, limit: int = 100, after_id: int = 0
    ) -> list[int]:
        """
        IDs of completed purchases that have no rebate rows yet.

        Args:
            limit: Max number of IDs
            after_id: Keyset cursor, only IDs above it are returned

        Returns:
            Purchase IDs ordered by ID
        """
        has_rebates = exists().where(Rebate.purchase_id == Purchase.id)
        stmt = (
            select(Purchase.id)
            .where(
                Purchase.status == PurchaseStatus.COMPLETED.value,
                Purchase.id > after_id,
                ~has_rebates,
            )
            .order_by(Purchase.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_active_buyers_since(
        self, user_ids: list[int], since: datetime
    ) -> int:
        """
        Count distinct users among user_ids with a completed purchase since.

        Args:
            user_ids: Candidate buyer IDs
            since: Inclusive lower bound

        Returns:
            Number of active buyers
        """
        buyers: set[int] = set()
        for chunk in chunked(list(user_ids), settings.genealogy_batch_size):
            stmt = (
                select(Purchase.user_id)
                .where(
                    Purchase.user_id.in_(chunk),
                    Purchase.status == PurchaseStatus.COMPLETED.value,
                    Purchase.created_at >= since,
                )
                .distinct()
            )
            result = await self.session.execute(stmt)
            buyers.update(result.scalars().all())
        return len(buyers)
