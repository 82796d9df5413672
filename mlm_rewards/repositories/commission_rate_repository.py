"""
Commission rate repository.

Data access layer for CommissionRate model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.commission_rate import CommissionRate
from mlm_rewards.repositories.base import BaseRepository


class CommissionRateRepository(BaseRepository[CommissionRate]):
    """Commission rate repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission rate repository."""
        super().__init__(CommissionRate, session)

    async def get_active(self) -> list[CommissionRate]:
        """
        Get all active rates.

        Returns:
            Rates ordered by type, level and threshold
        """
        stmt = (
            select(CommissionRate)
            .where(CommissionRate.active.is_(True))
            .order_by(
                CommissionRate.type,
                CommissionRate.level,
                CommissionRate.threshold_pv,
                CommissionRate.id,
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
