"""
Rank advancement repository.

Data access layer for RankAdvancement model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.rank_advancement import RankAdvancement
from mlm_rewards.repositories.base import BaseRepository


class RankAdvancementRepository(BaseRepository[RankAdvancement]):
    """Rank advancement repository (append-only)."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rank advancement repository."""
        super().__init__(RankAdvancement, session)

    async def get_history(self, user_id: int) -> list[RankAdvancement]:
        """
        Get promotions of a user, newest first.

        Args:
            user_id: User ID

        Returns:
            List of advancements
        """
        stmt = (
            select(RankAdvancement)
            .where(RankAdvancement.user_id == user_id)
            .order_by(RankAdvancement.created_at.desc(), RankAdvancement.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
