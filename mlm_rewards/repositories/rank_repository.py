"""
Rank repository.

Data access layer for Rank model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.rank import Rank
from mlm_rewards.repositories.base import BaseRepository


class RankRepository(BaseRepository[Rank]):
    """Rank repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rank repository."""
        super().__init__(Rank, session)

    async def get_ladder(self) -> list[Rank]:
        """All ranks ordered by level."""
        result = await self.session.execute(select(Rank).order_by(Rank.level))
        return list(result.scalars().all())

    async def get_by_level(self, level: int) -> Rank | None:
        """
        Get rank by level.

        Args:
            level: Rank level

        Returns:
            Rank or None
        """
        return await self.get_by(level=level)
