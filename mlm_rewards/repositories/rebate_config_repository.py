"""
Rebate config repository.

Data access layer for RebateConfig model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.rebate_config import RebateConfig
from mlm_rewards.repositories.base import BaseRepository


class RebateConfigRepository(BaseRepository[RebateConfig]):
    """Rebate config repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rebate config repository."""
        super().__init__(RebateConfig, session)

    async def get_for_product(
        self, product_id: int, max_level: int | None = None
    ) -> list[RebateConfig]:
        """
        Get configs for a product ordered by level.

        Args:
            product_id: Product ID
            max_level: Ignore levels above this

        Returns:
            List of configs
        """
        stmt = select(RebateConfig).where(RebateConfig.product_id == product_id)
        if max_level is not None:
            stmt = stmt.where(RebateConfig.level <= max_level)

        result = await self.session.execute(stmt.order_by(RebateConfig.level))
        return list(result.scalars().all())

    async def get_for_level(
        self, product_id: int, level: int
    ) -> RebateConfig | None:
        """Get the config for one (product, level) pair."""
        return await self.get_by(product_id=product_id, level=level)
