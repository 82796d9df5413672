"""
Rebate service.

Entry point used by checkout and by the processing jobs.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.rebate import Rebate
from mlm_rewards.models.rebate_config import RebateConfig
from mlm_rewards.services.base_service import BaseService, log_operation
from mlm_rewards.services.rebate import (
    ProcessSummary,
    RebateCalculator,
    RebateConfigManager,
    RebateProcessor,
)


class RebateService(BaseService):
    """Rebate service delegating to config manager, calculator and processor."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rebate service."""
        super().__init__(session)
        self.config_manager = RebateConfigManager(session)
        self.calculator = RebateCalculator(session)
        self.processor = RebateProcessor(session)

    async def set_rebate_config(
        self,
        product_id: int,
        level: int,
        reward_type: str,
        percentage: Decimal | None = None,
        fixed_amount: Decimal | None = None,
    ) -> RebateConfig:
        """Create or replace a rule; raises InvalidConfigError."""
        return await self.config_manager.set_rebate_config(
            product_id, level, reward_type, percentage, fixed_amount
        )

    async def delete_rebate_config(self, product_id: int, level: int) -> None:
        """Delete a rule."""
        await self.config_manager.delete_rebate_config(product_id, level)

    async def get_product_configs(self, product_id: int) -> list[RebateConfig]:
        """Rules of a product ordered by level."""
        return await self.config_manager.get_product_configs(product_id)

    async def compute_rebates_for_purchase(self, purchase_id: int) -> list[Rebate]:
        """Create pending rebates for a completed purchase."""
        return await self.calculator.compute_rebates_for_purchase(purchase_id)

    @log_operation
    async def compute_missing_rebates(self, batch_size: int = 100) -> dict[str, int]:
        """Backfill rebates for completed purchases without rows."""
        return await self.calculator.compute_missing_rebates(batch_size)

    @log_operation
    async def process_pending_rebates(
        self,
        batch_size: int | None = None,
        max_batches: int | None = None,
    ) -> ProcessSummary:
        """Credit pending rebates."""
        return await self.processor.process_pending_rebates(batch_size, max_batches)

    async def retry_failed_rebates(self, rebate_ids: list[int] | None = None) -> int:
        """Reset failed rebates to pending."""
        return await self.processor.retry_failed_rebates(rebate_ids)

    async def get_rebate_stats(self) -> dict[str, dict[str, int | Decimal]]:
        """Count and amount per status."""
        return await self.processor.get_rebate_stats()
