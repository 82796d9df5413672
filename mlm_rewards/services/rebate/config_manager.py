"""
Rebate configuration management module.

Configs are validated when written so that payout never meets an invalid
rule. Edits only affect rebates computed afterwards.
"""

from decimal import Decimal, InvalidOperation

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.constants import MAX_PERCENTAGE
from mlm_rewards.config.settings import settings
from mlm_rewards.models.enums import RewardType
from mlm_rewards.models.rebate_config import RebateConfig
from mlm_rewards.repositories.product_repository import ProductRepository
from mlm_rewards.repositories.rebate_config_repository import (
    RebateConfigRepository,
)
from mlm_rewards.utils.db_decorators import (
    translate_db_errors,
    with_rollback_on_error,
)
from mlm_rewards.utils.exceptions import InvalidConfigError, NotFoundError


def _as_decimal(value: Decimal | int | str | None, field: str) -> Decimal | None:
    if value is None:
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidConfigError(f"{field} is not a number: {value!r}") from e
    if not number.is_finite():
        raise InvalidConfigError(f"{field} must be finite, got {value!r}")
    return number


def validate_rebate_config(
    level: int,
    reward_type: str,
    percentage: Decimal | None = None,
    fixed_amount: Decimal | None = None,
    max_level: int | None = None,
) -> tuple[RewardType, Decimal | None, Decimal | None]:
    """
    Validate a rebate rule.

    Args:
        level: Upline level (1 = direct sponsor)
        reward_type: 'percentage' or 'fixed'
        percentage: Percentage in [0, 100] for percentage rules
        fixed_amount: Non-negative amount for fixed rules
        max_level: Deepest allowed level (defaults to settings.rebate_max_level)

    Returns:
        Normalized (reward_type, percentage, fixed_amount)

    Raises:
        InvalidConfigError: If the rule is invalid
    """
    if max_level is None:
        max_level = settings.rebate_max_level
    if not 1 <= level <= max_level:
        raise InvalidConfigError(f"Level must be 1..{max_level}, got {level}")

    try:
        kind = RewardType(reward_type)
    except ValueError as e:
        raise InvalidConfigError(
            "Invalid reward type. Must be 'percentage' or 'fixed'"
        ) from e

    percentage = _as_decimal(percentage, "percentage")
    fixed_amount = _as_decimal(fixed_amount, "fixed_amount")

    if kind == RewardType.PERCENTAGE:
        if percentage is None:
            raise InvalidConfigError("Percentage rule requires a percentage")
        if fixed_amount is not None:
            raise InvalidConfigError("Percentage rule cannot carry a fixed amount")
        if percentage < 0 or percentage > MAX_PERCENTAGE:
            raise InvalidConfigError(
                f"Invalid percentage {percentage}. Must be between 0 and 100"
            )
    else:
        if fixed_amount is None:
            raise InvalidConfigError("Fixed rule requires a fixed amount")
        if percentage is not None:
            raise InvalidConfigError("Fixed rule cannot carry a percentage")
        if fixed_amount < 0:
            raise InvalidConfigError(
                f"Invalid fixed amount {fixed_amount}. Must be >= 0"
            )

    return kind, percentage, fixed_amount


class RebateConfigManager:
    """Manages per-product, per-level rebate rules."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize config manager."""
        self.session = session
        self.config_repo = RebateConfigRepository(session)
        self.product_repo = ProductRepository(session)

    @translate_db_errors
    @with_rollback_on_error
    async def set_rebate_config(
        self,
        product_id: int,
        level: int,
        reward_type: str,
        percentage: Decimal | None = None,
        fixed_amount: Decimal | None = None,
    ) -> RebateConfig:
        """
        Create or replace the rule for (product, level).

        Args:
            product_id: Product ID
            level: Upline level
            reward_type: 'percentage' or 'fixed'
            percentage: Percentage for percentage rules
            fixed_amount: Amount for fixed rules

        Returns:
            Stored config

        Raises:
            InvalidConfigError: If the rule is invalid
            NotFoundError: If the product does not exist
        """
        kind, percentage, fixed_amount = validate_rebate_config(
            level, reward_type, percentage, fixed_amount
        )

        if not await self.product_repo.exists(id=product_id):
            raise NotFoundError("Product", product_id)

        config = await self.config_repo.get_for_level(product_id, level)
        if config is None:
            config = await self.config_repo.create(
                product_id=product_id,
                level=level,
                reward_type=kind.value,
                percentage=percentage,
                fixed_amount=fixed_amount,
            )
        else:
            config = await self.config_repo.update(
                config.id,
                reward_type=kind.value,
                percentage=percentage,
                fixed_amount=fixed_amount,
            )

        await self.session.commit()

        logger.info(
            "Rebate config saved",
            extra={
                "product_id": product_id,
                "level": level,
                "reward_type": kind.value,
                "value": str(percentage if percentage is not None else fixed_amount),
            },
        )
        return config

    @translate_db_errors
    @with_rollback_on_error
    async def delete_rebate_config(self, product_id: int, level: int) -> None:
        """
        Delete the rule for (product, level).

        Raises:
            NotFoundError: If no rule exists
        """
        config = await self.config_repo.get_for_level(product_id, level)
        if config is None:
            raise NotFoundError("RebateConfig", f"{product_id}/{level}")

        await self.config_repo.delete(config.id)
        await self.session.commit()

        logger.info(
            "Rebate config deleted",
            extra={"product_id": product_id, "level": level},
        )

    @translate_db_errors
    async def get_product_configs(self, product_id: int) -> list[RebateConfig]:
        """All rules of a product ordered by level."""
        return await self.config_repo.get_for_product(product_id)
