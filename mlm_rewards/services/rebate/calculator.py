"""
Rebate calculator.

Turns a completed purchase into pending rebate rows, one per upline level
with a resolvable receiver and a non-zero rule.
"""

from decimal import Decimal

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.settings import settings
from mlm_rewards.models.enums import RebateStatus
from mlm_rewards.models.rebate import Rebate
from mlm_rewards.models.rebate_config import RebateConfig
from mlm_rewards.repositories.purchase_repository import PurchaseRepository
from mlm_rewards.repositories.rebate_config_repository import (
    RebateConfigRepository,
)
from mlm_rewards.repositories.rebate_repository import RebateRepository
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.utils.db_decorators import (
    is_transient_db_error,
    translate_db_errors,
    with_rollback_on_error,
)
from mlm_rewards.utils.exceptions import NotFoundError
from mlm_rewards.utils.money import percentage_of, round_currency


def calculate_rebate_amount(config: RebateConfig, total_amount: Decimal) -> Decimal:
    """
    Calculate the payout for one rule.

    Percentage rules pay ``total_amount * percentage / 100``; fixed rules pay
    the fixed amount. The result is rounded once, half-up, to the currency
    quantum.

    Args:
        config: Rebate rule
        total_amount: Purchase total

    Returns:
        Rounded rebate amount
    """
    if config.is_fixed:
        raw = config.fixed_amount or Decimal("0")
    else:
        raw = percentage_of(total_amount, config.percentage or Decimal("0"))
    return round_currency(raw)


class RebateCalculator:
    """Creates pending rebates for purchases."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize rebate calculator.

        Args:
            session: Async database session
        """
        self.session = session
        self.purchase_repo = PurchaseRepository(session)
        self.config_repo = RebateConfigRepository(session)
        self.rebate_repo = RebateRepository(session)
        self.user_repo = UserRepository(session)

    @translate_db_errors
    @with_rollback_on_error
    async def compute_rebates_for_purchase(self, purchase_id: int) -> list[Rebate]:
        """
        Create pending rebates for a purchase.

        Levels that already have a row are left untouched, so the call is
        safe to repeat.

        Args:
            purchase_id: Purchase ID

        Returns:
            Rebates created by this call, ordered by level

        Raises:
            NotFoundError: If the purchase does not exist
        """
        purchase = await self.purchase_repo.get_by_id(purchase_id)
        if not purchase:
            raise NotFoundError("Purchase", purchase_id)

        if not purchase.is_completed:
            logger.debug(
                "Purchase not completed, no rebates",
                extra={"purchase_id": purchase_id, "status": purchase.status},
            )
            return []

        configs = {
            config.level: config
            for config in await self.config_repo.get_for_product(
                purchase.product_id, max_level=settings.rebate_max_level
            )
            if not config.is_zero
        }
        if not configs:
            return []

        upline = await self.user_repo.get_upline_ids(
            purchase.user_id, max(configs)
        )
        existing_levels = await self.rebate_repo.get_existing_levels(purchase_id)

        created: list[Rebate] = []
        for level, receiver_id in upline:
            config = configs.get(level)
            if config is None or level in existing_levels:
                continue

            rebate = Rebate(
                purchase_id=purchase.id,
                generator_id=purchase.user_id,
                receiver_id=receiver_id,
                level=level,
                reward_type=config.reward_type,
                percentage=None if config.is_fixed else config.percentage,
                amount=calculate_rebate_amount(config, purchase.total_amount),
                status=RebateStatus.PENDING.value,
            )
            try:
                async with self.session.begin_nested():
                    self.session.add(rebate)
            except IntegrityError:
                # Another worker created this level first
                logger.debug(
                    "Rebate level already exists",
                    extra={"purchase_id": purchase_id, "level": level},
                )
                continue

            created.append(rebate)

        await self.session.commit()

        logger.info(
            "Rebates computed",
            extra={
                "purchase_id": purchase_id,
                "generator_id": purchase.user_id,
                "upline_depth": len(upline),
                "rebates_created": len(created),
                "total_amount": str(sum((r.amount for r in created), Decimal("0"))),
            },
        )
        return created

    @translate_db_errors
    async def compute_missing_rebates(self, batch_size: int = 100) -> dict[str, int]:
        """
        Backfill rebates for completed purchases that have none.

        Each purchase is visited once per call, so purchases that yield no
        rows (no rules, no upline) do not stall the scan.

        Args:
            batch_size: Purchase IDs fetched per batch

        Returns:
            Dict with purchases, rebates and failed counts
        """
        stats = {"purchases": 0, "rebates": 0, "failed": 0}
        last_id = 0

        while True:
            purchase_ids = await self.purchase_repo.get_completed_without_rebates(
                limit=batch_size, after_id=last_id
            )
            await self.session.commit()
            if not purchase_ids:
                break

            for purchase_id in purchase_ids:
                last_id = purchase_id
                stats["purchases"] += 1
                try:
                    created = await self.compute_rebates_for_purchase(purchase_id)
                except Exception as e:
                    if is_transient_db_error(e):
                        raise
                    stats["failed"] += 1
                    logger.error(
                        f"Rebate computation failed for purchase {purchase_id}",
                        extra={"purchase_id": purchase_id, "error": str(e)},
                    )
                    continue
                stats["rebates"] += len(created)

        logger.info("Rebate backfill finished", extra=stats)
        return stats
