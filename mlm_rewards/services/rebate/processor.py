"""
Rebate processor.

Credits pending rebates. Each row is its own unit of work: the conditional
status UPDATE is the claim, and the wallet increment plus the ledger row
commit together with it. A lost claim means another processor already
handled the row.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.settings import settings
from mlm_rewards.models.enums import RebateStatus, WalletTransactionType
from mlm_rewards.models.rebate import Rebate
from mlm_rewards.repositories.rebate_repository import RebateRepository
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.repositories.wallet_transaction_repository import (
    WalletTransactionRepository,
)
from mlm_rewards.utils.datetime_utils import utc_now
from mlm_rewards.utils.db_decorators import (
    is_transient_db_error,
    translate_db_errors,
)
from mlm_rewards.utils.exceptions import NotFoundError


class RebateOutcome(StrEnum):
    """Result of processing one rebate."""

    PROCESSED = "processed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ProcessSummary:
    """Result of a processing run."""

    processed: int = 0
    failed: int = 0
    skipped: int = 0
    total_amount: Decimal = Decimal("0")
    failed_ids: list[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        """Summary for logs and job results."""
        return {
            "processed": self.processed,
            "failed": self.failed,
            "skipped": self.skipped,
            "total_amount": str(self.total_amount),
            "failed_ids": list(self.failed_ids),
        }


class RebateProcessor:
    """Processes pending rebates into wallet credits."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize rebate processor.

        Args:
            session: Async database session
        """
        self.session = session
        self.rebate_repo = RebateRepository(session)
        self.user_repo = UserRepository(session)
        self.wallet_tx_repo = WalletTransactionRepository(session)

    @translate_db_errors
    async def process_pending_rebates(
        self,
        batch_size: int | None = None,
        max_batches: int | None = None,
    ) -> ProcessSummary:
        """
        Process pending rebates in keyset-paginated batches.

        Safe to re-run and to run concurrently with other processors.

        Args:
            batch_size: Rows per batch (defaults to settings.rebate_batch_size)
            max_batches: Stop after this many batches (None = until drained)

        Returns:
            ProcessSummary with processed/failed/skipped counts

        Raises:
            TransientError: If storage fails; unprocessed rows stay pending
        """
        batch_size = batch_size or settings.rebate_batch_size
        summary = ProcessSummary()
        last_id = 0
        batches = 0

        while max_batches is None or batches < max_batches:
            rebate_ids = await self._fetch_pending(batch_size, last_id)
            if not rebate_ids:
                break

            for rebate_id in rebate_ids:
                outcome, amount = await self.process_rebate(rebate_id)
                if outcome == RebateOutcome.PROCESSED:
                    summary.processed += 1
                    summary.total_amount += amount
                elif outcome == RebateOutcome.FAILED:
                    summary.failed += 1
                    summary.failed_ids.append(rebate_id)
                else:
                    summary.skipped += 1

            last_id = rebate_ids[-1]
            batches += 1

        logger.info(
            "Rebate processing finished",
            extra={
                "processed": summary.processed,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "total_amount": str(summary.total_amount),
                "batches": batches,
            },
        )
        return summary

    @translate_db_errors
    async def _fetch_pending(self, limit: int, after_id: int) -> list[int]:
        rebate_ids = await self.rebate_repo.get_pending_ids(limit, after_id)
        # Release the read transaction before per-row units of work
        await self.session.commit()
        return rebate_ids

    @translate_db_errors
    async def process_rebate(self, rebate_id: int) -> tuple[RebateOutcome, Decimal]:
        """
        Claim and credit a single rebate.

        Args:
            rebate_id: Rebate ID

        Returns:
            Tuple (outcome, credited amount)

        Raises:
            TransientError: If storage fails; the row stays pending
        """
        rebate = await self.session.get(Rebate, rebate_id, populate_existing=True)
        if rebate is None or rebate.status != RebateStatus.PENDING:
            await self.session.rollback()
            return RebateOutcome.SKIPPED, Decimal("0")

        receiver_id = rebate.receiver_id
        amount = rebate.amount
        level = rebate.level
        purchase_id = rebate.purchase_id

        try:
            if not await self.rebate_repo.claim(rebate_id, utc_now()):
                await self.session.rollback()
                logger.debug(
                    "Rebate already claimed",
                    extra={"rebate_id": rebate_id},
                )
                return RebateOutcome.SKIPPED, Decimal("0")

            if not await self.user_repo.credit_wallet(receiver_id, amount):
                raise NotFoundError("User", receiver_id)

            transaction = await self.wallet_tx_repo.create(
                user_id=receiver_id,
                amount=amount,
                type=WalletTransactionType.REBATE.value,
                description=f"Rebate from level {level} purchase #{purchase_id}",
                status="completed",
            )
            await self.rebate_repo.attach_transaction(rebate_id, transaction.id)
            await self.session.commit()

        except Exception as e:
            await self.session.rollback()
            if is_transient_db_error(e):
                raise
            logger.error(
                f"Failed to process rebate ID {rebate_id}",
                extra={
                    "rebate_id": rebate_id,
                    "receiver_id": receiver_id,
                    "error": str(e),
                },
            )
            await self._mark_failed(rebate_id, f"{type(e).__name__}: {e}")
            return RebateOutcome.FAILED, Decimal("0")

        logger.info(
            "Rebate processed",
            extra={
                "rebate_id": rebate_id,
                "receiver_id": receiver_id,
                "level": level,
                "amount": str(amount),
            },
        )
        return RebateOutcome.PROCESSED, amount

    async def _mark_failed(self, rebate_id: int, reason: str) -> None:
        """Record the failure; a storage error here leaves the row pending."""
        try:
            await self.rebate_repo.mark_failed(rebate_id, reason, utc_now())
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(
                f"Could not mark rebate ID {rebate_id} as failed",
                extra={"rebate_id": rebate_id, "error": str(e)},
            )

    @translate_db_errors
    async def retry_failed_rebates(self, rebate_ids: list[int] | None = None) -> int:
        """
        Move failed rebates back to pending (operator action).

        Args:
            rebate_ids: Restrict to these IDs (all failed rows if None)

        Returns:
            Number of rebates reset
        """
        count = await self.rebate_repo.reset_failed(rebate_ids)
        await self.session.commit()

        logger.info(
            "Failed rebates reset to pending",
            extra={"count": count, "rebate_ids": rebate_ids},
        )
        return count

    @translate_db_errors
    async def get_rebate_stats(self) -> dict[str, dict[str, int | Decimal]]:
        """Count and amount per status."""
        return await self.rebate_repo.get_status_stats()
