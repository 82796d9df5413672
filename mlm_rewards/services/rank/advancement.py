"""
Rank advancement module.

Promotions move one step up the ladder per call. The rank change is a
compare-and-set on users.rank_id, written in the same transaction as the
audit row, so concurrent evaluators cannot double-promote or demote.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.rank import Rank
from mlm_rewards.models.rank_advancement import RankAdvancement
from mlm_rewards.repositories.rank_advancement_repository import (
    RankAdvancementRepository,
)
from mlm_rewards.repositories.rank_repository import RankRepository
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.services.rank.eligibility import (
    EligibilityResult,
    RankEligibilityChecker,
    validate_rank_ladder,
)
from mlm_rewards.utils.db_decorators import (
    is_transient_db_error,
    translate_db_errors,
    with_rollback_on_error,
)
from mlm_rewards.utils.exceptions import ConcurrentConflictError, is_benign


@dataclass
class AdvancementResult:
    """Outcome of one advancement attempt."""

    user_id: int
    advanced: bool
    previous_rank: Rank | None = None
    new_rank: Rank | None = None
    eligibility: EligibilityResult | None = None


class RankAdvancementManager:
    """Promotes users along the rank ladder."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize advancement manager."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.rank_repo = RankRepository(session)
        self.advancement_repo = RankAdvancementRepository(session)
        self.checker = RankEligibilityChecker(session)

    async def _promote(self, eligibility: EligibilityResult) -> RankAdvancement:
        """
        Apply the promotion and write the audit row.

        Raises:
            ConcurrentConflictError: If the rank changed since it was read
        """
        user_id = eligibility.user_id
        previous_rank_id = (
            eligibility.current_rank.id if eligibility.current_rank else None
        )

        won = await self.user_repo.compare_and_set_rank(
            user_id, previous_rank_id, eligibility.next_rank.id
        )
        if not won:
            raise ConcurrentConflictError(
                f"Rank of user {user_id} changed during evaluation"
            )

        figures = eligibility.figures
        return await self.advancement_repo.create(
            user_id=user_id,
            previous_rank_id=previous_rank_id,
            new_rank_id=eligibility.next_rank.id,
            direct_referrals=figures.get("direct_referrals", 0),
            group_volume=figures.get("group_volume", 0),
            personal_sales=figures.get("personal_sales", 0),
            qualified_downline=figures.get("qualified_downline", 0),
        )

    @translate_db_errors
    @with_rollback_on_error
    async def process_advancement(self, user_id: int) -> AdvancementResult:
        """
        Promote a user by one rank if eligible.

        Args:
            user_id: User ID

        Returns:
            AdvancementResult; advanced=False when not eligible or when a
            concurrent writer changed the rank first

        Raises:
            NotFoundError: If the user does not exist
        """
        eligibility = await self.checker.check_eligibility(user_id)
        if not eligibility.eligible:
            # Read-only so far; commit keeps the returned ranks loaded
            await self.session.commit()
            return AdvancementResult(
                user_id=user_id,
                advanced=False,
                previous_rank=eligibility.current_rank,
                eligibility=eligibility,
            )

        try:
            await self._promote(eligibility)
        except ConcurrentConflictError as e:
            await self.session.rollback()
            logger.info(
                "Rank advancement lost race",
                extra={"user_id": user_id, "error": str(e)},
            )
            return AdvancementResult(
                user_id=user_id,
                advanced=False,
                previous_rank=eligibility.current_rank,
                eligibility=eligibility,
            )

        await self.session.commit()

        logger.info(
            "User advanced in rank",
            extra={
                "user_id": user_id,
                "previous_rank": (
                    eligibility.current_rank.name if eligibility.current_rank else None
                ),
                "new_rank": eligibility.next_rank.name,
            },
        )
        return AdvancementResult(
            user_id=user_id,
            advanced=True,
            previous_rank=eligibility.current_rank,
            new_rank=eligibility.next_rank,
            eligibility=eligibility,
        )

    @translate_db_errors
    async def process_all_rank_advancements(
        self, batch_size: int = 500
    ) -> dict[str, int]:
        """
        Evaluate every user once.

        Args:
            batch_size: User IDs fetched per batch

        Returns:
            Dict with processed, advanced and failed counts

        Raises:
            TransientError: If storage fails; the run can be repeated
        """
        stats = {"processed": 0, "advanced": 0, "failed": 0}

        async for batch in self.user_repo.iter_ids_batched(batch_size):
            for user_id in batch:
                stats["processed"] += 1
                try:
                    result = await self.process_advancement(user_id)
                except Exception as e:
                    if is_transient_db_error(e):
                        raise
                    if is_benign(e):
                        continue
                    stats["failed"] += 1
                    logger.error(
                        f"Rank advancement failed for user {user_id}",
                        extra={"user_id": user_id, "error": str(e)},
                    )
                    continue
                if result.advanced:
                    stats["advanced"] += 1

        logger.info(
            "Rank advancement run finished",
            extra=stats,
        )
        return stats

    @translate_db_errors
    async def get_advancement_history(self, user_id: int) -> list[RankAdvancement]:
        """Promotions of a user, newest first."""
        return await self.advancement_repo.get_history(user_id)

    @translate_db_errors
    async def validate_rank_ladder(self) -> list[Rank]:
        """
        Load and validate the rank ladder.

        Returns:
            Ranks ordered by level

        Raises:
            InvalidConfigError: If levels are not contiguous from 1
        """
        ranks = await self.rank_repo.get_ladder()
        validate_rank_ladder(ranks)
        return ranks
