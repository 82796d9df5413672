"""
Rank eligibility module.

Compares a user's figures against the requirements of the next rank on
the ladder (the rank whose level is one above the user's current level).
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.rank import Rank
from mlm_rewards.models.user import User
from mlm_rewards.repositories.purchase_repository import PurchaseRepository
from mlm_rewards.repositories.rank_repository import RankRepository
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.services.genealogy.query_manager import GenealogyQueryManager
from mlm_rewards.utils.db_decorators import translate_db_errors
from mlm_rewards.utils.exceptions import InvalidConfigError, NotFoundError


@dataclass
class RequirementCheck:
    """One requirement compared with the user's actual figure."""

    required: Decimal | int
    actual: Decimal | int

    @property
    def qualified(self) -> bool:
        """True when the actual figure meets the requirement."""
        return self.actual >= self.required


@dataclass
class EligibilityResult:
    """Outcome of an eligibility check."""

    user_id: int
    eligible: bool
    current_rank: Rank | None
    next_rank: Rank | None
    missing_requirements: list[str] = field(default_factory=list)
    checks: dict[str, RequirementCheck] = field(default_factory=dict)

    @property
    def figures(self) -> dict[str, Decimal | int]:
        """Actual figures keyed by requirement name."""
        return {name: check.actual for name, check in self.checks.items()}


def requires_qualified_downline(rank: Rank) -> bool:
    """True when the rank asks for downline members of a given rank."""
    return bool(rank.min_qualified_downline) and rank.qualified_rank_id is not None


def evaluate_requirements(
    rank: Rank,
    direct_referrals: int,
    group_volume: Decimal,
    personal_sales: Decimal,
    qualified_downline: int = 0,
) -> dict[str, RequirementCheck]:
    """
    Build requirement checks for a target rank.

    The qualified downline check is only present when the rank sets both
    min_qualified_downline and qualified_rank_id.

    Args:
        rank: Target rank
        direct_referrals: Number of direct sponsor referrals
        group_volume: Completed sales of the user and the whole downline
        personal_sales: Completed sales of the user
        qualified_downline: Downline members at or above the qualified rank

    Returns:
        Checks keyed by requirement name
    """
    checks = {
        "direct_referrals": RequirementCheck(
            required=rank.min_direct_referrals, actual=direct_referrals
        ),
        "group_volume": RequirementCheck(
            required=Decimal(rank.min_group_volume), actual=group_volume
        ),
        "personal_sales": RequirementCheck(
            required=Decimal(rank.min_personal_sales or 0), actual=personal_sales
        ),
    }
    if requires_qualified_downline(rank):
        checks["qualified_downline"] = RequirementCheck(
            required=rank.min_qualified_downline, actual=qualified_downline
        )
    return checks


def validate_rank_ladder(ranks: list[Rank]) -> None:
    """
    Check that rank levels are exactly 1..N.

    A qualified rank must be a lower rank of the same ladder.

    Args:
        ranks: All ranks

    Raises:
        InvalidConfigError: On gaps, duplicates, a ladder not starting at 1
            or a qualified rank that is not below the rank requiring it
    """
    levels = sorted(rank.level for rank in ranks)
    if not levels:
        raise InvalidConfigError("Rank ladder is empty")
    if len(set(levels)) != len(levels):
        raise InvalidConfigError("Rank ladder has duplicate levels")

    expected = list(range(1, len(levels) + 1))
    if levels != expected:
        missing = sorted(set(range(1, levels[-1] + 1)) - set(levels))
        raise InvalidConfigError(
            f"Rank ladder must be contiguous from 1, missing levels: {missing}"
        )

    by_id = {rank.id: rank for rank in ranks}
    for rank in ranks:
        if rank.qualified_rank_id is None:
            continue
        qualified = by_id.get(rank.qualified_rank_id)
        if qualified is None or qualified.level >= rank.level:
            raise InvalidConfigError(
                f"Rank {rank.name} must qualify on a lower rank, "
                f"got rank ID {rank.qualified_rank_id}"
            )


class RankEligibilityChecker:
    """Evaluates rank advancement eligibility."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize eligibility checker."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.rank_repo = RankRepository(session)
        self.purchase_repo = PurchaseRepository(session)
        self.genealogy = GenealogyQueryManager(session)

    @translate_db_errors
    async def check_eligibility(self, user_id: int) -> EligibilityResult:
        """
        Check whether a user qualifies for the next rank.

        Args:
            user_id: User ID

        Returns:
            EligibilityResult; next_rank is None at the top of the ladder

        Raises:
            NotFoundError: If the user does not exist
        """
        # Reload: rank_id may have been changed by a compare-and-set
        user = await self.session.get(User, user_id, populate_existing=True)
        if user is None:
            raise NotFoundError("User", user_id)

        current_rank = user.rank
        next_rank = await self.rank_repo.get_by_level(user.rank_level + 1)
        if next_rank is None:
            return EligibilityResult(
                user_id=user_id,
                eligible=False,
                current_rank=current_rank,
                next_rank=None,
            )

        downline_ids = await self.genealogy.get_downline_ids(user_id)
        personal_sales = await self.purchase_repo.sum_completed_amount([user_id])
        group_volume = personal_sales + await self.purchase_repo.sum_completed_amount(
            downline_ids
        )
        direct_referrals = await self.user_repo.count_direct_downline(user_id)

        qualified_downline = 0
        if requires_qualified_downline(next_rank):
            qualified_rank = await self.rank_repo.get_by_id(next_rank.qualified_rank_id)
            if qualified_rank is None:
                raise InvalidConfigError(
                    f"Qualified rank {next_rank.qualified_rank_id} of "
                    f"{next_rank.name} does not exist"
                )
            qualified_downline = await self.user_repo.count_with_rank_level_at_least(
                downline_ids, qualified_rank.level
            )

        checks = evaluate_requirements(
            next_rank,
            direct_referrals,
            group_volume,
            personal_sales,
            qualified_downline,
        )
        missing = [name for name, check in checks.items() if not check.qualified]

        return EligibilityResult(
            user_id=user_id,
            eligible=not missing,
            current_rank=current_rank,
            next_rank=next_rank,
            missing_requirements=missing,
            checks=checks,
        )
