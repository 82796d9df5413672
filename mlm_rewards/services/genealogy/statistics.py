"""
Genealogy statistics module.

Performance metrics and downline aggregates. Sales figures only count
completed purchases; rebates earned only count processed rebates.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.constants import (
    ACTIVITY_PURCHASE_WEIGHT,
    ACTIVITY_REFERRAL_WEIGHT,
    ACTIVITY_SCORE_MAX,
    ACTIVITY_WINDOW_DAYS,
)
from mlm_rewards.config.settings import settings
from mlm_rewards.repositories.purchase_repository import PurchaseRepository
from mlm_rewards.repositories.rank_advancement_repository import (
    RankAdvancementRepository,
)
from mlm_rewards.repositories.rank_repository import RankRepository
from mlm_rewards.repositories.rebate_repository import RebateRepository
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.services.genealogy.query_manager import GenealogyQueryManager
from mlm_rewards.services.genealogy.types import (
    DownlineStatistics,
    PerformanceMetrics,
)
from mlm_rewards.utils.datetime_utils import days_ago
from mlm_rewards.utils.db_decorators import translate_db_errors
from mlm_rewards.utils.exceptions import NotFoundError


def activity_score(recent_purchases: int, recent_referrals: int) -> int:
    """
    Score recent activity on a 0..100 scale.

    Args:
        recent_purchases: Completed purchases in the activity window
        recent_referrals: Direct referrals joined in the activity window

    Returns:
        Capped weighted score
    """
    score = (
        recent_purchases * ACTIVITY_PURCHASE_WEIGHT
        + recent_referrals * ACTIVITY_REFERRAL_WEIGHT
    )
    return min(ACTIVITY_SCORE_MAX, score)


class GenealogyStatisticsManager:
    """Provides genealogy analytics."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize statistics manager."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.purchase_repo = PurchaseRepository(session)
        self.rebate_repo = RebateRepository(session)
        self.rank_repo = RankRepository(session)
        self.advancement_repo = RankAdvancementRepository(session)
        self.query_manager = GenealogyQueryManager(session)

    @translate_db_errors
    async def get_performance_metrics(self, user_id: int) -> PerformanceMetrics:
        """
        Get performance metrics for a user.

        Args:
            user_id: User ID

        Returns:
            PerformanceMetrics

        Raises:
            NotFoundError: If the user does not exist
        """
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User", user_id)

        downline_ids = await self.query_manager.get_downline_ids(user_id)

        personal_sales = await self.purchase_repo.sum_completed_amount([user_id])
        team_sales = await self.purchase_repo.sum_completed_amount(downline_ids)
        rebates_earned = await self.rebate_repo.sum_processed_for_receiver(user_id)
        new_team_members = await self.user_repo.count_created_since(
            downline_ids, days_ago(settings.new_member_window_days)
        )

        activity_since = days_ago(ACTIVITY_WINDOW_DAYS)
        recent_purchases = await self.purchase_repo.count_completed_since(
            user_id, activity_since
        )
        recent_referrals = await self.user_repo.count_direct_downline(
            user_id, since=activity_since
        )

        history = await self.advancement_repo.get_history(user_id)
        rank_history = [
            {
                "rank_id": item.new_rank_id,
                "rank_name": item.new_rank.name,
                "achieved_at": item.created_at,
            }
            for item in reversed(history)
        ]
        if not rank_history and user.rank is not None:
            rank_history.append({
                "rank_id": user.rank_id,
                "rank_name": user.rank.name,
                "achieved_at": user.created_at,
            })

        return PerformanceMetrics(
            personal_sales=personal_sales,
            team_sales=team_sales,
            total_sales=personal_sales + team_sales,
            rebates_earned=rebates_earned,
            team_size=len(downline_ids),
            new_team_members=new_team_members,
            rank_history=rank_history,
            activity_score=activity_score(recent_purchases, recent_referrals),
        )

    @translate_db_errors
    async def get_downline_statistics(
        self, user_id: int, max_level: int | None = None
    ) -> DownlineStatistics:
        """
        Get aggregate statistics about a user's downline.

        Args:
            user_id: Root user ID
            max_level: Deepest level counted (defaults to
                settings.genealogy_max_depth); every figure covers the same
                levels

        Returns:
            DownlineStatistics

        Raises:
            NotFoundError: If the user does not exist
        """
        if max_level is None:
            max_level = settings.genealogy_max_depth

        level_counts = await self.query_manager.get_level_counts(user_id, max_level)
        downline_ids = await self.query_manager.get_downline_ids(user_id, max_level)

        # +1 for the root user
        total_users = len(downline_ids) + 1

        total_balance = (
            await self.user_repo.sum_wallet_balance(downline_ids)
            if downline_ids else Decimal("0")
        )

        distribution = await self.user_repo.get_rank_distribution(downline_ids)
        rank_names = {rank.id: rank.name for rank in await self.rank_repo.get_ladder()}
        rank_distribution = [
            {
                "rank_id": rank_id,
                "rank_name": rank_names.get(rank_id, "Unranked" if rank_id is None else "Unknown"),
                "count": count,
            }
            for rank_id, count in sorted(
                distribution.items(), key=lambda item: (item[0] is not None, item[0] or 0)
            )
        ]

        active_users = await self.purchase_repo.count_active_buyers_since(
            downline_ids, days_ago(settings.new_member_window_days)
        )
        active_percentage = (
            round(active_users / (total_users - 1) * 100, 2)
            if total_users > 1 else 0.0
        )

        return DownlineStatistics(
            total_users=total_users,
            level_counts=level_counts,
            direct_downline_count=level_counts.get(1, 0),
            total_downline_balance=total_balance,
            rank_distribution=rank_distribution,
            active_users_last_30_days=active_users,
            active_user_percentage=active_percentage,
        )
