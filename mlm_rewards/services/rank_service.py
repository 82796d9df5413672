"""
Rank service.

Eligibility checks and promotions along the rank ladder.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.rank import Rank
from mlm_rewards.models.rank_advancement import RankAdvancement
from mlm_rewards.services.base_service import BaseService, log_operation
from mlm_rewards.services.rank import (
    AdvancementResult,
    EligibilityResult,
    RankAdvancementManager,
)


class RankService(BaseService):
    """Rank service delegating to the advancement manager."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rank service."""
        super().__init__(session)
        self.advancement = RankAdvancementManager(session)

    async def check_eligibility(self, user_id: int) -> EligibilityResult:
        """Requirements of the next rank compared with the user's figures."""
        return await self.advancement.checker.check_eligibility(user_id)

    async def process_advancement(self, user_id: int) -> AdvancementResult:
        """Promote by one rank if eligible."""
        return await self.advancement.process_advancement(user_id)

    @log_operation
    async def process_all_rank_advancements(self) -> dict[str, int]:
        """Evaluate every user once."""
        return await self.advancement.process_all_rank_advancements()

    async def get_advancement_history(self, user_id: int) -> list[RankAdvancement]:
        """Promotions of a user, newest first."""
        return await self.advancement.get_advancement_history(user_id)

    async def validate_rank_ladder(self) -> list[Rank]:
        """Ranks ordered by level; raises InvalidConfigError on gaps."""
        return await self.advancement.validate_rank_ladder()
