"""
Binary commission calculator.

Loads one period's data (placements, in-period volumes, new referrals and
active rates) and computes commission results from it.
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.settings import settings
from mlm_rewards.models.user import User
from mlm_rewards.repositories.binary_placement_repository import (
    BinaryPlacementRepository,
)
from mlm_rewards.repositories.commission_rate_repository import (
    CommissionRateRepository,
)
from mlm_rewards.repositories.purchase_repository import PurchaseRepository
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.services.binary.volume import (
    CommissionResult,
    PlacementGraph,
    RateTable,
    compute_user_commissions,
)
from mlm_rewards.utils.datetime_utils import month_bounds
from mlm_rewards.utils.db_decorators import translate_db_errors
from mlm_rewards.utils.exceptions import InvalidTreeOperationError, NotFoundError


@dataclass
class PeriodContext:
    """Everything needed to compute commissions for one month."""

    year: int
    month: int
    graph: PlacementGraph
    totals: dict[int, Decimal]
    personal_pv: dict[int, Decimal]
    purchase_counts: dict[int, int]
    new_referrals: dict[int, list[int]]
    rates: RateTable
    max_level: int

    def compute(self, user_id: int) -> CommissionResult:
        """
        Compute commissions for a well-formed user.

        Raises:
            InvalidTreeOperationError: If the user's placement is malformed
        """
        if user_id in self.graph.malformed:
            raise InvalidTreeOperationError(
                f"Placement of user {user_id} is cyclic or dangling"
            )
        return compute_user_commissions(
            user_id=user_id,
            year=self.year,
            month=self.month,
            graph=self.graph,
            totals=self.totals,
            personal_pv=self.personal_pv,
            purchase_counts=self.purchase_counts,
            new_referrals=self.new_referrals.get(user_id, []),
            rates=self.rates,
            max_level=self.max_level,
        )


class BinaryCommissionCalculator:
    """Builds period contexts and computes commissions."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission calculator."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.purchase_repo = PurchaseRepository(session)
        self.placement_repo = BinaryPlacementRepository(session)
        self.rate_repo = CommissionRateRepository(session)

    @translate_db_errors
    async def load_period(self, year: int, month: int) -> PeriodContext:
        """
        Load the data for one calendar month (UTC).

        Args:
            year: Period year
            month: Period month (1-12)

        Returns:
            PeriodContext
        """
        start, end = month_bounds(year, month)

        result = await self.session.execute(select(User.id))
        user_ids = set(result.scalars().all())

        graph = PlacementGraph.build(
            user_ids, await self.placement_repo.get_parent_map()
        )

        volumes = await self.purchase_repo.get_period_volume_by_user(start, end)
        personal_pv = {uid: pv for uid, (pv, _) in volumes.items()}
        purchase_counts = {uid: count for uid, (_, count) in volumes.items()}

        return PeriodContext(
            year=year,
            month=month,
            graph=graph,
            totals=graph.subtree_totals(personal_pv),
            personal_pv=personal_pv,
            purchase_counts=purchase_counts,
            new_referrals=await self.user_repo.get_new_referrals_by_sponsor(start, end),
            rates=RateTable.from_rates(await self.rate_repo.get_active()),
            max_level=settings.binary_max_level,
        )

    async def calculate_commissions(
        self, user_id: int, year: int, month: int
    ) -> CommissionResult:
        """
        Simulate commissions for one user without writing anything.

        Raises:
            NotFoundError: If the user does not exist
            InvalidTreeOperationError: If the user's placement is malformed
        """
        if not await self.user_repo.exists(id=user_id):
            raise NotFoundError("User", user_id)

        context = await self.load_period(year, month)
        return context.compute(user_id)
