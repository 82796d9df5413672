"""
Binary commission service.

Placement, commission simulation and monthly snapshots for the binary plan.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.binary_placement import BinaryPlacement
from mlm_rewards.models.enums import LegPosition
from mlm_rewards.models.monthly_performance import MonthlyPerformance
from mlm_rewards.services.base_service import BaseService, log_operation
from mlm_rewards.services.binary import (
    BinaryCommissionCalculator,
    BinaryPlacementManager,
    CommissionResult,
    MonthlySnapshotManager,
    SnapshotSummary,
)


class BinaryService(BaseService):
    """Binary plan service delegating to placement, calculator and snapshot managers."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize binary service."""
        super().__init__(session)
        self.placement = BinaryPlacementManager(session)
        self.calculator = BinaryCommissionCalculator(session)
        self.snapshots = MonthlySnapshotManager(session)

    async def get_placement_options(self, parent_id: int) -> list[str]:
        """Free positions under a user."""
        return await self.placement.get_placement_options(parent_id)

    async def find_next_available_placement(
        self,
        start_user_id: int,
        preferred_leg: LegPosition | str = LegPosition.LEFT,
    ) -> tuple[int, str]:
        """First free (parent, position) under start_user_id."""
        return await self.placement.find_next_available_placement(
            start_user_id, preferred_leg
        )

    async def place_user(
        self, user_id: int, parent_id: int, position: LegPosition | str
    ) -> BinaryPlacement:
        """Place a user into a free slot."""
        return await self.placement.place_user(user_id, parent_id, position)

    async def calculate_commissions(
        self, user_id: int, year: int, month: int
    ) -> CommissionResult:
        """Commission simulation for one user (no writes)."""
        return await self.calculator.calculate_commissions(user_id, year, month)

    @log_operation
    async def run_monthly_snapshot(self, year: int, month: int) -> SnapshotSummary:
        """Compute and store the period snapshot for every user."""
        return await self.snapshots.run_monthly_snapshot(year, month)

    async def get_monthly_performance(
        self,
        user_id: int,
        year: int | None = None,
        month: int | None = None,
    ) -> list[MonthlyPerformance]:
        """Stored snapshot rows of a user."""
        return await self.snapshots.get_monthly_performance(user_id, year, month)

    async def get_top_earners(
        self, year: int, month: int, limit: int = 10
    ) -> list[dict]:
        """Highest earners of a period."""
        return await self.snapshots.get_top_earners(year, month, limit)
