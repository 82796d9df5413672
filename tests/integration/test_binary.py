"""
Integration tests for the binary plan.

Tests cover:
- Placement options and next free slot search
- Placement validation (occupied, self, twice, cycle) and ancestor lookup
- Commission simulation for a period
- Snapshot idempotency, malformed placements and top earners
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from mlm_rewards.models import MonthlyPerformance
from mlm_rewards.models.enums import CommissionType, PurchaseStatus
from mlm_rewards.repositories.binary_placement_repository import (
    BinaryPlacementRepository,
)
from mlm_rewards.services.binary_service import BinaryService
from mlm_rewards.utils.exceptions import InvalidTreeOperationError, NotFoundError

MARCH = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)

BUSINESS_COLUMNS = (
    "personal_pv",
    "left_leg_pv",
    "right_leg_pv",
    "total_group_pv",
    "direct_referral_bonus",
    "level_commissions",
    "group_volume_bonus",
    "total_earnings",
)


async def period_rows(session, year: int, month: int) -> dict[int, tuple]:
    result = await session.execute(
        select(MonthlyPerformance)
        .where(MonthlyPerformance.year == year, MonthlyPerformance.month == month)
        .execution_options(populate_existing=True)
    )
    return {
        row.user_id: tuple(getattr(row, column) for column in BUSINESS_COLUMNS)
        for row in result.scalars().all()
    }


@pytest.fixture
async def binary_tree(factory):
    """
    Placement tree:

            root
           /    \\
        left    right
        /
    left_left

    left and right are sponsored by root and joined in March 2026;
    left_left is sponsored by left and joined in February.
    """
    root = await factory.user("Root", created_at=datetime(2026, 1, 5, tzinfo=UTC))
    left = await factory.user("Left", upline=root, created_at=datetime(2026, 3, 2, tzinfo=UTC))
    right = await factory.user("Right", upline=root, created_at=datetime(2026, 3, 3, tzinfo=UTC))
    left_left = await factory.user(
        "Left Left", upline=left, created_at=datetime(2026, 2, 10, tzinfo=UTC)
    )

    await factory.placement(left, root, "left")
    await factory.placement(right, root, "right")
    await factory.placement(left_left, left, "left")

    product = await factory.product()
    await factory.purchase(root, product, total_pv="50", created_at=MARCH)
    await factory.purchase(left, product, total_pv="300", created_at=MARCH)
    await factory.purchase(right, product, total_pv="100", created_at=MARCH)
    await factory.purchase(left_left, product, total_pv="200", created_at=MARCH)
    # Outside the period or not completed
    await factory.purchase(
        right, product, total_pv="900", created_at=datetime(2026, 4, 1, tzinfo=UTC)
    )
    await factory.purchase(
        right, product, total_pv="900", status=PurchaseStatus.PENDING, created_at=MARCH
    )

    await factory.commission_rate(CommissionType.DIRECT_REFERRAL, fixed_amount="25")
    await factory.commission_rate(CommissionType.LEVEL_COMMISSION, level=1, percentage="5")
    await factory.commission_rate(CommissionType.LEVEL_COMMISSION, level=2, fixed_amount="2")
    await factory.commission_rate(
        CommissionType.GROUP_VOLUME, fixed_amount="500", threshold_pv="100"
    )
    await factory.commission_rate(
        CommissionType.GROUP_VOLUME, percentage="50", threshold_pv="100", active=False
    )

    return {"root": root, "left": left, "right": right, "left_left": left_left}


class TestPlacement:
    """Placement management."""

    @pytest.mark.asyncio
    async def test_placement_options(self, session, binary_tree):
        service = BinaryService(session)

        assert await service.get_placement_options(binary_tree["root"].id) == []
        assert await service.get_placement_options(binary_tree["left"].id) == ["right"]
        assert await service.get_placement_options(binary_tree["right"].id) == [
            "left", "right"
        ]

    @pytest.mark.asyncio
    async def test_find_next_available_placement(self, session, binary_tree):
        service = BinaryService(session)

        assert await service.find_next_available_placement(
            binary_tree["root"].id
        ) == (binary_tree["left"].id, "right")
        assert await service.find_next_available_placement(
            binary_tree["root"].id, "right"
        ) == (binary_tree["right"].id, "left")
        assert await service.find_next_available_placement(
            binary_tree["left"].id, "right"
        ) == (binary_tree["left"].id, "right")

    @pytest.mark.asyncio
    async def test_place_user(self, session, factory, binary_tree):
        newcomer = await factory.user("Newcomer")
        service = BinaryService(session)

        placement = await service.place_user(newcomer.id, binary_tree["right"].id, "left")

        assert placement.parent_id == binary_tree["right"].id
        assert placement.position == "left"
        assert await service.get_placement_options(binary_tree["right"].id) == ["right"]

    @pytest.mark.asyncio
    async def test_occupied_slot_rejected(self, session, factory, binary_tree):
        newcomer = await factory.user("Late")
        with pytest.raises(InvalidTreeOperationError, match="already filled"):
            await BinaryService(session).place_user(
                newcomer.id, binary_tree["root"].id, "left"
            )

    @pytest.mark.asyncio
    async def test_invalid_placements(self, session, factory, binary_tree):
        service = BinaryService(session)
        newcomer_id = (await factory.user("Someone")).id
        # Failed placements roll back and expire loaded rows
        ids = {name: user.id for name, user in binary_tree.items()}

        with pytest.raises(InvalidTreeOperationError):
            await service.place_user(newcomer_id, newcomer_id, "left")
        with pytest.raises(InvalidTreeOperationError, match="already placed"):
            await service.place_user(ids["left"], ids["right"], "left")
        with pytest.raises(InvalidTreeOperationError, match="binary downline"):
            await service.place_user(ids["root"], ids["left_left"], "left")
        with pytest.raises(InvalidTreeOperationError, match="Invalid position"):
            await service.place_user(newcomer_id, ids["right"], "middle")
        with pytest.raises(NotFoundError):
            await service.place_user(9999, ids["right"], "left")
        with pytest.raises(NotFoundError):
            await service.get_placement_options(9999)

        assert await service.get_placement_options(ids["right"]) == ["left", "right"]

    @pytest.mark.asyncio
    async def test_placement_ancestors(self, session, factory, binary_tree):
        repo = BinaryPlacementRepository(session)
        ids = {name: user.id for name, user in binary_tree.items()}

        assert await repo.get_ancestor_ids(ids["left_left"], 100) == {ids["left"], ids["root"]}
        assert await repo.get_ancestor_ids(ids["left_left"], 1) == {ids["left"]}
        assert await repo.get_ancestor_ids(ids["root"], 100) == set()

        first = await factory.user("Ring One")
        second = await factory.user("Ring Two")
        await factory.placement(first, second, "left")
        await factory.placement(second, first, "left")

        assert await repo.get_ancestor_ids(first.id, 100) == {first.id, second.id}


class TestCommissions:
    """Commission simulation and snapshots."""

    @pytest.mark.asyncio
    async def test_calculate_commissions_for_root(self, session, binary_tree):
        result = await BinaryService(session).calculate_commissions(
            binary_tree["root"].id, 2026, 3
        )

        assert result.personal_pv == Decimal("50")
        assert result.left_leg_pv == Decimal("500")
        assert result.right_leg_pv == Decimal("100")
        assert result.total_group_pv == Decimal("600")
        # Two new referrals at 25 each
        assert result.direct_referral_bonus == Decimal("50.00")
        # 5% of 400 PV on level 1 plus 2 for one purchase on level 2
        assert result.level_commissions == Decimal("22.00")
        assert result.level_breakdown == {1: Decimal("20.00"), 2: Decimal("2.00")}
        # One block of 100 on the weaker leg
        assert result.group_volume_bonus == Decimal("500.00")
        assert result.total_earnings == Decimal("572.00")

    @pytest.mark.asyncio
    async def test_calculate_commissions_outside_period(self, session, binary_tree):
        result = await BinaryService(session).calculate_commissions(
            binary_tree["right"].id, 2026, 4
        )

        assert result.personal_pv == Decimal("900")
        assert result.total_earnings == Decimal("0")

    @pytest.mark.asyncio
    async def test_calculate_commissions_unknown_user(self, session, binary_tree):
        with pytest.raises(NotFoundError):
            await BinaryService(session).calculate_commissions(9999, 2026, 3)

    @pytest.mark.asyncio
    async def test_snapshot_is_idempotent(self, session, binary_tree):
        service = BinaryService(session)

        first = await service.run_monthly_snapshot(2026, 3)
        rows_first = await period_rows(session, 2026, 3)
        second = await service.run_monthly_snapshot(2026, 3)
        rows_second = await period_rows(session, 2026, 3)

        assert first.records == 4
        assert first.failed == 0
        assert first.total_earnings == Decimal("582.00")
        assert second.as_dict() == first.as_dict()
        assert rows_first == rows_second
        assert await session.scalar(select(func.count(MonthlyPerformance.id))) == 4

    @pytest.mark.asyncio
    async def test_empty_period_writes_nothing(self, session, binary_tree):
        summary = await BinaryService(session).run_monthly_snapshot(2025, 1)

        assert summary.processed == 4
        assert summary.records == 0
        assert await period_rows(session, 2025, 1) == {}

    @pytest.mark.asyncio
    async def test_malformed_placement_skipped(self, session, factory, binary_tree):
        first = await factory.user("Loop One")
        second = await factory.user("Loop Two")
        await factory.placement(first, second, "left")
        await factory.placement(second, first, "left")
        service = BinaryService(session)

        summary = await service.run_monthly_snapshot(2026, 3)

        assert summary.skipped_users == [first.id, second.id]
        assert summary.records == 4
        with pytest.raises(InvalidTreeOperationError):
            await service.calculate_commissions(first.id, 2026, 3)

    @pytest.mark.asyncio
    async def test_top_earners_and_history(self, session, binary_tree):
        service = BinaryService(session)
        await service.run_monthly_snapshot(2026, 3)

        top = await service.get_top_earners(2026, 3, limit=2)

        assert [entry["user_id"] for entry in top] == [
            binary_tree["root"].id, binary_tree["left"].id
        ]
        assert top[0]["name"] == "Root"
        assert top[0]["total_earnings"] == Decimal("572")
        assert top[1]["level_commissions"] == Decimal("10")

        history = await service.get_monthly_performance(binary_tree["root"].id)
        assert [(row.year, row.month) for row in history] == [(2026, 3)]
        assert await service.get_monthly_performance(binary_tree["root"].id, 2026, 2) == []
