"""
Integration tests for rank eligibility and advancement.

Tests cover:
- Requirement checks and missing requirements
- One-step promotion with audit rows
- Top of the ladder and lost compare-and-set races
- Qualified downline members at or above a required rank
- Batch evaluation, storage failures and ladder validation
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from mlm_rewards.models.enums import PurchaseStatus
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.services.rank import RankAdvancementManager
from mlm_rewards.services.rank_service import RankService
from mlm_rewards.utils.exceptions import (
    InvalidConfigError,
    NotFoundError,
    TransientError,
)


def connection_lost() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("connection lost"))


@pytest.fixture
async def ladder(factory):
    """Bronze (1), Silver (2), Gold (3)."""
    return [
        await factory.rank(1, "Bronze", 1, "100", "0"),
        await factory.rank(2, "Silver", 2, "1000", "100"),
        await factory.rank(3, "Gold", 5, "10000", "500"),
    ]


@pytest.fixture
async def leader(factory, ladder):
    """
    Unranked user with two referrals.

    Personal sales 200, group volume 200 + 500 + 400 = 1100.
    """
    product = await factory.product()
    leader = await factory.user("Leader")
    first = await factory.user("First", upline=leader)
    second = await factory.user("Second", upline=leader)
    await factory.purchase(leader, product, "200")
    await factory.purchase(first, product, "500")
    await factory.purchase(second, product, "400")
    return leader


class TestEligibility:
    """Requirement evaluation."""

    @pytest.mark.asyncio
    async def test_unranked_user_targets_first_rank(self, session, leader):
        result = await RankService(session).check_eligibility(leader.id)

        assert result.eligible
        assert result.current_rank is None
        assert result.next_rank.name == "Bronze"
        assert result.figures == {
            "direct_referrals": 2,
            "group_volume": Decimal("1100"),
            "personal_sales": Decimal("200"),
        }

    @pytest.mark.asyncio
    async def test_missing_requirements(self, session, factory, ladder):
        gold_candidate = await factory.user("Candidate", rank=ladder[1])

        result = await RankService(session).check_eligibility(gold_candidate.id)

        assert not result.eligible
        assert result.next_rank.name == "Gold"
        assert result.missing_requirements == [
            "direct_referrals", "group_volume", "personal_sales"
        ]
        assert result.checks["group_volume"].required == Decimal("10000")

    @pytest.mark.asyncio
    async def test_pending_purchases_do_not_count(self, session, factory, ladder):
        product = await factory.product("Pending Kit")
        sponsor = await factory.user("Sponsor")
        await factory.user("Recruit", upline=sponsor)
        await factory.purchase(sponsor, product, "5000", status=PurchaseStatus.PENDING)

        result = await RankService(session).check_eligibility(sponsor.id)

        assert result.missing_requirements == ["group_volume"]

    @pytest.mark.asyncio
    async def test_qualified_downline_requirement(self, session, factory):
        starter = await factory.rank(1, "Starter")
        builder = await factory.rank(2, "Builder")
        await factory.rank(3, "Director", min_qualified_downline=2, qualified_rank=builder)
        mentor = await factory.user("Mentor", rank=builder)
        mentor_id = mentor.id
        ace = await factory.user("Ace", upline=mentor, rank=builder)
        rookie = await factory.user("Rookie", upline=mentor, rank=starter)
        await factory.user("Unranked", upline=ace)

        service = RankService(session)
        result = await service.check_eligibility(mentor_id)

        assert not result.eligible
        assert result.missing_requirements == ["qualified_downline"]
        assert result.checks["qualified_downline"].required == 2
        assert result.checks["qualified_downline"].actual == 1

        # Deeper members count too
        await factory.user("Deuce", upline=rookie, rank=builder)
        advanced = await service.process_advancement(mentor_id)

        assert advanced.advanced
        assert advanced.new_rank.name == "Director"
        history = await service.get_advancement_history(mentor_id)
        assert history[0].qualified_downline == 2

    @pytest.mark.asyncio
    async def test_unknown_user(self, session, ladder):
        with pytest.raises(NotFoundError):
            await RankService(session).check_eligibility(9999)


class TestAdvancement:
    """Promotions."""

    @pytest.mark.asyncio
    async def test_promotes_one_step_per_call(self, session, ladder, leader):
        service = RankService(session)
        leader_id = leader.id

        first = await service.process_advancement(leader_id)
        assert first.advanced
        assert first.previous_rank is None
        assert first.new_rank.name == "Bronze"

        second = await service.process_advancement(leader_id)
        assert second.advanced
        assert second.previous_rank.name == "Bronze"
        assert second.new_rank.name == "Silver"

        third = await service.process_advancement(leader_id)
        assert not third.advanced
        assert third.previous_rank.name == "Silver"
        assert third.eligibility.next_rank.name == "Gold"

        history = await service.get_advancement_history(leader_id)
        assert [(h.previous_rank_id, h.new_rank_id) for h in history] == [
            (ladder[0].id, ladder[1].id),
            (None, ladder[0].id),
        ]
        assert history[0].direct_referrals == 2
        assert history[0].group_volume == Decimal("1100")

    @pytest.mark.asyncio
    async def test_top_of_ladder(self, session, factory, ladder):
        champion = await factory.user("Champion", rank=ladder[2])

        result = await RankService(session).process_advancement(champion.id)

        assert not result.advanced
        assert result.previous_rank.name == "Gold"
        assert result.eligibility.next_rank is None
        assert await RankService(session).get_advancement_history(champion.id) == []

    @pytest.mark.asyncio
    async def test_lost_race_does_not_promote(self, session, session_maker, ladder, leader):
        leader_id = leader.id

        async with session_maker() as stale, session_maker() as winner:
            stale_manager = RankAdvancementManager(stale)
            stale_check = await stale_manager.checker.check_eligibility(leader_id)
            await stale.commit()

            assert (await RankAdvancementManager(winner).process_advancement(leader_id)).advanced

            # Replay the evaluation read before the winner committed
            stale_manager.checker.check_eligibility = AsyncMock(return_value=stale_check)
            result = await stale_manager.process_advancement(leader_id)

            assert not result.advanced
            assert result.new_rank is None

        history = await RankService(session).get_advancement_history(leader_id)
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_compare_and_set_rank(self, session, ladder, leader):
        repo = UserRepository(session)
        leader_id = leader.id

        assert await repo.compare_and_set_rank(leader_id, None, ladder[0].id)
        assert not await repo.compare_and_set_rank(leader_id, None, ladder[1].id)
        assert await repo.compare_and_set_rank(leader_id, ladder[0].id, ladder[1].id)
        await session.commit()

        user = await repo.get_by_id(leader_id)
        assert user.rank_level == 2

    @pytest.mark.asyncio
    async def test_batch_run(self, session, ladder, leader):
        service = RankService(session)

        first = await service.process_all_rank_advancements()
        second = await service.process_all_rank_advancements()
        third = await service.process_all_rank_advancements()

        assert first == {"processed": 3, "advanced": 1, "failed": 0}
        assert second["advanced"] == 1
        assert third["advanced"] == 0

    @pytest.mark.asyncio
    async def test_batch_storage_failure_raises_transient(self, session, ladder, leader):
        manager = RankAdvancementManager(session)
        manager.checker.check_eligibility = AsyncMock(side_effect=connection_lost())

        with pytest.raises(TransientError):
            await manager.process_all_rank_advancements()

    @pytest.mark.asyncio
    async def test_batch_read_failure_raises_transient(self, session, ladder):
        async def lost_connection(batch_size):
            raise connection_lost()
            yield

        manager = RankAdvancementManager(session)
        manager.user_repo.iter_ids_batched = lost_connection

        with pytest.raises(TransientError):
            await manager.process_all_rank_advancements()


class TestLadder:
    """Ladder validation."""

    @pytest.mark.asyncio
    async def test_valid_ladder(self, session, ladder):
        ranks = await RankService(session).validate_rank_ladder()
        assert [rank.level for rank in ranks] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_gap_rejected(self, session, factory):
        await factory.rank(1, "Bronze")
        await factory.rank(3, "Gold")

        with pytest.raises(InvalidConfigError, match=r"missing levels: \[2\]"):
            await RankService(session).validate_rank_ladder()

    @pytest.mark.asyncio
    async def test_empty_ladder_rejected(self, session):
        with pytest.raises(InvalidConfigError, match="empty"):
            await RankService(session).validate_rank_ladder()

    @pytest.mark.asyncio
    async def test_qualified_rank_must_be_lower(self, session, factory):
        bronze = await factory.rank(1, "Bronze")
        silver = await factory.rank(2, "Silver")
        bronze.min_qualified_downline = 1
        bronze.qualified_rank_id = silver.id
        await session.commit()

        with pytest.raises(InvalidConfigError, match="lower rank"):
            await RankService(session).validate_rank_ladder()
