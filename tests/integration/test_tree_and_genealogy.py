"""Integration tests for the sponsor tree and genealogy reads."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from mlm_rewards.models.enums import PurchaseStatus
from mlm_rewards.services.genealogy import DownlineFilters
from mlm_rewards.services.genealogy_service import GenealogyService
from mlm_rewards.services.tree_service import TreeService
from mlm_rewards.utils.exceptions import InvalidTreeOperationError, NotFoundError


def day(n: int) -> datetime:
    return datetime(2020, 1, n, tzinfo=UTC)


@pytest.fixture
async def tree(factory):
    """
    Sponsor tree with fixed join dates:

        root
        ├── Carol (day 1)
        │   ├── Dave (day 4)
        │   │   └── Frank (day 6)
        │   └── Erin (day 5)
        ├── Alice (day 2)
        └── Bob (day 3)
    """
    root = await factory.user("Root", created_at=day(1))
    carol = await factory.user("Carol", upline=root, created_at=day(1))
    alice = await factory.user("Alice", upline=root, created_at=day(2))
    bob = await factory.user("Bob", upline=root, created_at=day(3))
    dave = await factory.user("Dave", upline=carol, created_at=day(4))
    erin = await factory.user("Erin", upline=carol, created_at=day(5))
    frank = await factory.user("Frank", upline=dave, created_at=day(6))
    return {
        "root": root, "carol": carol, "alice": alice, "bob": bob,
        "dave": dave, "erin": erin, "frank": frank,
    }


class TestTreeService:
    """Sponsor tree mutations."""

    @pytest.mark.asyncio
    async def test_register_and_upline_chain(self, session):
        service = TreeService(session)
        a = await service.register_user("A")
        b = await service.register_user("B", upline_id=a.id)
        c = await service.register_user("C", upline_id=b.id)

        chain = await service.get_upline_chain(c.id, 10)
        assert [user.id for user in chain] == [b.id, a.id]

        chain = await service.get_upline_chain(c.id, 1)
        assert [user.id for user in chain] == [b.id]

    @pytest.mark.asyncio
    async def test_register_under_missing_sponsor(self, session):
        with pytest.raises(NotFoundError):
            await TreeService(session).register_user("Orphan", upline_id=999)

    @pytest.mark.asyncio
    async def test_change_upline_rejects_cycle(self, session, tree):
        service = TreeService(session)
        carol_id, frank_id = tree["carol"].id, tree["frank"].id
        with pytest.raises(InvalidTreeOperationError):
            await service.change_upline(carol_id, frank_id)
        with pytest.raises(InvalidTreeOperationError):
            await service.change_upline(carol_id, carol_id)

    @pytest.mark.asyncio
    async def test_change_upline_moves_subtree(self, session, tree):
        service = TreeService(session)
        await service.change_upline(tree["dave"].id, tree["bob"].id)

        chain = await service.get_upline_chain(tree["frank"].id, 10)
        assert [user.id for user in chain] == [
            tree["dave"].id, tree["bob"].id, tree["root"].id
        ]

    @pytest.mark.asyncio
    async def test_detach_to_root(self, session, tree):
        service = TreeService(session)
        await service.change_upline(tree["carol"].id, None)
        assert await service.get_upline_chain(tree["carol"].id, 10) == []


class TestGetDownline:
    """Paged downline traversal."""

    @pytest.mark.asyncio
    async def test_default_order_is_join_date(self, session, tree):
        result = await GenealogyService(session).get_downline(tree["root"].id)

        assert [node.name for node in result.children] == ["Carol", "Alice", "Bob"]
        assert result.node.id == tree["root"].id
        assert result.node.downline_count == 3
        assert all(node.level == 1 for node in result.children)

    @pytest.mark.asyncio
    async def test_nested_levels(self, session, tree):
        result = await GenealogyService(session).get_downline(tree["root"].id)

        carol = result.children[0]
        assert [child.name for child in carol.children] == ["Dave", "Erin"]
        assert carol.downline_count == 2
        dave = carol.children[0]
        assert dave.level == 2
        assert [child.name for child in dave.children] == ["Frank"]
        assert dave.children[0].level == 3

    @pytest.mark.asyncio
    async def test_pagination(self, session, tree):
        service = GenealogyService(session)

        first = await service.get_downline(tree["root"].id, page=1, page_size=2)
        assert [node.name for node in first.children] == ["Carol", "Alice"]
        assert first.pagination.total_items == 3
        assert first.pagination.total_pages == 2
        assert first.pagination.has_next_page
        assert not first.pagination.has_previous_page

        second = await service.get_downline(tree["root"].id, page=2, page_size=2)
        assert [node.name for node in second.children] == ["Bob"]
        assert not second.pagination.has_next_page
        assert second.pagination.has_previous_page

    @pytest.mark.asyncio
    async def test_sort_by_name_desc(self, session, tree):
        result = await GenealogyService(session).get_downline(
            tree["root"].id,
            filters=DownlineFilters(sort_by="name", sort_direction="desc"),
        )
        assert [node.name for node in result.children] == ["Carol", "Bob", "Alice"]

    @pytest.mark.asyncio
    async def test_sort_ties_broken_by_id(self, session, factory):
        root = await factory.user("Tie Root")
        first = await factory.user("Twin A", upline=root, created_at=day(9))
        second = await factory.user("Twin B", upline=root, created_at=day(9))

        result = await GenealogyService(session).get_downline(root.id)
        assert [node.id for node in result.children] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_desc_sort_ties_broken_by_ascending_id(self, session, factory):
        root = await factory.user("Desc Tie Root")
        older = await factory.user("Early", upline=root, created_at=day(1))
        first = await factory.user("Twin C", upline=root, created_at=day(9))
        second = await factory.user("Twin D", upline=root, created_at=day(9))

        result = await GenealogyService(session).get_downline(
            root.id, filters=DownlineFilters(sort_direction="desc")
        )
        assert [node.id for node in result.children] == [first.id, second.id, older.id]

    @pytest.mark.asyncio
    async def test_joined_filters(self, session, tree):
        result = await GenealogyService(session).get_downline(
            tree["root"].id,
            filters=DownlineFilters(joined_after=day(2), joined_before=day(3)),
        )
        assert [node.name for node in result.children] == ["Alice", "Bob"]
        assert result.pagination.total_items == 2

    @pytest.mark.asyncio
    async def test_rank_filter_and_sort(self, session, factory):
        silver = await factory.rank(1, "Silver")
        gold = await factory.rank(2, "Gold")
        root = await factory.user("Ranked Root")
        await factory.user("Gina", upline=root, rank=gold, created_at=day(1))
        await factory.user("Hank", upline=root, created_at=day(2))
        await factory.user("Ivy", upline=root, rank=silver, created_at=day(3))

        service = GenealogyService(session)
        by_rank = await service.get_downline(
            root.id, filters=DownlineFilters(sort_by="rank", sort_direction="desc")
        )
        assert [node.name for node in by_rank.children] == ["Gina", "Ivy", "Hank"]
        assert by_rank.children[0].rank_name == "Gold"

        only_silver = await service.get_downline(
            root.id, filters=DownlineFilters(rank_id=silver.id)
        )
        assert [node.name for node in only_silver.children] == ["Ivy"]

    @pytest.mark.asyncio
    async def test_max_level_cut_off(self, session, tree):
        result = await GenealogyService(session).get_downline(
            tree["root"].id, max_level=2
        )
        dave = result.children[0].children[0]
        assert dave.children == []
        assert dave.has_more_children
        assert dave.downline_count == 1

        erin = result.children[0].children[1]
        assert not erin.has_more_children

    @pytest.mark.asyncio
    async def test_lazy_load(self, session, tree):
        result = await GenealogyService(session).get_downline(
            tree["root"].id,
            filters=DownlineFilters(lazy_load=True, initial_depth=1),
        )
        carol = result.children[0]
        assert carol.children == []
        assert carol.has_more_children
        assert result.metadata["depth_loaded"] == 1
        assert result.metadata["lazy_loading"] is True

    @pytest.mark.asyncio
    async def test_load_additional_levels(self, session, tree):
        children = await GenealogyService(session).load_additional_levels(
            tree["carol"].id, current_level=1, max_level=5
        )
        assert [child.name for child in children] == ["Dave", "Erin"]
        assert children[0].level == 2
        assert children[0].children[0].name == "Frank"
        assert children[0].children[0].level == 3

    @pytest.mark.asyncio
    async def test_unknown_user(self, session):
        service = GenealogyService(session)
        with pytest.raises(NotFoundError):
            await service.get_downline(12345)
        with pytest.raises(NotFoundError):
            await service.get_level_counts(12345)


class TestLevelCounts:
    """Per-level member counts."""

    @pytest.mark.asyncio
    async def test_counts_include_empty_levels(self, session, tree):
        counts = await GenealogyService(session).get_level_counts(
            tree["root"].id, max_level=5
        )
        assert counts == {1: 3, 2: 2, 3: 1, 4: 0, 5: 0}

    @pytest.mark.asyncio
    async def test_counts_respect_max_level(self, session, tree):
        counts = await GenealogyService(session).get_level_counts(
            tree["root"].id, max_level=2
        )
        assert counts == {1: 3, 2: 2}

    @pytest.mark.asyncio
    async def test_zero_max_level_is_not_the_default(self, session, tree):
        service = GenealogyService(session)
        root_id = tree["root"].id

        assert await service.get_level_counts(root_id, max_level=0) == {}
        assert await service.get_downline_ids(root_id, max_level=0) == []
        assert len(await service.get_downline_ids(root_id, max_level=1)) == 3

    @pytest.mark.asyncio
    async def test_downline_ids(self, session, tree):
        ids = await GenealogyService(session).get_downline_ids(tree["carol"].id)
        assert sorted(ids) == sorted(
            [tree["dave"].id, tree["erin"].id, tree["frank"].id]
        )


class TestStatistics:
    """Performance metrics and downline statistics."""

    @pytest.mark.asyncio
    async def test_performance_metrics(self, session, factory):
        product = await factory.product()
        gold = await factory.rank(1, "Gold")
        leader, member, deep = await factory.chain("Leader", "Member", "Deep")
        leader.rank_id = gold.id
        await session.commit()

        await factory.purchase(leader, product, "100")
        await factory.purchase(member, product, "50")
        await factory.purchase(deep, product, "25")
        await factory.purchase(deep, product, "999", status=PurchaseStatus.PENDING)

        metrics = await GenealogyService(session).get_performance_metrics(leader.id)

        assert metrics.personal_sales == Decimal("100")
        assert metrics.team_sales == Decimal("75")
        assert metrics.total_sales == Decimal("175")
        assert metrics.team_size == 2
        assert metrics.new_team_members == 2
        assert metrics.rebates_earned == Decimal("0")
        # 1 purchase * 10 + 1 referral * 20
        assert metrics.activity_score == 30
        assert [entry["rank_name"] for entry in metrics.rank_history] == ["Gold"]

    @pytest.mark.asyncio
    async def test_downline_statistics(self, session, factory):
        product = await factory.product()
        silver = await factory.rank(1, "Silver")
        root = await factory.user("Stats Root")
        buyer = await factory.user("Buyer", upline=root, rank=silver)
        await factory.user("Idle", upline=root)
        await factory.user("Idle Child", upline=buyer)
        await factory.purchase(buyer, product, "10")

        stats = await GenealogyService(session).get_downline_statistics(
            root.id, max_level=3
        )

        assert stats.total_users == 4
        assert stats.level_counts == {1: 2, 2: 1, 3: 0}
        assert stats.direct_downline_count == 2
        assert stats.total_downline_balance == Decimal("0")
        assert stats.active_users_last_30_days == 1
        assert stats.active_user_percentage == pytest.approx(33.33)
        distribution = {row["rank_name"]: row["count"] for row in stats.rank_distribution}
        assert distribution == {"Unranked": 2, "Silver": 1}

    @pytest.mark.asyncio
    async def test_downline_statistics_respect_max_level(self, session, factory):
        product = await factory.product()
        root, first, second, third = await factory.chain(
            "Deep Root", "Level One", "Level Two", "Level Three"
        )
        for member in (first, second, third):
            await factory.purchase(member, product, "10")

        stats = await GenealogyService(session).get_downline_statistics(
            root.id, max_level=1
        )

        assert stats.level_counts == {1: 1}
        assert stats.total_users == 2
        assert stats.active_users_last_30_days == 1
        assert stats.active_user_percentage == pytest.approx(100.0)
        assert sum(row["count"] for row in stats.rank_distribution) == 1
