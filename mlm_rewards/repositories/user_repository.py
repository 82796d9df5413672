"""
User repository.

Data access layer for User model: sponsor tree queries and atomic wallet
credits.
"""

from collections.abc import AsyncIterator, Iterable
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.settings import settings
from mlm_rewards.models.rank import Rank
from mlm_rewards.models.user import User
from mlm_rewards.repositories.base import BaseRepository
from mlm_rewards.utils.money import to_decimal


def chunked(ids: list[int], size: int) -> Iterable[list[int]]:
    """Split ids into IN-clause sized chunks."""
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


class UserRepository(BaseRepository[User]):
    """User repository with tree-specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_by_id(self, id: int) -> User | None:
        """
        Get user by ID with the rank loaded.

        Always hits the database so the joined rank is present even when
        the user is already in the identity map.
        """
        return await self.session.get(User, id, populate_existing=True)

    async def get_upline_ids(
        self, user_id: int, max_levels: int
    ) -> list[tuple[int, int]]:
        """
        Get ancestors of a user with one recursive CTE.

        Args:
            user_id: Starting user ID
            max_levels: Deepest level to return

        Returns:
            List of (level, user_id) pairs ordered by level, 1 = direct sponsor
        """
        chain = (
            select(
                User.id.label("id"),
                User.upline_id.label("upline_id"),
                literal(0).label("level"),
            )
            .where(User.id == user_id)
            .cte("upline_chain", recursive=True)
        )
        chain = chain.union_all(
            select(
                User.id,
                User.upline_id,
                (chain.c.level + 1).label("level"),
            )
            .join(chain, User.id == chain.c.upline_id)
            .where(chain.c.level < max_levels)
        )

        stmt = (
            select(chain.c.level, chain.c.id)
            .where(chain.c.level > 0)
            .order_by(chain.c.level)
        )
        result = await self.session.execute(stmt)
        return [(row.level, row.id) for row in result.all()]

    async def get_upline_chain(
        self, user_id: int, max_levels: int
    ) -> list[User]:
        """
        Get ancestor users ordered from direct sponsor upwards.

        Args:
            user_id: Starting user ID
            max_levels: Deepest level to return

        Returns:
            List of users, index 0 is level 1
        """
        pairs = await self.get_upline_ids(user_id, max_levels)
        if not pairs:
            return []

        users = await self.get_by_ids([uid for _, uid in pairs])
        return [users[uid] for _, uid in pairs if uid in users]

    async def get_by_ids(self, user_ids: list[int]) -> dict[int, User]:
        """
        Load users by ID in chunks.

        Args:
            user_ids: User IDs

        Returns:
            Dict mapping user ID to user
        """
        users: dict[int, User] = {}
        for chunk in chunked(list(user_ids), settings.genealogy_batch_size):
            result = await self.session.execute(
                select(User).where(User.id.in_(chunk))
            )
            for user in result.scalars().unique().all():
                users[user.id] = user
        return users

    async def count_direct_downline(
        self, user_id: int, since: datetime | None = None
    ) -> int:
        """
        Count direct referrals.

        Args:
            user_id: Sponsor ID
            since: Only count users created at or after this time

        Returns:
            Number of direct referrals
        """
        stmt = select(func.count(User.id)).where(User.upline_id == user_id)
        if since is not None:
            stmt = stmt.where(User.created_at >= since)

        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_child_ids_batch(
        self, parent_ids: list[int]
    ) -> dict[int, list[int]]:
        """
        Get child IDs for a frontier of parents.

        One ``upline_id IN (...)`` query per chunk of
        settings.genealogy_batch_size parents.

        Args:
            parent_ids: Frontier of parent user IDs

        Returns:
            Dict mapping parent ID to its child IDs (join order)
        """
        children: dict[int, list[int]] = {}
        for chunk in chunked(parent_ids, settings.genealogy_batch_size):
            stmt = (
                select(User.upline_id, User.id)
                .where(User.upline_id.in_(chunk))
                .order_by(User.upline_id, User.created_at, User.id)
            )
            result = await self.session.execute(stmt)
            for row in result.all():
                children.setdefault(row.upline_id, []).append(row.id)
        return children

    async def get_new_referrals_by_sponsor(
        self, start: datetime, end: datetime
    ) -> dict[int, list[int]]:
        """
        Group users created in [start, end) by sponsor.

        Args:
            start: Inclusive lower bound
            end: Exclusive upper bound

        Returns:
            Dict mapping sponsor ID to new referral IDs
        """
        stmt = (
            select(User.upline_id, User.id)
            .where(
                User.upline_id.is_not(None),
                User.created_at >= start,
                User.created_at < end,
            )
            .order_by(User.upline_id, User.created_at, User.id)
        )
        result = await self.session.execute(stmt)

        referrals: dict[int, list[int]] = {}
        for row in result.all():
            referrals.setdefault(row.upline_id, []).append(row.id)
        return referrals

    async def count_created_since(
        self, user_ids: list[int], since: datetime
    ) -> int:
        """
        Count users among user_ids created at or after since.

        Args:
            user_ids: Candidate user IDs
            since: Inclusive lower bound

        Returns:
            Count of matching users
        """
        total = 0
        for chunk in chunked(user_ids, settings.genealogy_batch_size):
            stmt = select(func.count(User.id)).where(
                User.id.in_(chunk), User.created_at >= since
            )
            result = await self.session.execute(stmt)
            total += result.scalar() or 0
        return total

    async def sum_wallet_balance(self, user_ids: list[int]) -> Decimal:
        """
        Sum wallet balances of the given users.

        Args:
            user_ids: User IDs

        Returns:
            Total balance
        """
        total = Decimal("0")
        for chunk in chunked(user_ids, settings.genealogy_batch_size):
            stmt = select(
                func.coalesce(func.sum(User.wallet_balance), 0)
            ).where(User.id.in_(chunk))
            result = await self.session.execute(stmt)
            total += to_decimal(result.scalar())
        return total

    async def get_rank_distribution(
        self, user_ids: list[int]
    ) -> dict[int | None, int]:
        """
        Count users per rank_id.

        Args:
            user_ids: User IDs

        Returns:
            Dict mapping rank_id (None = unranked) to user count
        """
        distribution: dict[int | None, int] = {}
        for chunk in chunked(user_ids, settings.genealogy_batch_size):
            stmt = (
                select(User.rank_id, func.count(User.id).label("count"))
                .where(User.id.in_(chunk))
                .group_by(User.rank_id)
            )
            result = await self.session.execute(stmt)
            for row in result.all():
                distribution[row.rank_id] = (
                    distribution.get(row.rank_id, 0) + row.count
                )
        return distribution

    async def count_with_rank_level_at_least(
        self, user_ids: list[int], min_level: int
    ) -> int:
        """
        Count users among user_ids whose rank level is at least min_level.

        Args:
            user_ids: Candidate user IDs
            min_level: Lowest rank level counted

        Returns:
            Count of matching users (unranked users never match)
        """
        total = 0
        for chunk in chunked(user_ids, settings.genealogy_batch_size):
            stmt = (
                select(func.count(User.id))
                .join(Rank, User.rank_id == Rank.id)
                .where(User.id.in_(chunk), Rank.level >= min_level)
            )
            result = await self.session.execute(stmt)
            total += result.scalar() or 0
        return total

    async def credit_wallet(self, user_id: int, amount: Decimal) -> bool:
        """
        Atomically increase a wallet balance.

        Args:
            user_id: Receiver ID
            amount: Amount to add

        Returns:
            True if a row was updated, False if the user does not exist
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(wallet_balance=User.wallet_balance + amount)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def compare_and_set_rank(
        self,
        user_id: int,
        expected_rank_id: int | None,
        new_rank_id: int,
    ) -> bool:
        """
        Set rank only if it still equals the expected value.

        Args:
            user_id: User ID
            expected_rank_id: Rank read by the caller (None = unranked)
            new_rank_id: Rank to set

        Returns:
            True if the update won, False if another writer changed the rank
        """
        stmt = update(User).where(User.id == user_id)
        if expected_rank_id is None:
            stmt = stmt.where(User.rank_id.is_(None))
        else:
            stmt = stmt.where(User.rank_id == expected_rank_id)

        result = await self.session.execute(
            stmt.values(rank_id=new_rank_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def iter_ids_batched(
        self, batch_size: int = 1000
    ) -> AsyncIterator[list[int]]:
        """
        Generator for getting user IDs in batches to avoid OOM.

        Uses keyset pagination on the primary key.

        Args:
            batch_size: Number of IDs per batch

        Yields:
            Batches of user IDs
        """
        last_id = 0
        while True:
            stmt = (
                select(User.id)
                .where(User.id > last_id)
                .order_by(User.id)
                .limit(batch_size)
            )
            result = await self.session.execute(stmt)
            batch = list(result.scalars().all())

            if not batch:
                break

            yield batch
            last_id = batch[-1]

    async def get_children_batch(
        self, parent_ids: list[int]
    ) -> dict[int, list[User]]:
        """
        Load child users for a frontier of parents.

        Args:
            parent_ids: Frontier of parent user IDs

        Returns:
            Dict mapping parent ID to children ordered by (created_at, id)
        """
        children: dict[int, list[User]] = {}
        for chunk in chunked(parent_ids, settings.genealogy_batch_size):
            stmt = (
                select(User)
                .where(User.upline_id.in_(chunk))
                .order_by(User.upline_id, User.created_at, User.id)
            )
            result = await self.session.execute(stmt)
            for user in result.scalars().unique().all():
                children.setdefault(user.upline_id, []).append(user)
        return children

    async def count_children_batch(
        self, parent_ids: list[int]
    ) -> dict[int, int]:
        """
        Count direct children for several parents in grouped queries.

        Args:
            parent_ids: Parent user IDs

        Returns:
            Dict mapping parent ID to child count (missing = 0)
        """
        counts: dict[int, int] = {}
        for chunk in chunked(parent_ids, settings.genealogy_batch_size):
            stmt = (
                select(User.upline_id, func.count(User.id).label("count"))
                .where(User.upline_id.in_(chunk))
                .group_by(User.upline_id)
            )
            result = await self.session.execute(stmt)
            for row in result.all():
                counts[row.upline_id] = row.count
        return counts
