"""
Binary placement repository.

Data access layer for BinaryPlacement model.
"""

from sqlalchemy import literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.binary_placement import BinaryPlacement
from mlm_rewards.repositories.base import BaseRepository


class BinaryPlacementRepository(BaseRepository[BinaryPlacement]):
    """Binary placement repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize binary placement repository."""
        super().__init__(BinaryPlacement, session)

    async def get_by_user(self, user_id: int) -> BinaryPlacement | None:
        """Get placement of a user."""
        return await self.get_by(user_id=user_id)

    async def get_ancestor_ids(self, user_id: int, max_depth: int) -> set[int]:
        """
        Get placement ancestors of a user with one recursive CTE.

        Args:
            user_id: Starting user ID
            max_depth: Deepest ancestor level followed; bounds the walk on
                malformed (looping) placements

        Returns:
            Set of ancestor user IDs
        """
        chain = (
            select(
                BinaryPlacement.parent_id.label("parent_id"),
                literal(1).label("depth"),
            )
            .where(
                BinaryPlacement.user_id == user_id,
                BinaryPlacement.parent_id.is_not(None),
            )
            .cte("placement_chain", recursive=True)
        )
        chain = chain.union_all(
            select(
                BinaryPlacement.parent_id,
                (chain.c.depth + 1).label("depth"),
            )
            .join(chain, BinaryPlacement.user_id == chain.c.parent_id)
            .where(
                BinaryPlacement.parent_id.is_not(None),
                chain.c.depth < max_depth,
            )
        )

        result = await self.session.execute(select(chain.c.parent_id).distinct())
        return set(result.scalars().all())

    async def get_children(self, parent_id: int) -> dict[str, int]:
        """
        Get occupied slots under a parent.

        Args:
            parent_id: Placement parent user ID

        Returns:
            Dict mapping position ('left'/'right') to child user ID
        """
        stmt = select(
            BinaryPlacement.position, BinaryPlacement.user_id
        ).where(BinaryPlacement.parent_id == parent_id)
        result = await self.session.execute(stmt)
        return {row.position: row.user_id for row in result.all()}

    async def get_children_batch(
        self, parent_ids: list[int]
    ) -> dict[int, dict[str, int]]:
        """
        Get occupied slots for several parents at once.

        Args:
            parent_ids: Placement parent user IDs

        Returns:
            Dict mapping parent ID to {position: child user ID}
        """
        if not parent_ids:
            return {}

        stmt = select(
            BinaryPlacement.parent_id,
            BinaryPlacement.position,
            BinaryPlacement.user_id,
        ).where(BinaryPlacement.parent_id.in_(parent_ids))
        result = await self.session.execute(stmt)

        slots: dict[int, dict[str, int]] = {}
        for row in result.all():
            slots.setdefault(row.parent_id, {})[row.position] = row.user_id
        return slots

    async def get_parent_map(self) -> dict[int, tuple[int | None, str | None]]:
        """
        Load the whole placement relation.

        Returns:
            Dict mapping user ID to (parent ID, position)
        """
        stmt = select(
            BinaryPlacement.user_id,
            BinaryPlacement.parent_id,
            BinaryPlacement.position,
        )
        result = await self.session.execute(stmt)
        return {
            row.user_id: (row.parent_id, row.position)
            for row in result.all()
        }
