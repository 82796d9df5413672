"""
Binary placement management module.

Places users into left/right legs. The placement relation must stay a
forest: no occupied slot is overwritten, no user is placed twice, and no
user is placed beneath its own placement descendants.
"""

from collections import deque

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.constants import MAX_TREE_DEPTH
from mlm_rewards.models.binary_placement import BinaryPlacement
from mlm_rewards.models.enums import LegPosition
from mlm_rewards.repositories.binary_placement_repository import (
    BinaryPlacementRepository,
)
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.utils.db_decorators import (
    translate_db_errors,
    with_rollback_on_error,
)
from mlm_rewards.utils.exceptions import (
    InvalidTreeOperationError,
    NotFoundError,
)


class BinaryPlacementManager:
    """Manages binary tree placement."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize placement manager."""
        self.session = session
        self.placement_repo = BinaryPlacementRepository(session)
        self.user_repo = UserRepository(session)

    async def _require_user(self, user_id: int) -> None:
        if not await self.user_repo.exists(id=user_id):
            raise NotFoundError("User", user_id)

    @translate_db_errors
    async def get_placement_options(self, parent_id: int) -> list[str]:
        """
        Get free positions under a user.

        Args:
            parent_id: Prospective placement parent

        Returns:
            Free positions, left first

        Raises:
            NotFoundError: If the user does not exist
        """
        await self._require_user(parent_id)
        occupied = await self.placement_repo.get_children(parent_id)
        return [
            position.value
            for position in (LegPosition.LEFT, LegPosition.RIGHT)
            if position.value not in occupied
        ]

    @translate_db_errors
    async def find_next_available_placement(
        self,
        start_user_id: int,
        preferred_leg: LegPosition | str = LegPosition.LEFT,
    ) -> tuple[int, str]:
        """
        Find the first free slot under start_user_id.

        Tries the preferred leg, then the other leg, then searches the
        subtree breadth-first (preferred leg first at the top level, left
        before right below it).

        Args:
            start_user_id: Root of the search
            preferred_leg: Leg tried first

        Returns:
            Tuple (parent ID, position)

        Raises:
            NotFoundError: If the start user does not exist
        """
        await self._require_user(start_user_id)
        preferred = LegPosition(preferred_leg)

        slots = await self.placement_repo.get_children(start_user_id)
        for leg in (preferred, preferred.other):
            if leg.value not in slots:
                return start_user_id, leg.value

        queue = deque(
            slots[leg.value] for leg in (preferred, preferred.other)
        )
        visited = {start_user_id, *queue}

        while queue:
            # Expand a whole frontier per query
            frontier = list(queue)
            queue.clear()
            children = await self.placement_repo.get_children_batch(frontier)

            for user_id in frontier:
                user_slots = children.get(user_id, {})
                for leg in (LegPosition.LEFT, LegPosition.RIGHT):
                    if leg.value not in user_slots:
                        return user_id, leg.value
                for leg in (LegPosition.LEFT, LegPosition.RIGHT):
                    child_id = user_slots[leg.value]
                    if child_id not in visited:
                        visited.add(child_id)
                        queue.append(child_id)

        raise InvalidTreeOperationError(
            f"No available placement under user {start_user_id}"
        )

    @translate_db_errors
    @with_rollback_on_error
    async def place_user(
        self,
        user_id: int,
        parent_id: int,
        position: LegPosition | str,
    ) -> BinaryPlacement:
        """
        Place a user under a parent.

        Args:
            user_id: User to place
            parent_id: Placement parent
            position: 'left' or 'right'

        Returns:
            Created placement

        Raises:
            NotFoundError: If either user does not exist
            InvalidTreeOperationError: For occupied slots, self-placement,
                already placed users, or placements that would form a cycle
        """
        try:
            leg = LegPosition(position)
        except ValueError as e:
            raise InvalidTreeOperationError(
                f"Invalid position {position!r}, expected 'left' or 'right'"
            ) from e

        if user_id == parent_id:
            raise InvalidTreeOperationError(f"User {user_id} cannot be placed under itself")

        await self._require_user(user_id)
        await self._require_user(parent_id)

        if await self.placement_repo.get_by_user(user_id) is not None:
            raise InvalidTreeOperationError(f"User {user_id} is already placed")

        occupied = await self.placement_repo.get_children(parent_id)
        if leg.value in occupied:
            raise InvalidTreeOperationError(
                f"{leg.value.capitalize()} position is already filled for user {parent_id}"
            )

        ancestors = await self.placement_repo.get_ancestor_ids(parent_id, MAX_TREE_DEPTH)
        if user_id in ancestors:
            raise InvalidTreeOperationError(
                f"User {parent_id} is in the binary downline of {user_id}"
            )

        placement = BinaryPlacement(
            user_id=user_id, parent_id=parent_id, position=leg.value
        )
        try:
            async with self.session.begin_nested():
                self.session.add(placement)
        except IntegrityError as e:
            raise InvalidTreeOperationError(
                f"Slot {leg.value} under user {parent_id} was taken concurrently"
            ) from e

        await self.session.commit()

        logger.info(
            "User placed in binary tree",
            extra={
                "user_id": user_id,
                "parent_id": parent_id,
                "position": leg.value,
            },
        )
        return placement
