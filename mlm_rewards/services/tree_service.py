"""
Sponsor tree service.

Registration and re-sponsoring keep the upline relation an acyclic forest.
"""

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.constants import MAX_TREE_DEPTH
from mlm_rewards.models.user import User
from mlm_rewards.repositories.rank_repository import RankRepository
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.services.base_service import BaseService, transaction
from mlm_rewards.utils.db_decorators import translate_db_errors
from mlm_rewards.utils.exceptions import (
    InvalidTreeOperationError,
    NotFoundError,
)


class TreeService(BaseService):
    """Mutations and ancestry reads on the sponsor tree."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize tree service."""
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.rank_repo = RankRepository(session)

    @translate_db_errors
    @transaction
    async def register_user(
        self,
        name: str,
        email: str | None = None,
        upline_id: int | None = None,
        rank_id: int | None = None,
    ) -> User:
        """
        Create a user under an existing sponsor.

        Args:
            name: Display name
            email: Optional unique email
            upline_id: Sponsor ID (None creates a root)
            rank_id: Initial rank (None = unranked)

        Returns:
            Created user

        Raises:
            NotFoundError: If sponsor or rank does not exist
        """
        if upline_id is not None and not await self.user_repo.exists(id=upline_id):
            raise NotFoundError("User", upline_id)
        if rank_id is not None and not await self.rank_repo.exists(id=rank_id):
            raise NotFoundError("Rank", rank_id)

        user = await self.user_repo.create(
            name=name, email=email, upline_id=upline_id, rank_id=rank_id
        )

        self.logger.info(
            "User registered",
            extra={"user_id": user.id, "upline_id": upline_id},
        )
        return user

    @translate_db_errors
    @transaction
    async def change_upline(self, user_id: int, new_upline_id: int | None) -> None:
        """
        Re-sponsor a user.

        Args:
            user_id: User to move
            new_upline_id: New sponsor (None detaches into a root)

        Raises:
            NotFoundError: If either user does not exist
            InvalidTreeOperationError: If the move would create a cycle
        """
        if not await self.user_repo.exists(id=user_id):
            raise NotFoundError("User", user_id)

        if new_upline_id is not None:
            if new_upline_id == user_id:
                raise InvalidTreeOperationError(
                    f"User {user_id} cannot sponsor itself"
                )
            if not await self.user_repo.exists(id=new_upline_id):
                raise NotFoundError("User", new_upline_id)

            ancestors = await self.user_repo.get_upline_ids(
                new_upline_id, MAX_TREE_DEPTH
            )
            if any(ancestor_id == user_id for _, ancestor_id in ancestors):
                self.logger.warning(
                    "Upline change rejected: cycle",
                    extra={"user_id": user_id, "new_upline_id": new_upline_id},
                )
                raise InvalidTreeOperationError(
                    f"User {new_upline_id} is in the downline of {user_id}"
                )

        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(upline_id=new_upline_id)
            .execution_options(synchronize_session=False)
        )

        self.logger.info(
            "Upline changed",
            extra={"user_id": user_id, "new_upline_id": new_upline_id},
        )

    @translate_db_errors
    async def get_upline_chain(
        self, user_id: int, max_levels: int
    ) -> list[User]:
        """
        Get ancestors ordered by level (index 0 = direct sponsor).

        Raises:
            NotFoundError: If user does not exist
        """
        if not await self.user_repo.exists(id=user_id):
            raise NotFoundError("User", user_id)
        return await self.user_repo.get_upline_chain(user_id, max_levels)
