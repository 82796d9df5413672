"""
Base repository.

Primary-key and filter lookups shared by the rewards repositories. Writes
only flush; the calling service owns the commit.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic data access for one model.

    Type Parameters:
        ModelType: SQLAlchemy model class

    Example:
        class RankRepository(BaseRepository[Rank]):
            def __init__(self, session: AsyncSession):
                super().__init__(Rank, session)
    """

    def __init__(
        self, model: type[ModelType], session: AsyncSession
    ) -> None:
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> ModelType | None:
        """Get entity by primary key (identity map first)."""
        return await self.session.get(self.model, id)

    async def get_by(self, **filters: Any) -> ModelType | None:
        """
        Get the first entity matching column filters.

        Args:
            **filters: Column filters

        Returns:
            Entity with the lowest ID among matches, or None
        """
        stmt = (
            select(self.model)
            .filter_by(**filters)
            .order_by(self.model.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def exists(self, **filters: Any) -> bool:
        """True if any row matches the filters."""
        stmt = select(exists().where(
            *(getattr(self.model, key) == value for key, value in filters.items())
        ))
        result = await self.session.execute(stmt)
        return bool(result.scalar())

    async def create(self, **data: Any) -> ModelType:
        """
        Insert an entity and load server-side defaults.

        Args:
            **data: Column values

        Returns:
            Created entity with its ID assigned
        """
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(self, id: int, **data: Any) -> ModelType | None:
        """
        Set attributes on an entity.

        Args:
            id: Entity ID
            **data: Column values

        Returns:
            Updated entity or None if not found
        """
        entity = await self.get_by_id(id)
        if entity is None:
            return None

        for key, value in data.items():
            setattr(entity, key, value)

        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def delete(self, id: int) -> bool:
        """
        Delete entity by ID.

        Returns:
            True if a row was deleted
        """
        result = await self.session.execute(
            delete(self.model).where(self.model.id == id)
        )
        await self.session.flush()
        return result.rowcount > 0
