"""
Monthly performance repository.

Data access layer for MonthlyPerformance model.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.monthly_performance import MonthlyPerformance
from mlm_rewards.repositories.base import BaseRepository


class MonthlyPerformanceRepository(BaseRepository[MonthlyPerformance]):
    """Monthly performance repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize monthly performance repository."""
        super().__init__(MonthlyPerformance, session)

    async def get_for_period(
        self, user_id: int, year: int, month: int
    ) -> MonthlyPerformance | None:
        """Get the snapshot row for (user, year, month)."""
        return await self.get_by(user_id=user_id, year=year, month=month)

    async def upsert(
        self, user_id: int, year: int, month: int, **values: Any
    ) -> MonthlyPerformance:
        """
        Insert or overwrite the snapshot row for a period.

        A concurrent insert of the same key loses on the unique constraint;
        the loser retries as an update.

        Args:
            user_id: User ID
            year: Snapshot year
            month: Snapshot month
            **values: Volume and bonus columns

        Returns:
            Stored row
        """
        existing = await self.get_for_period(user_id, year, month)
        if existing is None:
            try:
                async with self.session.begin_nested():
                    row = MonthlyPerformance(
                        user_id=user_id, year=year, month=month, **values
                    )
                    self.session.add(row)
                return row
            except IntegrityError:
                existing = await self.get_for_period(user_id, year, month)
                if existing is None:
                    raise

        for key, value in values.items():
            setattr(existing, key, value)
        await self.session.flush()
        return existing

    async def get_history(
        self,
        user_id: int,
        year: int | None = None,
        month: int | None = None,
    ) -> list[MonthlyPerformance]:
        """
        Get snapshot rows for a user, newest period first.

        Args:
            user_id: User ID
            year: Optional year filter
            month: Optional month filter

        Returns:
            List of rows
        """
        stmt = select(MonthlyPerformance).where(
            MonthlyPerformance.user_id == user_id
        )
        if year is not None:
            stmt = stmt.where(MonthlyPerformance.year == year)
        if month is not None:
            stmt = stmt.where(MonthlyPerformance.month == month)

        stmt = stmt.order_by(
            MonthlyPerformance.year.desc(), MonthlyPerformance.month.desc()
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_top_earners(
        self, year: int, month: int, limit: int = 10
    ) -> list[MonthlyPerformance]:
        """
        Get rows with the highest total earnings for a period.

        Args:
            year: Snapshot year
            month: Snapshot month
            limit: Max rows

        Returns:
            Rows ordered by earnings descending, ties by user ID
        """
        stmt = (
            select(MonthlyPerformance)
            .where(
                MonthlyPerformance.year == year,
                MonthlyPerformance.month == month,
            )
            .order_by(
                MonthlyPerformance.total_earnings.desc(),
                MonthlyPerformance.user_id,
            )
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_period_user_ids(self, year: int, month: int) -> set[int]:
        """User IDs that already have a row for the period."""
        stmt = select(MonthlyPerformance.user_id).where(
            MonthlyPerformance.year == year,
            MonthlyPerformance.month == month,
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())
