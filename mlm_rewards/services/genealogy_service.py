"""
Genealogy service.

Read path over the sponsor tree used by dashboards and reports.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.services.base_service import BaseService
from mlm_rewards.services.genealogy import (
    DownlineFilters,
    DownlineResult,
    DownlineStatistics,
    GenealogyNode,
    GenealogyQueryManager,
    GenealogyStatisticsManager,
    PerformanceMetrics,
)


class GenealogyService(BaseService):
    """Genealogy service delegating to query and statistics managers."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize genealogy service."""
        super().__init__(session)
        self.query_manager = GenealogyQueryManager(session)
        self.statistics_manager = GenealogyStatisticsManager(session)

    async def get_downline(
        self,
        user_id: int,
        max_level: int | None = None,
        page: int = 1,
        page_size: int | None = None,
        filters: DownlineFilters | None = None,
    ) -> DownlineResult:
        """Paged downline tree rooted at user_id (root is level 0)."""
        result = await self.query_manager.get_downline(
            user_id, max_level, page, page_size, filters
        )
        self.logger.debug(
            "Downline loaded",
            extra={
                "user_id": user_id,
                "page": page,
                "direct_total": result.pagination.total_items,
                "execution_ms": result.metadata.get("execution_ms"),
            },
        )
        return result

    async def load_additional_levels(
        self, user_id: int, current_level: int, max_level: int
    ) -> list[GenealogyNode]:
        """Children of user_id labelled current_level + 1 onwards."""
        return await self.query_manager.load_additional_levels(
            user_id, current_level, max_level
        )

    async def get_level_counts(
        self, user_id: int, max_level: int | None = None
    ) -> dict[int, int]:
        """Downline size per level."""
        return await self.query_manager.get_level_counts(user_id, max_level)

    async def get_downline_ids(
        self, user_id: int, max_level: int | None = None
    ) -> list[int]:
        """Transitive downline, optionally cut at max_level."""
        return await self.query_manager.get_downline_ids(user_id, max_level)

    async def get_performance_metrics(self, user_id: int) -> PerformanceMetrics:
        """Sales, team size, rank history and activity score."""
        return await self.statistics_manager.get_performance_metrics(user_id)

    async def get_downline_statistics(
        self, user_id: int, max_level: int | None = None
    ) -> DownlineStatistics:
        """Aggregate downline statistics."""
        return await self.statistics_manager.get_downline_statistics(
            user_id, max_level
        )
