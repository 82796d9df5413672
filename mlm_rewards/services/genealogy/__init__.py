"""
Genealogy services package.

Read-only traversal of the sponsor tree:
- query_manager: paged downline trees, lazy level loading, level counts
- statistics: performance metrics and downline aggregates
- types: result dataclasses
"""

from mlm_rewards.services.genealogy.query_manager import GenealogyQueryManager
from mlm_rewards.services.genealogy.statistics import (
    GenealogyStatisticsManager,
    activity_score,
)
from mlm_rewards.services.genealogy.types import (
    DownlineFilters,
    DownlineResult,
    DownlineStatistics,
    GenealogyNode,
    Pagination,
    PerformanceMetrics,
)


__all__ = [
    # Managers
    "GenealogyQueryManager",
    "GenealogyStatisticsManager",
    # Types
    "DownlineFilters",
    "DownlineResult",
    "DownlineStatistics",
    "GenealogyNode",
    "Pagination",
    "PerformanceMetrics",
    # Helpers
    "activity_score",
]
