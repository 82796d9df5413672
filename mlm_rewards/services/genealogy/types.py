"""
Genealogy result types.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

SortKey = Literal["created_at", "name", "rank"]
SortDirection = Literal["asc", "desc"]


@dataclass
class DownlineFilters:
    """
    Filters and sorting for the direct downline page.

    Attributes:
        rank_id: Only members holding this rank
        joined_after: Only members created at or after this time
        joined_before: Only members created at or before this time
        sort_by: created_at / name / rank (id is always the last tie-breaker)
        sort_direction: asc or desc
        lazy_load: Load only initial_depth levels
        initial_depth: Levels loaded when lazy_load is set
    """

    rank_id: int | None = None
    joined_after: datetime | None = None
    joined_before: datetime | None = None
    sort_by: SortKey = "created_at"
    sort_direction: SortDirection = "asc"
    lazy_load: bool = False
    initial_depth: int = 2


@dataclass
class GenealogyNode:
    """One member in a downline tree."""

    id: int
    name: str
    email: str | None
    rank_id: int | None
    rank_name: str | None
    level: int
    wallet_balance: Decimal
    created_at: datetime
    downline_count: int = 0
    has_more_children: bool = False
    children: list["GenealogyNode"] = field(default_factory=list)


@dataclass
class Pagination:
    """Pagination metadata for the direct downline page."""

    page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


@dataclass
class DownlineResult:
    """Result of get_downline."""

    node: GenealogyNode
    children: list[GenealogyNode]
    pagination: Pagination
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class PerformanceMetrics:
    """Sales, team and activity figures for one member."""

    personal_sales: Decimal
    team_sales: Decimal
    total_sales: Decimal
    rebates_earned: Decimal
    team_size: int
    new_team_members: int
    rank_history: list[dict[str, Any]]
    activity_score: int


@dataclass
class DownlineStatistics:
    """Aggregate statistics about a downline."""

    total_users: int
    level_counts: dict[int, int]
    direct_downline_count: int
    total_downline_balance: Decimal
    rank_distribution: list[dict[str, Any]]
    active_users_last_30_days: int
    active_user_percentage: float
