"""
Genealogy query management module.

Breadth-first downline traversal. Each level is fetched with one batched
``upline_id IN (...)`` query per chunk of parents, so depth never turns
into recursion.
"""

import math
import time

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.settings import settings
from mlm_rewards.models.rank import Rank
from mlm_rewards.models.user import User
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.services.genealogy.types import (
    DownlineFilters,
    DownlineResult,
    GenealogyNode,
    Pagination,
)
from mlm_rewards.utils.db_decorators import translate_db_errors
from mlm_rewards.utils.exceptions import NotFoundError


def to_node(user: User, level: int) -> GenealogyNode:
    """Build a tree node from a user row."""
    return GenealogyNode(
        id=user.id,
        name=user.name,
        email=user.email,
        rank_id=user.rank_id,
        rank_name=user.rank.name if user.rank else None,
        level=level,
        wallet_balance=user.wallet_balance,
        created_at=user.created_at,
    )


class GenealogyQueryManager:
    """Manages downline traversal queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize query manager."""
        self.session = session
        self.user_repo = UserRepository(session)

    async def _require_user(self, user_id: int) -> User:
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    def _build_page_query(self, user_id: int, filters: DownlineFilters):
        """Select direct children of user_id with filters and ordering."""
        conditions = [User.upline_id == user_id]
        if filters.rank_id is not None:
            conditions.append(User.rank_id == filters.rank_id)
        if filters.joined_after is not None:
            conditions.append(User.created_at >= filters.joined_after)
        if filters.joined_before is not None:
            conditions.append(User.created_at <= filters.joined_before)

        stmt = select(User).where(*conditions)
        count_stmt = select(func.count(User.id)).where(*conditions)

        descending = filters.sort_direction == "desc"
        if filters.sort_by == "name":
            keys = [User.name]
        elif filters.sort_by == "rank":
            stmt = stmt.outerjoin(Rank, User.rank_id == Rank.id)
            keys = [func.coalesce(Rank.level, 0)]
        else:
            keys = [User.created_at]

        stmt = stmt.order_by(
            *(k.desc() if descending else k.asc() for k in keys),
            User.id.asc(),
        )

        return stmt, count_stmt

    async def _expand(
        self,
        frontier: list[GenealogyNode],
        start_level: int,
        last_level: int,
    ) -> None:
        """
        Attach descendants to frontier nodes, level by level.

        Args:
            frontier: Nodes whose children are loaded first
            start_level: Level assigned to the children of frontier
            last_level: Deepest level to attach
        """
        visited = {node.id for node in frontier}
        level = start_level

        while frontier and level <= last_level:
            children_by_parent = await self.user_repo.get_children_batch(
                [node.id for node in frontier]
            )

            next_frontier: list[GenealogyNode] = []
            for node in frontier:
                children = children_by_parent.get(node.id, [])
                node.downline_count = len(children)
                for child in children:
                    if child.id in visited:
                        continue
                    visited.add(child.id)
                    child_node = to_node(child, level)
                    node.children.append(child_node)
                    next_frontier.append(child_node)

            frontier = next_frontier
            level += 1

        # Nodes at the cut-off level: count their children without loading them
        if frontier:
            counts = await self.user_repo.count_children_batch(
                [node.id for node in frontier]
            )
            for node in frontier:
                node.downline_count = counts.get(node.id, 0)
                node.has_more_children = node.downline_count > 0

    @translate_db_errors
    async def get_downline(
        self,
        user_id: int,
        max_level: int | None = None,
        page: int = 1,
        page_size: int | None = None,
        filters: DownlineFilters | None = None,
    ) -> DownlineResult:
        """
        Get a user's downline with pagination.

        The requested page of direct members is level 1; their descendants
        are loaded up to max_level (or filters.initial_depth when lazy).

        Args:
            user_id: Root user ID
            max_level: Deepest level (defaults to settings.genealogy_max_depth)
            page: Page number (1-indexed)
            page_size: Direct members per page
            filters: Filtering, sorting and lazy-loading options

        Returns:
            DownlineResult with root node, paged children and metadata

        Raises:
            NotFoundError: If the root user does not exist
        """
        started = time.perf_counter()
        if max_level is None:
            max_level = settings.genealogy_max_depth
        page_size = page_size or settings.genealogy_page_size
        page = max(page, 1)
        filters = filters or DownlineFilters()

        root_user = await self._require_user(user_id)
        root = to_node(root_user, 0)

        stmt, count_stmt = self._build_page_query(user_id, filters)
        total = (await self.session.execute(count_stmt)).scalar() or 0
        result = await self.session.execute(
            stmt.offset((page - 1) * page_size).limit(page_size)
        )
        page_users = list(result.scalars().unique().all())

        depth_to_load = max_level
        if filters.lazy_load:
            depth_to_load = min(max_level, max(filters.initial_depth, 1))

        children = [to_node(user, 1) for user in page_users]
        await self._expand(children, start_level=2, last_level=depth_to_load)

        root.children = children
        root.downline_count = await self.user_repo.count_direct_downline(user_id)

        total_pages = math.ceil(total / page_size) if total else 0
        pagination = Pagination(
            page=page,
            page_size=page_size,
            total_items=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )

        return DownlineResult(
            node=root,
            children=children,
            pagination=pagination,
            metadata={
                "max_level": max_level,
                "depth_loaded": depth_to_load,
                "lazy_loading": filters.lazy_load,
                "execution_ms": round((time.perf_counter() - started) * 1000, 2),
                "filters": {
                    "rank_id": filters.rank_id,
                    "joined_after": filters.joined_after,
                    "joined_before": filters.joined_before,
                },
                "sorting": {
                    "by": filters.sort_by,
                    "direction": filters.sort_direction,
                },
            },
        )

    @translate_db_errors
    async def load_additional_levels(
        self, user_id: int, current_level: int, max_level: int
    ) -> list[GenealogyNode]:
        """
        Load the subtree under a node that was cut off.

        Args:
            user_id: Node whose children to load
            current_level: Level of that node in the original tree
            max_level: Deepest level to load

        Returns:
            Children labelled current_level + 1 onwards

        Raises:
            NotFoundError: If the user does not exist
        """
        user = await self._require_user(user_id)
        anchor = to_node(user, current_level)
        await self._expand([anchor], start_level=current_level + 1, last_level=max_level)
        return anchor.children

    @translate_db_errors
    async def get_level_counts(
        self, user_id: int, max_level: int | None = None
    ) -> dict[int, int]:
        """
        Count downline members per level.

        Args:
            user_id: Root user ID
            max_level: Deepest level counted

        Returns:
            Dict {level: count} for levels 1..max_level

        Raises:
            NotFoundError: If the user does not exist
        """
        if max_level is None:
            max_level = settings.genealogy_max_depth
        await self._require_user(user_id)

        level_counts = {level: 0 for level in range(1, max_level + 1)}
        visited = {user_id}
        frontier = [user_id]

        for level in range(1, max_level + 1):
            if not frontier:
                break
            children = await self.user_repo.get_child_ids_batch(frontier)
            frontier = [
                child_id
                for parent_id in frontier
                for child_id in children.get(parent_id, [])
                if child_id not in visited
            ]
            visited.update(frontier)
            level_counts[level] = len(frontier)

        return level_counts

    @translate_db_errors
    async def get_downline_ids(
        self, user_id: int, max_level: int | None = None
    ) -> list[int]:
        """
        Get the transitive downline.

        Args:
            user_id: Root user ID
            max_level: Deepest level included (None for the whole downline)

        Returns:
            Downline IDs in breadth-first order (root excluded)

        Raises:
            NotFoundError: If the user does not exist
        """
        await self._require_user(user_id)

        downline: list[int] = []
        visited = {user_id}
        frontier = [user_id]

        level = 0
        while frontier and (max_level is None or level < max_level):
            level += 1
            children = await self.user_repo.get_child_ids_batch(frontier)
            frontier = [
                child_id
                for parent_id in frontier
                for child_id in children.get(parent_id, [])
                if child_id not in visited
            ]
            visited.update(frontier)
            downline.extend(frontier)

        return downline
