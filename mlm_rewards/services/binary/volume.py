"""
Binary plan volume and bonus math.

Pure functions over an in-memory placement graph. Nothing here touches the
database, so the snapshot and the simulation share the same arithmetic.
"""

from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal

from mlm_rewards.config.constants import DEFAULT_GROUP_VOLUME_TIER_PV
from mlm_rewards.models.commission_rate import CommissionRate
from mlm_rewards.models.enums import CommissionType, LegPosition
from mlm_rewards.utils.money import percentage_of, round_currency

ZERO = Decimal("0")


@dataclass
class PlacementGraph:
    """
    Validated placement forest.

    Attributes:
        parents: user ID -> placement parent ID (None for roots)
        slots: parent ID -> {position: child ID}
        malformed: users whose ancestry loops or hits a missing parent
    """

    parents: dict[int, int | None]
    slots: dict[int, dict[str, int]] = field(default_factory=dict)
    malformed: set[int] = field(default_factory=set)

    @classmethod
    def build(
        cls,
        user_ids: set[int],
        placements: dict[int, tuple[int | None, str | None]],
    ) -> "PlacementGraph":
        """
        Build the graph and flag malformed users.

        A user is well-formed when walking up its placement parents ends at
        a root without revisiting a node or reaching a missing user. Users
        without a placement row are roots.

        Args:
            user_ids: All existing user IDs
            placements: user ID -> (parent ID, position)

        Returns:
            PlacementGraph
        """
        parents: dict[int, int | None] = {uid: None for uid in user_ids}
        positions: dict[int, str | None] = {}
        malformed: set[int] = set()

        for user_id, (parent_id, position) in placements.items():
            if user_id not in user_ids:
                continue
            parents[user_id] = parent_id
            positions[user_id] = position
            if parent_id is not None and position not in (
                LegPosition.LEFT.value, LegPosition.RIGHT.value
            ):
                malformed.add(user_id)

        # 0 = unknown, 1 = well-formed, 2 = malformed
        state: dict[int, int] = {}
        for start in parents:
            if start in state:
                continue
            path: list[int] = []
            on_path: set[int] = set()
            current: int | None = start
            verdict = 1
            while current is not None:
                if current in state:
                    verdict = state[current]
                    break
                if current in on_path or current not in parents:
                    verdict = 2
                    break
                if current in malformed:
                    verdict = 2
                    path.append(current)
                    break
                path.append(current)
                on_path.add(current)
                current = parents[current]
            for node in path:
                state[node] = verdict

        malformed = {uid for uid, verdict in state.items() if verdict == 2}

        slots: dict[int, dict[str, int]] = {}
        for user_id, parent_id in parents.items():
            if parent_id is None or user_id in malformed:
                continue
            slots.setdefault(parent_id, {})[positions[user_id]] = user_id

        return cls(parents=parents, slots=slots, malformed=malformed)

    def child(self, user_id: int, position: LegPosition) -> int | None:
        """Child in the given leg, if any."""
        return self.slots.get(user_id, {}).get(position.value)

    def subtree_totals(self, values: dict[int, Decimal]) -> dict[int, Decimal]:
        """
        Sum values over every well-formed subtree, iteratively.

        Args:
            values: Per-user value (missing = 0)

        Returns:
            user ID -> value of the user plus all placement descendants
        """
        roots = [
            uid for uid, parent in self.parents.items()
            if parent is None and uid not in self.malformed
        ]
        order: list[int] = []
        stack = list(roots)
        while stack:
            node = stack.pop()
            order.append(node)
            stack.extend(self.slots.get(node, {}).values())

        totals: dict[int, Decimal] = {}
        for node in reversed(order):
            total = values.get(node, ZERO)
            for child_id in self.slots.get(node, {}).values():
                total += totals.get(child_id, ZERO)
            totals[node] = total
        return totals

    def leg_volumes(
        self, user_id: int, totals: dict[int, Decimal]
    ) -> tuple[Decimal, Decimal]:
        """(left leg PV, right leg PV) of a user from subtree totals."""
        left = self.child(user_id, LegPosition.LEFT)
        right = self.child(user_id, LegPosition.RIGHT)
        return (
            totals.get(left, ZERO) if left is not None else ZERO,
            totals.get(right, ZERO) if right is not None else ZERO,
        )

    def ancestors(self, user_id: int, max_levels: int) -> list[tuple[int, int]]:
        """(level, ancestor ID) pairs up to max_levels, 1 = placement parent."""
        chain: list[tuple[int, int]] = []
        current = self.parents.get(user_id)
        level = 1
        while current is not None and level <= max_levels:
            chain.append((level, current))
            current = self.parents.get(current)
            level += 1
        return chain

    def levels_below(self, user_id: int, max_levels: int) -> dict[int, list[int]]:
        """Descendants grouped by placement level (breadth-first)."""
        levels: dict[int, list[int]] = {}
        queue = deque([(user_id, 0)])
        while queue:
            node, depth = queue.popleft()
            if depth == max_levels:
                continue
            for child_id in self.slots.get(node, {}).values():
                levels.setdefault(depth + 1, []).append(child_id)
                queue.append((child_id, depth + 1))
        return levels


@dataclass
class RateTable:
    """Active commission rates grouped by type."""

    direct_referral: CommissionRate | None = None
    levels: dict[int, CommissionRate] = field(default_factory=dict)
    group_volume_tiers: list[CommissionRate] = field(default_factory=list)

    @classmethod
    def from_rates(cls, rates: list[CommissionRate]) -> "RateTable":
        """Group rates; the first active rate wins for duplicates."""
        table = cls()
        for rate in rates:
            if not rate.active:
                continue
            if rate.type == CommissionType.DIRECT_REFERRAL:
                if table.direct_referral is None:
                    table.direct_referral = rate
            elif rate.type == CommissionType.LEVEL_COMMISSION:
                if rate.level is not None:
                    table.levels.setdefault(rate.level, rate)
            elif rate.type == CommissionType.GROUP_VOLUME:
                table.group_volume_tiers.append(rate)
        table.group_volume_tiers.sort(key=lambda r: r.threshold_pv or ZERO)
        return table


def direct_referral_bonus(
    rate: CommissionRate | None,
    referral_ids: list[int],
    personal_pv: dict[int, Decimal],
) -> Decimal:
    """
    Bonus for new direct referrals in the period.

    Fixed rates pay the amount per referral; percentage rates pay a share of
    each referral's personal PV in the period.

    Returns:
        Unrounded bonus
    """
    if rate is None or not referral_ids:
        return ZERO
    if rate.is_fixed:
        return (rate.fixed_amount or ZERO) * len(referral_ids)
    base = sum((personal_pv.get(rid, ZERO) for rid in referral_ids), ZERO)
    return percentage_of(base, rate.percentage or ZERO)


def level_commissions(
    levels: dict[int, CommissionRate],
    level_pv: dict[int, Decimal],
    level_purchases: dict[int, int],
    max_level: int,
) -> tuple[Decimal, dict[int, Decimal]]:
    """
    Commissions on placement levels 1..max_level.

    Percentage rates pay a share of the level's PV; fixed rates pay the
    amount per completed purchase at that level.

    Returns:
        (unrounded total, per-level breakdown)
    """
    total = ZERO
    by_level: dict[int, Decimal] = {}
    for level in range(1, max_level + 1):
        rate = levels.get(level)
        if rate is None:
            continue
        if rate.is_fixed:
            amount = (rate.fixed_amount or ZERO) * level_purchases.get(level, 0)
        else:
            amount = percentage_of(level_pv.get(level, ZERO), rate.percentage or ZERO)
        if amount:
            by_level[level] = amount
            total += amount
    return total, by_level


def select_group_volume_tier(
    tiers: list[CommissionRate], weaker_leg_pv: Decimal
) -> CommissionRate | None:
    """Tier with the largest threshold not above the weaker leg PV."""
    selected = None
    for tier in tiers:
        threshold = tier.threshold_pv or ZERO
        if threshold <= weaker_leg_pv:
            if selected is None or threshold >= (selected.threshold_pv or ZERO):
                selected = tier
    return selected


def group_volume_bonus(
    tiers: list[CommissionRate],
    left_leg_pv: Decimal,
    right_leg_pv: Decimal,
) -> Decimal:
    """
    Bonus on the weaker leg.

    Fixed tiers pay ``floor(weaker / threshold_pv) * fixed_amount``;
    percentage tiers pay ``weaker * percentage / 100``. The stronger leg is
    never used.

    Returns:
        Unrounded bonus
    """
    weaker = min(left_leg_pv, right_leg_pv)
    tier = select_group_volume_tier(tiers, weaker)
    if tier is None:
        return ZERO

    if tier.is_fixed:
        size = tier.threshold_pv or DEFAULT_GROUP_VOLUME_TIER_PV
        return (weaker // size) * (tier.fixed_amount or ZERO)
    return percentage_of(weaker, tier.percentage or ZERO)


@dataclass
class CommissionResult:
    """Binary plan figures for one user and period."""

    user_id: int
    year: int
    month: int
    personal_pv: Decimal = ZERO
    left_leg_pv: Decimal = ZERO
    right_leg_pv: Decimal = ZERO
    direct_referral_bonus: Decimal = ZERO
    level_commissions: Decimal = ZERO
    group_volume_bonus: Decimal = ZERO
    level_breakdown: dict[int, Decimal] = field(default_factory=dict)
    new_referrals: list[int] = field(default_factory=list)

    @property
    def total_group_pv(self) -> Decimal:
        """Left plus right leg PV."""
        return self.left_leg_pv + self.right_leg_pv

    @property
    def total_earnings(self) -> Decimal:
        """Sum of the three bonuses."""
        return (
            self.direct_referral_bonus
            + self.level_commissions
            + self.group_volume_bonus
        )

    @property
    def is_empty(self) -> bool:
        """True when every figure is zero."""
        return not (self.personal_pv or self.total_group_pv or self.total_earnings)

    def as_values(self) -> dict[str, Decimal]:
        """Column values for a MonthlyPerformance row."""
        return {
            "personal_pv": self.personal_pv,
            "left_leg_pv": self.left_leg_pv,
            "right_leg_pv": self.right_leg_pv,
            "total_group_pv": self.total_group_pv,
            "direct_referral_bonus": self.direct_referral_bonus,
            "level_commissions": self.level_commissions,
            "group_volume_bonus": self.group_volume_bonus,
            "total_earnings": self.total_earnings,
        }


def compute_user_commissions(
    user_id: int,
    year: int,
    month: int,
    graph: PlacementGraph,
    totals: dict[int, Decimal],
    personal_pv: dict[int, Decimal],
    purchase_counts: dict[int, int],
    new_referrals: list[int],
    rates: RateTable,
    max_level: int,
) -> CommissionResult:
    """
    Compute all binary plan figures for one well-formed user.

    Bonuses are rounded once each, half-up, to the currency quantum.

    Args:
        user_id: User ID
        year: Period year
        month: Period month
        graph: Validated placement graph
        totals: Subtree PV totals from graph.subtree_totals
        personal_pv: user ID -> PV of completed purchases in the period
        purchase_counts: user ID -> completed purchases in the period
        new_referrals: Direct sponsor referrals created in the period
        rates: Active commission rates
        max_level: Deepest placement level for level commissions

    Returns:
        CommissionResult
    """
    left_pv, right_pv = graph.leg_volumes(user_id, totals)

    level_pv: dict[int, Decimal] = {}
    level_purchases: dict[int, int] = {}
    for level, members in graph.levels_below(user_id, max_level).items():
        level_pv[level] = sum((personal_pv.get(m, ZERO) for m in members), ZERO)
        level_purchases[level] = sum(purchase_counts.get(m, 0) for m in members)

    levels_total, breakdown = level_commissions(
        rates.levels, level_pv, level_purchases, max_level
    )

    return CommissionResult(
        user_id=user_id,
        year=year,
        month=month,
        personal_pv=personal_pv.get(user_id, ZERO),
        left_leg_pv=left_pv,
        right_leg_pv=right_pv,
        direct_referral_bonus=round_currency(
            direct_referral_bonus(rates.direct_referral, new_referrals, personal_pv)
        ),
        level_commissions=round_currency(levels_total),
        group_volume_bonus=round_currency(
            group_volume_bonus(rates.group_volume_tiers, left_pv, right_pv)
        ),
        level_breakdown={lvl: round_currency(a) for lvl, a in breakdown.items()},
        new_referrals=list(new_referrals),
    )
