"""
Binary plan services package.

- placement: left/right leg placement
- volume: pure leg volume and bonus arithmetic
- commission_calculator: period data loading and per-user commissions
- snapshot: monthly performance snapshots and reports
"""

from mlm_rewards.services.binary.commission_calculator import (
    BinaryCommissionCalculator,
    PeriodContext,
)
from mlm_rewards.services.binary.placement import BinaryPlacementManager
from mlm_rewards.services.binary.snapshot import (
    MonthlySnapshotManager,
    SnapshotSummary,
)
from mlm_rewards.services.binary.volume import (
    CommissionResult,
    PlacementGraph,
    RateTable,
    direct_referral_bonus,
    group_volume_bonus,
    level_commissions,
    select_group_volume_tier,
)


__all__ = [
    # Managers
    "BinaryCommissionCalculator",
    "BinaryPlacementManager",
    "MonthlySnapshotManager",
    # Results
    "CommissionResult",
    "PeriodContext",
    "SnapshotSummary",
    # Arithmetic
    "PlacementGraph",
    "RateTable",
    "direct_referral_bonus",
    "group_volume_bonus",
    "level_commissions",
    "select_group_volume_tier",
]
