"""
Enumerations shared by models and services.
"""

from enum import StrEnum


class RewardType(StrEnum):
    """How a configured reward is applied."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PurchaseStatus(StrEnum):
    """Purchase status, owned by the checkout collaborator."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RebateStatus(StrEnum):
    """Rebate lifecycle: pending -> processed | failed."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class WalletTransactionType(StrEnum):
    """Ledger entry type."""

    REBATE = "rebate"
    ADJUSTMENT = "adjustment"


class LegPosition(StrEnum):
    """Binary placement slot under a parent."""

    LEFT = "left"
    RIGHT = "right"

    @property
    def other(self) -> "LegPosition":
        """Opposite leg."""
        return LegPosition.RIGHT if self is LegPosition.LEFT else LegPosition.LEFT


class CommissionType(StrEnum):
    """Binary plan commission rate kinds."""

    DIRECT_REFERRAL = "direct_referral"
    LEVEL_COMMISSION = "level_commission"
    GROUP_VOLUME = "group_volume"
