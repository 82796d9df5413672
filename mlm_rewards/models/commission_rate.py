"""
Commission rate model.

Configuration for the binary plan: direct referral bonus, per-level
commissions and group volume tiers.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mlm_rewards.models.base import Base
from mlm_rewards.models.enums import RewardType
from mlm_rewards.models.types import MoneyType, PercentType, PointVolumeType


class CommissionRate(Base):
    """
    Binary plan commission rate.

    Attributes:
        type: direct_referral / level_commission / group_volume
        level: Placement level (level commissions only)
        reward_type: percentage or fixed
        percentage: Percentage of the PV base
        fixed_amount: Fixed payout
        threshold_pv: Tier size for group volume rates
        active: Inactive rates are ignored
    """

    __tablename__ = "commission_rates"
    __table_args__ = (
        CheckConstraint(
            'percentage IS NULL OR (percentage >= 0 AND percentage <= 100)',
            name='commission_rate_percentage_range'
        ),
        CheckConstraint(
            'fixed_amount IS NULL OR fixed_amount >= 0',
            name='commission_rate_fixed_non_negative'
        ),
        CheckConstraint(
            'threshold_pv IS NULL OR threshold_pv > 0',
            name='commission_rate_threshold_positive'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    level: Mapped[int | None] = mapped_column(Integer, nullable=True)

    reward_type: Mapped[str] = mapped_column(
        String(20), default=RewardType.PERCENTAGE.value, nullable=False
    )
    percentage: Mapped[Decimal | None] = mapped_column(
        PercentType, nullable=True
    )
    fixed_amount: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )
    threshold_pv: Mapped[Decimal | None] = mapped_column(
        PointVolumeType, nullable=True
    )

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def is_fixed(self) -> bool:
        """True for fixed-amount rates."""
        return self.reward_type == RewardType.FIXED

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CommissionRate(id={self.id}, type={self.type}, "
            f"level={self.level}, reward_type={self.reward_type})>"
        )
