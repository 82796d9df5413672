"""
Rebate configuration model.

Per-product, per-level payout rule. The percentage and fixed amount are
mutually exclusive; validation happens when configs are written
(services/rebate/config_manager.py), never at payout time.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_rewards.models.base import Base
from mlm_rewards.models.enums import RewardType
from mlm_rewards.models.types import MoneyType, PercentType


class RebateConfig(Base):
    """Rebate rule for one (product, level) pair."""

    __tablename__ = "rebate_configs"
    __table_args__ = (
        UniqueConstraint("product_id", "level", name="uq_rebate_config_product_level"),
        CheckConstraint('level >= 1', name='rebate_config_level_positive'),
        CheckConstraint(
            'percentage IS NULL OR (percentage >= 0 AND percentage <= 100)',
            name='rebate_config_percentage_range'
        ),
        CheckConstraint(
            'fixed_amount IS NULL OR fixed_amount >= 0',
            name='rebate_config_fixed_non_negative'
        ),
        CheckConstraint(
            "(reward_type = 'percentage' AND percentage IS NOT NULL AND fixed_amount IS NULL)"
            " OR (reward_type = 'fixed' AND fixed_amount IS NOT NULL AND percentage IS NULL)",
            name='rebate_config_reward_exclusive'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)

    reward_type: Mapped[str] = mapped_column(
        String(20), default=RewardType.PERCENTAGE.value, nullable=False
    )
    percentage: Mapped[Decimal | None] = mapped_column(
        PercentType, nullable=True
    )
    fixed_amount: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def is_fixed(self) -> bool:
        """True for fixed-amount rules."""
        return self.reward_type == RewardType.FIXED

    @property
    def value(self) -> Decimal:
        """Configured value for the active reward type."""
        if self.is_fixed:
            return self.fixed_amount or Decimal("0")
        return self.percentage or Decimal("0")

    @property
    def is_zero(self) -> bool:
        """Zero rules never produce rebate rows."""
        return self.value == 0

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<RebateConfig(id={self.id}, product_id={self.product_id}, "
            f"level={self.level}, reward_type={self.reward_type}, "
            f"value={self.value})>"
        )
