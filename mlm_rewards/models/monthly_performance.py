"""
Monthly performance model.

Per-user, per-month binary plan snapshot. Recomputing a period overwrites
the row.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_rewards.models.base import Base
from mlm_rewards.models.types import MoneyType, PointVolumeType


class MonthlyPerformance(Base):
    """Monthly binary plan snapshot for one user."""

    __tablename__ = "monthly_performance"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "year", "month", name="uq_monthly_performance_period"
        ),
        CheckConstraint(
            'month >= 1 AND month <= 12', name='monthly_performance_month_range'
        ),
        Index("idx_monthly_performance_period_earnings", "year", "month", "total_earnings"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)

    # Volumes
    personal_pv: Mapped[Decimal] = mapped_column(
        PointVolumeType, default=Decimal("0"), nullable=False
    )
    left_leg_pv: Mapped[Decimal] = mapped_column(
        PointVolumeType, default=Decimal("0"), nullable=False
    )
    right_leg_pv: Mapped[Decimal] = mapped_column(
        PointVolumeType, default=Decimal("0"), nullable=False
    )
    total_group_pv: Mapped[Decimal] = mapped_column(
        PointVolumeType, default=Decimal("0"), nullable=False
    )

    # Earnings
    direct_referral_bonus: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    level_commissions: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    group_volume_bonus: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
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

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<MonthlyPerformance(user_id={self.user_id}, "
            f"period={self.year}-{self.month:02d}, "
            f"total_earnings={self.total_earnings})>"
        )
