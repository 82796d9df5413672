"""
Rank model.

Ordered rank ladder with advancement requirements.
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mlm_rewards.models.base import Base
from mlm_rewards.models.types import MoneyType


class Rank(Base):
    """Rank entity. Levels are 1..N, strictly ordered and contiguous."""

    __tablename__ = "ranks"
    __table_args__ = (
        CheckConstraint('level >= 1', name='rank_level_positive'),
        CheckConstraint(
            'min_direct_referrals >= 0',
            name='rank_min_direct_referrals_non_negative'
        ),
        CheckConstraint(
            'min_group_volume >= 0',
            name='rank_min_group_volume_non_negative'
        ),
        CheckConstraint(
            'min_qualified_downline >= 0',
            name='rank_min_qualified_downline_non_negative'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    level: Mapped[int] = mapped_column(
        Integer, unique=True, index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Advancement requirements
    min_direct_referrals: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    min_group_volume: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    min_personal_sales: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    # Downline members holding qualified_rank or a higher rank
    min_qualified_downline: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    qualified_rank_id: Mapped[int | None] = mapped_column(
        ForeignKey("ranks.id", ondelete="SET NULL"), nullable=True
    )

    benefits: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Rank(id={self.id}, level={self.level}, name={self.name})>"
