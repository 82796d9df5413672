"""
Rank advancement model.

Append-only audit of promotions with the qualifying figures at the time.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mlm_rewards.models.base import Base
from mlm_rewards.models.types import MoneyType

if TYPE_CHECKING:
    from mlm_rewards.models.rank import Rank


class RankAdvancement(Base):
    """One promotion event."""

    __tablename__ = "rank_advancements"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_rank_id: Mapped[int | None] = mapped_column(
        ForeignKey("ranks.id", ondelete="RESTRICT"), nullable=True
    )
    new_rank_id: Mapped[int] = mapped_column(
        ForeignKey("ranks.id", ondelete="RESTRICT"), nullable=False
    )

    # Qualification snapshot
    direct_referrals: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    group_volume: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    personal_sales: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    qualified_downline: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    previous_rank: Mapped[Optional["Rank"]] = relationship(
        "Rank", foreign_keys=[previous_rank_id], lazy="joined"
    )
    new_rank: Mapped["Rank"] = relationship(
        "Rank", foreign_keys=[new_rank_id], lazy="joined"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<RankAdvancement(user_id={self.user_id}, "
            f"previous_rank_id={self.previous_rank_id}, "
            f"new_rank_id={self.new_rank_id})>"
        )
