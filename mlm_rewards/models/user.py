"""
User model.

Represents a member of the sponsorship tree. The upline pointer forms the
sponsor forest used by genealogy and rebates; binary placement lives in
its own table (see binary_placement.py).
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mlm_rewards.models.base import Base
from mlm_rewards.models.types import MoneyType

if TYPE_CHECKING:
    from mlm_rewards.models.rank import Rank


class User(Base):
    """User model - members of the sponsorship forest."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            'wallet_balance >= 0', name='user_wallet_balance_non_negative'
        ),
        CheckConstraint(
            'upline_id IS NULL OR upline_id <> id',
            name='user_not_own_upline'
        ),
        Index("idx_users_upline_created", "upline_id", "created_at", "id"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True
    )

    # Sponsor (upline); root users have none
    upline_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Rank; NULL means not yet ranked (level 0)
    rank_id: Mapped[int | None] = mapped_column(
        ForeignKey("ranks.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    # Mutated only through atomic increments
    wallet_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    upline: Mapped[Optional["User"]] = relationship(
        "User",
        remote_side=[id],
        back_populates="downline",
        foreign_keys=[upline_id],
    )
    downline: Mapped[list["User"]] = relationship(
        "User",
        back_populates="upline",
        foreign_keys=[upline_id],
    )
    rank: Mapped[Optional["Rank"]] = relationship(
        "Rank", lazy="joined"
    )

    @property
    def rank_level(self) -> int:
        """Current rank level, 0 when unranked."""
        return self.rank.level if self.rank else 0

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, name={self.name}, "
            f"upline_id={self.upline_id}, rank_id={self.rank_id})>"
        )
