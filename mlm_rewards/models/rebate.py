"""
Rebate model.

One row per (purchase, level) with a resolvable receiver and a non-zero
config. Lifecycle: pending -> processed | failed. The status transition is
the claim token that guarantees at-most-once wallet credit.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mlm_rewards.models.base import Base
from mlm_rewards.models.enums import RebateStatus, RewardType
from mlm_rewards.models.types import MoneyType, PercentType

if TYPE_CHECKING:
    from mlm_rewards.models.purchase import Purchase


class Rebate(Base):
    """
    Rebate entity.

    Attributes:
        id: Primary key
        purchase_id: Purchase that generated the rebate
        generator_id: Buyer who triggered it
        receiver_id: Upline beneficiary
        level: Distance from generator (1 = direct sponsor)
        reward_type: percentage or fixed, copied from the config
        percentage: Percentage applied (NULL for fixed rules)
        amount: Rounded payout amount
        status: pending / processed / failed
        failure_reason: Why processing failed
        wallet_transaction_id: Ledger row written on credit
        created_at: When computed
        processed_at: When credited or marked failed
    """

    __tablename__ = "rebates"
    __table_args__ = (
        UniqueConstraint("purchase_id", "level", name="uq_rebate_purchase_level"),
        CheckConstraint('amount >= 0', name='rebate_amount_non_negative'),
        CheckConstraint('level >= 1', name='rebate_level_positive'),
        Index("idx_rebates_status_id", "status", "id"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    purchase_id: Mapped[int] = mapped_column(
        ForeignKey("purchases.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # No FK on receiver: a deleted receiver must surface as a failed row
    generator_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    receiver_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False)

    reward_type: Mapped[str] = mapped_column(
        String(20), default=RewardType.PERCENTAGE.value, nullable=False
    )
    percentage: Mapped[Decimal | None] = mapped_column(
        PercentType, nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=RebateStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    wallet_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("wallet_transactions.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    purchase: Mapped["Purchase"] = relationship("Purchase")

    @property
    def is_pending(self) -> bool:
        """True while not yet claimed."""
        return self.status == RebateStatus.PENDING

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Rebate(id={self.id}, purchase_id={self.purchase_id}, "
            f"level={self.level}, receiver_id={self.receiver_id}, "
            f"amount={self.amount}, status={self.status})>"
        )
