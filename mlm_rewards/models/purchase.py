"""
Purchase model.

Created by checkout; immutable once created except for status.
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
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mlm_rewards.models.base import Base
from mlm_rewards.models.enums import PurchaseStatus
from mlm_rewards.models.types import MoneyType, PointVolumeType

if TYPE_CHECKING:
    from mlm_rewards.models.product import Product
    from mlm_rewards.models.user import User


class Purchase(Base):
    """Purchase entity."""

    __tablename__ = "purchases"
    __table_args__ = (
        CheckConstraint('total_amount >= 0', name='purchase_amount_non_negative'),
        CheckConstraint('total_pv >= 0', name='purchase_pv_non_negative'),
        Index("idx_purchases_user_status_created", "user_id", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Buyer
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    total_pv: Mapped[Decimal] = mapped_column(
        PointVolumeType, default=Decimal("0"), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=PurchaseStatus.PENDING.value,
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    user: Mapped["User"] = relationship("User")
    product: Mapped["Product"] = relationship("Product")

    @property
    def is_completed(self) -> bool:
        """True when checkout has completed the purchase."""
        return self.status == PurchaseStatus.COMPLETED

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Purchase(id={self.id}, user_id={self.user_id}, "
            f"product_id={self.product_id}, total_amount={self.total_amount}, "
            f"status={self.status})>"
        )
