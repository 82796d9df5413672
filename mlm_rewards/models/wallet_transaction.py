"""
Wallet transaction model.

Ledger entry written alongside every wallet credit.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mlm_rewards.models.base import Base
from mlm_rewards.models.enums import WalletTransactionType
from mlm_rewards.models.types import MoneyType


class WalletTransaction(Base):
    """Immutable ledger row."""

    __tablename__ = "wallet_transactions"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    type: Mapped[str] = mapped_column(
        String(30),
        default=WalletTransactionType.REBATE.value,
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default="completed", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<WalletTransaction(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount}, type={self.type})>"
        )
