"""
Product model.

Minimal catalog row; the catalog itself belongs to the checkout side.
"""

from decimal import Decimal

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mlm_rewards.models.base import Base
from mlm_rewards.models.types import MoneyType, PointVolumeType


class Product(Base):
    """Product with price and point volume."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    pv: Mapped[Decimal] = mapped_column(
        PointVolumeType, default=Decimal("0"), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, name={self.name}, pv={self.pv})>"
