"""
Binary placement model.

Left/right leg placement for binary-plan accounts. Kept apart from
users.upline_id: the sponsor and the placement parent may differ.
"""

from datetime import UTC, datetime

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


class BinaryPlacement(Base):
    """
    Placement of one user in the binary tree.

    Attributes:
        user_id: Placed user (one placement per user)
        parent_id: Placement parent, NULL for binary roots
        position: 'left' or 'right' under the parent
    """

    __tablename__ = "binary_placements"
    __table_args__ = (
        UniqueConstraint("parent_id", "position", name="uq_binary_parent_position"),
        CheckConstraint(
            "position IN ('left', 'right')", name='binary_position_valid'
        ),
        CheckConstraint(
            'parent_id IS NULL OR parent_id <> user_id',
            name='binary_not_own_parent'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    position: Mapped[str | None] = mapped_column(String(10), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BinaryPlacement(user_id={self.user_id}, "
            f"parent_id={self.parent_id}, position={self.position})>"
        )
