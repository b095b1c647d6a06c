"""
Binary tree node model.

One node per account. Tracks the placement (parent / children / side)
and the volume flowing into each leg.
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

from payplan.models.base import Base
from payplan.models.enums import NodePosition
from payplan.models.types import MoneyType

if TYPE_CHECKING:
    from payplan.models.user import User


class BinaryNode(Base):
    """Binary tree node - placement and leg volumes."""

    __tablename__ = "binary_nodes"
    __table_args__ = (
        CheckConstraint(
            'left_unmatched >= 0', name='check_node_left_unmatched_non_negative'
        ),
        CheckConstraint(
            'right_unmatched >= 0', name='check_node_right_unmatched_non_negative'
        ),
        CheckConstraint(
            'left_unmatched <= left_volume',
            name='check_node_left_unmatched_within_volume'
        ),
        CheckConstraint(
            'right_unmatched <= right_volume',
            name='check_node_right_unmatched_within_volume'
        ),
        CheckConstraint(
            'matched_to_date >= 0', name='check_node_matched_non_negative'
        ),
        CheckConstraint(
            "position IN ('left', 'right', 'root')",
            name='check_node_position'
        ),
        Index('idx_binary_nodes_matched_to_date', 'matched_to_date'),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    # Placement (weak references by user id)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    left_child_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    right_child_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    position: Mapped[str] = mapped_column(
        String(10), nullable=False, default=NodePosition.ROOT.value
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Lifetime cumulative leg volume
    left_volume: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    right_volume: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Carry-forward waiting for a match
    left_unmatched: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    right_unmatched: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Lifetime payout total
    matched_to_date: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    last_matched_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
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

    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        back_populates="binary_node",
        foreign_keys=[user_id],
        lazy="raise",
    )

    @property
    def matchable_volume(self) -> Decimal:
        """Volume that could be paired right now."""
        return min(self.left_unmatched, self.right_unmatched)

    @property
    def is_eligible(self) -> bool:
        """Both legs carry unmatched volume."""
        return self.left_unmatched > 0 and self.right_unmatched > 0

    def child_on(self, position: NodePosition) -> int | None:
        """
        Get child user id on a side.

        Args:
            position: LEFT or RIGHT

        Returns:
            Child user id or None
        """
        if position == NodePosition.LEFT:
            return self.left_child_id
        if position == NodePosition.RIGHT:
            return self.right_child_id
        return None

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BinaryNode(user_id={self.user_id}, parent_id={self.parent_id}, "
            f"position={self.position}, left_unmatched={self.left_unmatched}, "
            f"right_unmatched={self.right_unmatched})>"
        )
