"""
User model.

Represents a registered account. The sponsor link (unilevel chain)
lives on the user row and is set once at registration.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payplan.models.base import Base
from payplan.models.types import MoneyType

if TYPE_CHECKING:
    from payplan.models.binary_node import BinaryNode


class User(Base):
    """User model - account with sponsor link and wallet balance."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            'balance >= 0', name='check_user_balance_non_negative'
        ),
        CheckConstraint(
            'total_earned >= 0',
            name='check_user_total_earned_non_negative'
        ),
        CheckConstraint(
            'direct_count >= 0',
            name='check_user_direct_count_non_negative'
        ),
        CheckConstraint(
            'sponsor_id IS NULL OR sponsor_id <> id',
            name='check_user_not_self_sponsored'
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    username: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True, index=True
    )

    # Sponsor edge (immutable after registration)
    sponsor_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Durable fact behind level unlocks, never decremented
    direct_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    # Wallet
    balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_earned: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    sponsor: Mapped[Optional["User"]] = relationship(
        "User", remote_side=[id], lazy="raise"
    )
    binary_node: Mapped[Optional["BinaryNode"]] = relationship(
        "BinaryNode",
        back_populates="user",
        uselist=False,
        lazy="raise",
        foreign_keys="BinaryNode.user_id",
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, username={self.username!r}, "
            f"sponsor_id={self.sponsor_id}, direct_count={self.direct_count})>"
        )
