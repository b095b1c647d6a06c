"""
BinaryMatch model.

Append-only record of one pairing of left and right carry-forward volume.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from payplan.models.base import Base
from payplan.models.enums import CreditStatus
from payplan.models.types import MoneyType, RatePercentType


class BinaryMatch(Base):
    """
    BinaryMatch entity.

    Written once per matched node per run, never updated except for
    the credit bookkeeping columns.

    Attributes:
        id: Primary key
        user_id: Node owner who earned the payout
        run_id: Matching run that produced the record
        matched_volume: Volume removed from both legs
        left_volume_before: left_unmatched before the match
        left_volume_after: left_unmatched after the match
        right_volume_before: right_unmatched before the match
        right_volume_after: right_unmatched after the match
        payout_amount: Amount credited to the wallet
        payout_percentage: Percentage applied to matched volume
        credit_status: pending / credited / failed
        credit_attempts: Wallet credit attempts so far
        credit_error: Last wallet error
        credited_at: When the wallet accepted the credit
        created_at: When the match happened
    """

    __tablename__ = "binary_matches"
    __table_args__ = (
        CheckConstraint(
            'matched_volume > 0', name='check_match_volume_positive'
        ),
        CheckConstraint(
            'payout_amount >= 0', name='check_match_payout_non_negative'
        ),
        Index("idx_binary_matches_user_created", "user_id", "created_at"),
        Index("idx_binary_matches_credit_status", "credit_status"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    run_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("matching_runs.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    matched_volume: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    left_volume_before: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    left_volume_after: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    right_volume_before: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    right_volume_after: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    payout_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    payout_percentage: Mapped[Decimal] = mapped_column(
        RatePercentType, nullable=False
    )

    # Wallet credit bookkeeping
    credit_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CreditStatus.PENDING.value
    )
    credit_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    credit_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    credited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    @property
    def reference_id(self) -> str:
        """Wallet reference that makes the credit idempotent."""
        return f"binary_match:{self.id}"

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BinaryMatch(id={self.id}, user_id={self.user_id}, "
            f"matched_volume={self.matched_volume}, "
            f"payout_amount={self.payout_amount})>"
        )
