"""
WalletCredit model.

Ledger of credits applied to user balances. The unique reference_id
guarantees a payout reaches the wallet at most once.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from payplan.models.base import Base
from payplan.models.types import MoneyType


class WalletCredit(Base):
    """Wallet ledger entry."""

    __tablename__ = "wallet_credits"
    __table_args__ = (
        CheckConstraint('amount > 0', name='check_wallet_credit_positive'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_id: Mapped[str] = mapped_column(
        String(100), nullable=False, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<WalletCredit(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount}, reference_id={self.reference_id!r})>"
        )
