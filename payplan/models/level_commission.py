"""
LevelCommission model.

Append-only record of level income paid to a sponsor-chain ancestor.
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
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from payplan.models.base import Base
from payplan.models.enums import CreditStatus
from payplan.models.types import MoneyType, RatePercentType


class LevelCommission(Base):
    """
    LevelCommission entity.

    Only unlocked levels produce a record. A locked level is forfeited
    and leaves no trace here.

    Attributes:
        id: Primary key
        recipient_id: Ancestor receiving the commission
        source_user_id: Investor whose investment generated it
        investment_event_id: Investment event (unique with level)
        level: Distance from investor to recipient (1-30)
        investment_amount: Investment amount
        percentage_applied: Level percentage used
        commission_amount: Amount credited
        credit_status: pending / credited / failed
        credit_attempts: Wallet credit attempts so far
        credit_error: Last wallet error
        credited_at: When the wallet accepted the credit
        created_at: Creation timestamp
    """

    __tablename__ = "level_commissions"
    __table_args__ = (
        UniqueConstraint(
            "investment_event_id",
            "level",
            name="uq_level_commission_event_level",
        ),
        CheckConstraint(
            'level >= 1 AND level <= 30', name='check_commission_level_range'
        ),
        CheckConstraint(
            'commission_amount > 0', name='check_commission_amount_positive'
        ),
        Index("idx_level_commissions_recipient_level", "recipient_id", "level"),
        Index("idx_level_commissions_credit_status", "credit_status"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    recipient_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source_user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    investment_event_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("investment_events.id", ondelete="SET NULL"),
        nullable=True,
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False)
    investment_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    percentage_applied: Mapped[Decimal] = mapped_column(
        RatePercentType, nullable=False
    )
    commission_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
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
    )

    @property
    def reference_id(self) -> str:
        """Wallet reference that makes the credit idempotent."""
        return f"level_income:{self.id}"

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<LevelCommission(id={self.id}, recipient_id={self.recipient_id}, "
            f"level={self.level}, amount={self.commission_amount})>"
        )
