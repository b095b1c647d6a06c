"""
InvestmentEvent model.

One row per investment notification. Per-subsystem timestamps make
replays of the same event a no-op.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from payplan.models.base import Base
from payplan.models.types import MoneyType


class InvestmentEvent(Base):
    """Investment event with idempotency key."""

    __tablename__ = "investment_events"
    __table_args__ = (
        CheckConstraint('amount > 0', name='check_investment_amount_positive'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    idempotency_key: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    investor_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # Set when the subsystem has finished with this event
    volume_applied_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    level_income_applied_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<InvestmentEvent(id={self.id}, key={self.idempotency_key!r}, "
            f"investor_id={self.investor_id}, amount={self.amount})>"
        )
