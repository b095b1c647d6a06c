"""
MatchingRun model.

Bookkeeping for one execution of the binary matching engine.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payplan.models.base import Base
from payplan.models.enums import MatchingRunStatus, MatchingRunTrigger
from payplan.models.types import MoneyType


class MatchingRun(Base):
    """
    MatchingRun entity.

    A completed scheduled run for a period_key makes later scheduled
    triggers for the same period a no-op.
    """

    __tablename__ = "matching_runs"
    __table_args__ = (
        Index("idx_matching_runs_period_status", "period_key", "status"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    period_key: Mapped[str] = mapped_column(String(32), nullable=False)
    trigger: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MatchingRunTrigger.SCHEDULED.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MatchingRunStatus.RUNNING.value
    )

    # Report counters
    users_processed: Mapped[int] = mapped_column(Integer, default=0)
    users_matched: Mapped[int] = mapped_column(Integer, default=0)
    below_minimum: Mapped[int] = mapped_column(Integer, default=0)
    daily_limit_reached: Mapped[int] = mapped_column(Integer, default=0)
    credit_failures: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[int] = mapped_column(Integer, default=0)
    total_matched_volume: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0")
    )
    total_payout: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0")
    )
    duration_seconds: Mapped[float | None] = mapped_column(
        Float, nullable=True
    )

    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<MatchingRun(id={self.id}, period_key={self.period_key!r}, "
            f"status={self.status})>"
        )
