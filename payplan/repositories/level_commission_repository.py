"""
Level commission repository.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.enums import CreditStatus
from payplan.models.level_commission import LevelCommission
from payplan.repositories.base import BaseRepository


class LevelCommissionRepository(BaseRepository[LevelCommission]):
    """Level commission repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize level commission repository."""
        super().__init__(LevelCommission, session)

    async def get_summary_by_level(
        self, recipient_id: int
    ) -> list[tuple[int, int, Decimal]]:
        """
        Get commissions received grouped by level.

        Args:
            recipient_id: Recipient user ID

        Returns:
            (level, count, total) per level, ascending
        """
        stmt = (
            select(
                LevelCommission.level,
                func.count(LevelCommission.id),
                func.coalesce(func.sum(LevelCommission.commission_amount), 0),
            )
            .where(LevelCommission.recipient_id == recipient_id)
            .group_by(LevelCommission.level)
            .order_by(LevelCommission.level.asc())
        )
        result = await self.session.execute(stmt)
        return [
            (level, int(count), Decimal(str(total)))
            for level, count, total in result.all()
        ]

    async def get_retryable_credits(
        self, max_attempts: int, limit: int, pending_before: datetime
    ) -> list[LevelCommission]:
        """
        Get commissions whose wallet credit failed or never completed.

        Args:
            max_attempts: Attempts after which a record is left alone
            limit: Batch size
            pending_before: PENDING records older than this are stale

        Returns:
            Commissions, oldest first
        """
        stmt = (
            select(LevelCommission)
            .where(
                or_(
                    LevelCommission.credit_status == CreditStatus.FAILED.value,
                    and_(
                        LevelCommission.credit_status
                        == CreditStatus.PENDING.value,
                        LevelCommission.created_at < pending_before,
                    ),
                ),
                LevelCommission.credit_attempts < max_attempts,
            )
            .order_by(LevelCommission.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
