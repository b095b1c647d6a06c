"""
Binary match repository.

Match history, daily totals and failed-credit lookups.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.binary_match import BinaryMatch
from payplan.models.enums import CreditStatus
from payplan.repositories.base import BaseRepository


class BinaryMatchRepository(BaseRepository[BinaryMatch]):
    """Binary match repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize binary match repository."""
        super().__init__(BinaryMatch, session)

    async def sum_matched_since(
        self, user_id: int, since: datetime
    ) -> Decimal:
        """
        Sum matched volume of a node since a point in time.

        Args:
            user_id: Node owner
            since: Window start

        Returns:
            Total matched volume (0 if none)
        """
        stmt = select(
            func.coalesce(func.sum(BinaryMatch.matched_volume), 0)
        ).where(
            BinaryMatch.user_id == user_id,
            BinaryMatch.created_at >= since,
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))

    def history_query(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> Select:
        """Build newest-first history selection."""
        return (
            select(BinaryMatch)
            .where(BinaryMatch.user_id == user_id)
            .order_by(BinaryMatch.created_at.desc(), BinaryMatch.id.desc())
            .limit(limit)
            .offset(offset)
        )

    async def get_history(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> list[BinaryMatch]:
        """
        Get match history, newest first.

        Args:
            user_id: Node owner
            limit: Page size
            offset: Rows to skip

        Returns:
            Matches
        """
        result = await self.session.execute(
            self.history_query(user_id, limit, offset)
        )
        return list(result.scalars().all())

    async def get_totals(self, user_id: int) -> tuple[int, Decimal]:
        """
        Get lifetime match count and payout.

        Args:
            user_id: Node owner

        Returns:
            (total_matches, total_payout)
        """
        stmt = select(
            func.count(BinaryMatch.id),
            func.coalesce(func.sum(BinaryMatch.payout_amount), 0),
        ).where(BinaryMatch.user_id == user_id)
        result = await self.session.execute(stmt)
        count, payout = result.one()
        return int(count or 0), Decimal(str(payout or 0))

    async def get_retryable_credits(
        self, max_attempts: int, limit: int, pending_before: datetime
    ) -> list[BinaryMatch]:
        """
        Get matches whose wallet credit failed or never completed.

        Args:
            max_attempts: Attempts after which a record is left alone
            limit: Batch size
            pending_before: PENDING records older than this are stale

        Returns:
            Matches, oldest first
        """
        stmt = (
            select(BinaryMatch)
            .where(
                or_(
                    BinaryMatch.credit_status == CreditStatus.FAILED.value,
                    and_(
                        BinaryMatch.credit_status == CreditStatus.PENDING.value,
                        BinaryMatch.created_at < pending_before,
                    ),
                ),
                BinaryMatch.credit_attempts < max_attempts,
            )
            .order_by(BinaryMatch.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
