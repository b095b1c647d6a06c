"""
Matching run repository.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.enums import MatchingRunStatus, MatchingRunTrigger
from payplan.models.matching_run import MatchingRun
from payplan.repositories.base import BaseRepository


class MatchingRunRepository(BaseRepository[MatchingRun]):
    """Matching run repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize matching run repository."""
        super().__init__(MatchingRun, session)

    async def get_completed_scheduled(
        self, period_key: str
    ) -> MatchingRun | None:
        """
        Get completed scheduled run for a period.

        Args:
            period_key: Period key (local date)

        Returns:
            Run or None
        """
        stmt = (
            select(MatchingRun)
            .where(
                MatchingRun.period_key == period_key,
                MatchingRun.trigger == MatchingRunTrigger.SCHEDULED.value,
                MatchingRun.status == MatchingRunStatus.COMPLETED.value,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_latest(self, limit: int = 10) -> list[MatchingRun]:
        """
        Get most recent runs.

        Args:
            limit: Number of runs

        Returns:
            Runs, newest first
        """
        stmt = (
            select(MatchingRun)
            .order_by(MatchingRun.started_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
