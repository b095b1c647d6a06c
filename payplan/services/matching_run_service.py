"""
Matching run service.

Wraps one engine execution: takes the run lease, skips a period that
already completed, records the MatchingRun and its report.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime

import redis.asyncio as redis
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payplan.config.plan import BinaryMatchingConfig
from payplan.models.enums import MatchingRunStatus, MatchingRunTrigger
from payplan.repositories.matching_run_repository import MatchingRunRepository
from payplan.services.binary.matching_engine import (
    BinaryMatchingEngine,
    MatchingReport,
)
from payplan.services.wallet.client import WalletClient
from payplan.utils.datetime_utils import period_key_for, utc_now
from payplan.utils.distributed_lock import DistributedLock

LOCK_KEY = "binary_matching"


class MatchingRunService:
    """Runs the matching engine at most once at a time."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        redis_client: redis.Redis,
        plan: BinaryMatchingConfig,
        wallet: WalletClient,
        lock_ttl_seconds: int = 900,
        timezone: str = "UTC",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session_maker = session_maker
        self.lock = DistributedLock(redis_client=redis_client)
        self.plan = plan
        self.wallet = wallet
        self.lock_ttl_seconds = lock_ttl_seconds
        self.timezone = timezone
        self.clock = clock
        self.engine: BinaryMatchingEngine | None = None

    async def run(
        self, period_key: str | None = None, force: bool = False
    ) -> MatchingReport | None:
        """
        Execute a matching run.

        Args:
            period_key: Period being settled (default: today in schedule zone)
            force: Manual run, ignores completed runs for the period

        Returns:
            Report, or None if the period was already settled

        Raises:
            LockNotAcquiredError: Another run is in progress
        """
        period_key = period_key or period_key_for(self.clock(), self.timezone)
        trigger = MatchingRunTrigger.MANUAL if force else MatchingRunTrigger.SCHEDULED

        async with self.lock.lock(LOCK_KEY, timeout=self.lock_ttl_seconds) as lease:
            async with self.session_maker() as session:
                run_repo = MatchingRunRepository(session)
                if not force:
                    done = await run_repo.get_completed_scheduled(period_key)
                    if done is not None:
                        logger.info(
                            f"Binary matching for {period_key} already completed "
                            f"(run {done.id}), skipping"
                        )
                        return None

                run = await run_repo.create(
                    period_key=period_key,
                    trigger=trigger.value,
                    status=MatchingRunStatus.RUNNING.value,
                    started_at=self.clock(),
                )
                await session.commit()
                run_id = run.id

            self.engine = BinaryMatchingEngine(
                self.session_maker, self.plan, self.wallet, lease=lease
            )
            try:
                report = await self.engine.run(run_id=run_id)
            except (Exception, asyncio.CancelledError) as e:
                status = (
                    MatchingRunStatus.CANCELLED
                    if self.engine.report.cancelled
                    else MatchingRunStatus.FAILED
                )
                await self._finish(run_id, status, self.engine.report, repr(e))
                raise

            status = (
                MatchingRunStatus.CANCELLED
                if report.cancelled
                else MatchingRunStatus.COMPLETED
            )
            await self._finish(run_id, status, report)
            return report

    def request_stop(self) -> None:
        """Ask the running engine to stop between nodes."""
        if self.engine is not None:
            self.engine.request_stop()

    async def _finish(
        self,
        run_id: int,
        status: MatchingRunStatus,
        report: MatchingReport,
        error: str | None = None,
    ) -> None:
        async with self.session_maker() as session:
            await MatchingRunRepository(session).update(
                run_id,
                status=status.value,
                users_processed=report.users_processed,
                users_matched=report.users_matched,
                below_minimum=report.below_minimum,
                daily_limit_reached=report.daily_limit_reached,
                credit_failures=report.credit_failures,
                errors=report.errors,
                total_matched_volume=report.total_matched_volume,
                total_payout=report.total_payout,
                duration_seconds=report.duration_seconds,
                error=error,
                finished_at=self.clock(),
            )
            await session.commit()
        logger.info(f"Matching run {run_id} finished with status {status.value}")
