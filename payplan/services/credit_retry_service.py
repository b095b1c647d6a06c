"""
Credit retry service.

Re-sends payout records whose wallet credit failed or never completed.
The original reference_id is reused, so a credit that actually landed
is not paid twice.
"""

from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from payplan.repositories.binary_match_repository import BinaryMatchRepository
from payplan.repositories.level_commission_repository import (
    LevelCommissionRepository,
)
from payplan.services.base_service import BaseService, log_operation
from payplan.services.wallet.client import WalletClient
from payplan.services.wallet.recorder import credit_record
from payplan.utils.datetime_utils import utc_now


class CreditRetryService(BaseService):
    """Retries failed wallet credits."""

    def __init__(
        self,
        session: AsyncSession,
        wallet: WalletClient,
        max_attempts: int = 5,
        pending_grace_minutes: int = 30,
    ) -> None:
        super().__init__(session)
        self.wallet = wallet
        self.max_attempts = max_attempts
        self.pending_grace = timedelta(minutes=pending_grace_minutes)
        self.match_repo = BinaryMatchRepository(session)
        self.commission_repo = LevelCommissionRepository(session)

    @log_operation
    async def retry_failed_credits(self, limit: int = 200) -> dict:
        """
        Retry a batch of failed credits.

        Args:
            limit: Max records per record type

        Returns:
            Counts: retried, credited, failed
        """
        pending_before = utc_now() - self.pending_grace
        records = [
            *await self.match_repo.get_retryable_credits(
                self.max_attempts, limit, pending_before
            ),
            *await self.commission_repo.get_retryable_credits(
                self.max_attempts, limit, pending_before
            ),
        ]

        stats = {"retried": 0, "credited": 0, "failed": 0}
        rolled_back = False
        for record in records:
            stats["retried"] += 1
            reference_id = None
            try:
                if rolled_back:
                    # Rollback expired every record of the batch
                    await self.session.refresh(record)
                reference_id = record.reference_id
                ok = await credit_record(self.session, self.wallet, record)
            except Exception as e:
                await self.rollback()
                rolled_back = True
                ok = False
                self.logger.exception(
                    f"Credit retry for {reference_id} failed: {e}"
                )
            stats["credited" if ok else "failed"] += 1

        if stats["retried"]:
            self.logger.info(
                f"Credit retry: {stats['credited']} credited, "
                f"{stats['failed']} failed"
            )
        return stats
