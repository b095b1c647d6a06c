"""
Credit retry task.

Re-sends failed or stale wallet credits of binary matches and level
commissions. Runs hourly.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import run_async
from jobs.utils.database import create_task_engine, create_task_session_maker
from payplan.config.settings import settings
from payplan.services.credit_retry_service import CreditRetryService
from payplan.services.wallet.ledger_client import LedgerWalletClient
from payplan.utils.distributed_lock import DistributedLock
from payplan.utils.exceptions import LockNotAcquiredError
from payplan.utils.redis_utils import get_redis_client


@dramatiq.actor(max_retries=3, time_limit=600_000)  # 10 min timeout
def retry_failed_credits() -> None:
    """Retry failed wallet credits."""
    logger.info("Starting credit retry processing...")

    try:
        stats = run_async(_retry_failed_credits_async())
    except LockNotAcquiredError:
        logger.warning("Credit retry already running elsewhere, skipping")
        return

    logger.info(
        f"Credit retry processing complete: {stats['retried']} retried, "
        f"{stats['credited']} credited, {stats['failed']} failed"
    )


async def _retry_failed_credits_async() -> dict:
    """Async implementation of credit retry."""
    engine = create_task_engine()
    session_maker = create_task_session_maker(engine)
    redis_client = await get_redis_client()
    lock = DistributedLock(redis_client=redis_client)

    try:
        async with lock.lock("credit_retry", timeout=600):
            async with session_maker() as session:
                service = CreditRetryService(
                    session,
                    LedgerWalletClient(session_maker),
                    max_attempts=settings.credit_max_attempts,
                    pending_grace_minutes=settings.credit_pending_grace_minutes,
                )
                return await service.retry_failed_credits(
                    limit=settings.credit_retry_batch_size
                )
    finally:
        await redis_client.aclose()
        await engine.dispose()
