"""
Binary matching task.

Settles carry-forward volume of every eligible node. Enqueued daily
by the scheduler; a completed run for the same period makes repeated
triggers a no-op.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import run_async
from jobs.utils.database import create_task_engine, create_task_session_maker
from payplan.config.plan import load_plan
from payplan.config.settings import settings
from payplan.services.binary.matching_engine import MatchingReport
from payplan.services.matching_run_service import MatchingRunService
from payplan.services.wallet.ledger_client import LedgerWalletClient
from payplan.utils.exceptions import LockNotAcquiredError
from payplan.utils.redis_utils import get_redis_client


@dramatiq.actor(max_retries=0, time_limit=settings.matching_task_time_limit_ms)
def run_binary_matching(period_key: str | None = None, force: bool = False) -> None:
    """
    Run binary matching.

    Args:
        period_key: Period to settle (default: today in scheduler timezone)
        force: Manual run, ignores an already completed period
    """
    if not settings.binary_plan_enabled:
        logger.info("Binary plan disabled, skipping matching")
        return

    logger.info(
        f"Starting binary matching"
        f"{f' for {period_key}' if period_key else ''}"
        f"{' (forced)' if force else ''}..."
    )

    try:
        report = run_async(_run_binary_matching_async(period_key, force))
    except LockNotAcquiredError:
        logger.warning("Binary matching already running elsewhere, skipping")
        return

    if report is None:
        return

    logger.info(
        f"Binary matching complete: {report.users_matched}/"
        f"{report.users_processed} nodes matched, "
        f"volume {report.total_matched_volume}, payout {report.total_payout}, "
        f"{report.errors} errors, {report.credit_failures} credit failures"
    )


async def _run_binary_matching_async(
    period_key: str | None, force: bool
) -> MatchingReport | None:
    """Async implementation of binary matching."""
    engine = create_task_engine()
    session_maker = create_task_session_maker(engine)
    redis_client = await get_redis_client()

    try:
        plan = load_plan(settings)
        service = MatchingRunService(
            session_maker,
            redis_client,
            plan.binary,
            LedgerWalletClient(session_maker),
            lock_ttl_seconds=settings.matching_lock_ttl_seconds,
            timezone=settings.scheduler_timezone,
        )
        return await service.run(period_key=period_key, force=force)
    finally:
        await redis_client.aclose()
        await engine.dispose()
