#!/usr/bin/env python3
"""
Run binary matching manually.

Runs the matching engine in-process under the same run lease as the
scheduled task. Use --force for backfills or to re-run a period that
already completed.

Usage:
    python scripts/run_binary_matching.py
    python scripts/run_binary_matching.py --period 2024-05-01 --force
"""

import argparse
import asyncio
import sys

from loguru import logger

from jobs.utils.database import create_task_engine, create_task_session_maker
from payplan.config.plan import load_plan
from payplan.config.settings import settings
from payplan.services.matching_run_service import MatchingRunService
from payplan.services.wallet.ledger_client import LedgerWalletClient
from payplan.utils.exceptions import LockNotAcquiredError
from payplan.utils.redis_utils import get_redis_client


logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level} | {message}")


async def run(period_key: str | None, force: bool) -> int:
    """Run matching once, return process exit code."""
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
        try:
            report = await service.run(period_key=period_key, force=force)
        except LockNotAcquiredError:
            logger.error("Another matching run holds the lock")
            return 2

        if report is None:
            logger.info("Period already settled, use --force to run again")
            return 0

        logger.info("=" * 60)
        for key, value in report.to_dict().items():
            logger.info(f"{key:>22}: {value}")
        logger.info("=" * 60)
        return 1 if report.errors else 0
    finally:
        await redis_client.aclose()
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run binary matching")
    parser.add_argument(
        "--period",
        help="Period key to settle, e.g. 2024-05-01 (default: today)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run even if the period already completed",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.period, args.force)))


if __name__ == "__main__":
    main()
