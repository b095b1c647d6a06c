#!/usr/bin/env python3
"""
Retry failed wallet credits once, outside the scheduler.

Usage:
    python scripts/retry_failed_credits.py --limit 500
"""

import argparse
import asyncio
import sys

from loguru import logger

from jobs.utils.database import create_task_engine, create_task_session_maker
from payplan.config.settings import settings
from payplan.services.credit_retry_service import CreditRetryService
from payplan.services.wallet.ledger_client import LedgerWalletClient


logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level} | {message}")


async def run(limit: int) -> None:
    engine = create_task_engine()
    session_maker = create_task_session_maker(engine)
    try:
        async with session_maker() as session:
            service = CreditRetryService(
                session,
                LedgerWalletClient(session_maker),
                max_attempts=settings.credit_max_attempts,
                pending_grace_minutes=settings.credit_pending_grace_minutes,
            )
            stats = await service.retry_failed_credits(limit=limit)
        logger.info(
            f"Retried {stats['retried']}: {stats['credited']} credited, "
            f"{stats['failed']} failed"
        )
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Retry failed wallet credits")
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.credit_retry_batch_size,
        help="Max records per record type",
    )
    args = parser.parse_args()
    asyncio.run(run(args.limit))


if __name__ == "__main__":
    main()
