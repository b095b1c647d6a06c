"""
Compensation scheduler.

APScheduler process that enqueues the daily binary matching run and
the hourly credit retry, with a health check server alongside.
"""

import asyncio
import signal
from collections.abc import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from jobs.health import set_scheduler, start_health_server, stop_health_server
from payplan.config.settings import settings
from payplan.utils.logging import setup_logging


def create_scheduler(
    enqueue_matching: Callable[[], object],
    enqueue_credit_retry: Callable[[], object],
) -> AsyncIOScheduler:
    """
    Build scheduler with compensation jobs.

    Args:
        enqueue_matching: Sends the binary matching task
        enqueue_credit_retry: Sends the credit retry task

    Returns:
        Configured, not started scheduler
    """
    scheduler = AsyncIOScheduler(
        timezone=settings.scheduler_timezone,
        job_defaults={
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 300,
        },
    )

    scheduler.add_job(
        func=enqueue_matching,
        trigger=CronTrigger(
            hour=settings.matching_cron_hour,
            minute=settings.matching_cron_minute,
            timezone=settings.scheduler_timezone,
        ),
        id="binary_matching",
        name="Binary matching",
        replace_existing=True,
    )
    scheduler.add_job(
        func=enqueue_credit_retry,
        trigger=IntervalTrigger(minutes=settings.credit_retry_interval_minutes),
        id="credit_retry",
        name="Credit retry",
        replace_existing=True,
    )

    logger.info(
        f"Scheduler configured: binary matching at "
        f"{settings.matching_cron_hour:02d}:{settings.matching_cron_minute:02d} "
        f"{settings.scheduler_timezone}, credit retry every "
        f"{settings.credit_retry_interval_minutes} min"
    )
    return scheduler


async def main() -> None:
    """Run scheduler until SIGINT/SIGTERM."""
    setup_logging()

    # Broker must be configured before actors are imported
    import jobs.broker  # noqa: F401
    from jobs.tasks.binary_matching import run_binary_matching
    from jobs.tasks.credit_retry import retry_failed_credits

    scheduler = create_scheduler(
        run_binary_matching.send, retry_failed_credits.send
    )
    scheduler.start()
    set_scheduler(scheduler)

    runner, _site = await start_health_server(port=settings.health_check_port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
    finally:
        logger.info("Stopping scheduler...")
        scheduler.shutdown(wait=False)
        await stop_health_server(runner)


if __name__ == "__main__":
    asyncio.run(main())
