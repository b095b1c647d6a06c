"""
Health check server for the compensation scheduler.

Exposes /health, /readiness and /liveness over aiohttp.
"""

import asyncio

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

# Scheduler being monitored
_scheduler: AsyncIOScheduler | None = None


def set_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    """
    Register scheduler for health checks.

    Args:
        scheduler: Scheduler to monitor (None to unregister)
    """
    global _scheduler
    _scheduler = scheduler


def _job_info(scheduler: AsyncIOScheduler) -> list[dict]:
    return [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": (
                job.next_run_time.isoformat() if job.next_run_time else None
            ),
        }
        for job in scheduler.get_jobs()
    ]


async def health_handler(request: web.Request) -> web.Response:
    """Scheduler state and next run of each job."""
    if _scheduler is None:
        return web.json_response(
            {"status": "unhealthy", "error": "Scheduler not initialized"},
            status=503,
        )

    jobs = _job_info(_scheduler)
    running = _scheduler.running
    return web.json_response(
        {
            "status": "healthy" if running else "stopped",
            "scheduler_running": running,
            "jobs_count": len(jobs),
            "jobs": jobs,
        },
        status=200 if running else 503,
    )


async def readiness_handler(request: web.Request) -> web.Response:
    """Ready once the scheduler runs."""
    ready = _scheduler is not None and _scheduler.running
    return web.json_response(
        {"status": "ready" if ready else "not_ready", "ready": ready},
        status=200 if ready else 503,
    )


async def liveness_handler(request: web.Request) -> web.Response:
    """Process is alive."""
    return web.json_response({"status": "alive", "alive": True})


def create_health_app() -> web.Application:
    """Build aiohttp application with health routes."""
    app = web.Application()
    app.router.add_get("/health", health_handler)
    app.router.add_get("/readiness", readiness_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(
    host: str = "0.0.0.0",
    port: int = 8080,
) -> tuple[web.AppRunner, web.TCPSite]:
    """
    Start health check server.

    Args:
        host: Host to bind to
        port: Port to bind to

    Returns:
        Tuple of (AppRunner, TCPSite) for cleanup
    """
    runner = web.AppRunner(create_health_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Health check server started on {host}:{port}")
    return runner, site


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """
    Stop health check server.

    Args:
        runner: AppRunner to cleanup
        timeout: Maximum time to wait for cleanup in seconds
    """
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("Health check server stopped")
    except TimeoutError:
        logger.warning(f"Health check server cleanup timed out after {timeout}s")
