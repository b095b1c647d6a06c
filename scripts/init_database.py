#!/usr/bin/env python3
"""Create compensation tables without alembic (local development)."""

import asyncio
import sys

from loguru import logger

from payplan.config.database import async_engine
from payplan.models import Base

logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database() -> None:
    """Create all database tables."""
    logger.info("Connecting to database...")

    async with async_engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    await async_engine.dispose()
    logger.success(f"Created {len(Base.metadata.tables)} tables")


if __name__ == "__main__":
    asyncio.run(init_database())
