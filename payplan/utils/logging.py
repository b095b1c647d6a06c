"""
Logging setup.

Configures loguru sinks for the service and the matching engine.
"""

import sys
from pathlib import Path

from loguru import logger

from payplan.config.settings import settings

MATCHING_LOGGER_PREFIX = "payplan.services.binary.matching_engine"


def _is_matching_record(record: dict) -> bool:
    return record["name"].startswith(MATCHING_LOGGER_PREFIX)


def setup_logging(log_dir: str | None = None) -> None:
    """
    Configure loguru sinks.

    Adds stderr, a rotating service log and a dedicated
    binary-matching log.

    Args:
        log_dir: Directory for log files (default from settings)
    """
    directory = Path(log_dir or settings.log_dir)
    directory.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        directory / "payplan.log",
        level=settings.log_level,
        rotation="1 day",
        retention="7 days",
        enqueue=True,
    )
    logger.add(
        directory / "binary-matching.log",
        level="INFO",
        rotation="1 day",
        retention="30 days",
        filter=_is_matching_record,
        enqueue=True,
    )
