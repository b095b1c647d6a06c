"""
Dramatiq broker configuration.

Redis-based message broker for task queue.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger

from payplan.config.settings import settings
from payplan.utils.logging import setup_logging
from payplan.utils.redis_utils import get_redis_url_masked

# Worker processes import this module first
setup_logging()

# Initialize Redis broker with graceful shutdown middleware
redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password if settings.redis_password else None,
    db=settings.redis_db,
)

# ShutdownNotifications: lets a running matching batch stop between nodes
# CurrentMessage: access to current message in actors
# Retries: exponential backoff for failed tasks
redis_broker.add_middleware(ShutdownNotifications())
redis_broker.add_middleware(CurrentMessage())
redis_broker.add_middleware(
    Retries(
        max_retries=3,
        min_backoff=1000,  # 1 second
        max_backoff=60000,  # 1 minute
    )
)

# Set as default broker
dramatiq.set_broker(redis_broker)

broker = redis_broker

logger.info(f"Dramatiq broker initialized: {get_redis_url_masked()}")
