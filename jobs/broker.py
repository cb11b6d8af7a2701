"""
Dramatiq broker configuration.

Redis-based message broker for the engine's background jobs.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger

from affiliate_engine.config.operational_constants import (
    DEFAULT_MAX_RETRIES,
    RETRY_MAX_BACKOFF,
    RETRY_MIN_BACKOFF,
)
from affiliate_engine.config.settings import settings
from affiliate_engine.utils.redis_utils import get_redis_url_masked

redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password if settings.redis_password else None,
    db=settings.redis_db,
)

# ShutdownNotifications: lets long settlements stop between affiliates
# CurrentMessage: exposes the message to actors for logging
# Retries: exponential backoff for failed jobs
redis_broker.add_middleware(ShutdownNotifications())
redis_broker.add_middleware(CurrentMessage())
redis_broker.add_middleware(
    Retries(
        max_retries=DEFAULT_MAX_RETRIES,
        min_backoff=RETRY_MIN_BACKOFF,
        max_backoff=RETRY_MAX_BACKOFF,
    )
)

dramatiq.set_broker(redis_broker)

broker = redis_broker

logger.info(
    "Dramatiq broker initialized",
    extra={"redis": get_redis_url_masked()},
)
