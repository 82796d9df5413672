"""
Dramatiq broker configuration.

Redis-based message broker for the rewards batch jobs.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger

from mlm_rewards.config.constants import JOB_MAX_RETRIES
from mlm_rewards.config.settings import settings
from mlm_rewards.utils.exceptions import is_retryable


def should_retry(retries_so_far: int, exception: Exception) -> bool:
    """Retry only transient database failures, up to JOB_MAX_RETRIES."""
    return retries_so_far < JOB_MAX_RETRIES and is_retryable(exception)


redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password if settings.redis_password else None,
    db=settings.redis_db,
)

# ShutdownNotifications lets batch loops stop between units
redis_broker.add_middleware(ShutdownNotifications())
redis_broker.add_middleware(CurrentMessage())
redis_broker.add_middleware(
    Retries(
        max_retries=JOB_MAX_RETRIES,
        min_backoff=1000,  # 1 second
        max_backoff=60000,  # 1 minute
        retry_when=should_retry,
    )
)

dramatiq.set_broker(redis_broker)

broker = redis_broker

logger.info(
    f"Dramatiq broker initialized: "
    f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
)
