"""
RQ queues for work that should not hold up a request.

Only email delivery runs in the background today. Start a worker with::

    rq worker emails --url redis://localhost:6379/0
"""

from typing import Any, Callable, Optional

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Retry

from portal.core.config import settings
from portal.core.logging import get_logger

logger = get_logger(__name__)

EMAIL_QUEUE = "emails"
EMAIL_JOB_TIMEOUT = 60
EMAIL_RETRY = Retry(max=3, interval=[10, 60, 300])

# no network traffic until the first enqueue or ping
redis_conn = Redis.from_url(settings.REDIS_URL, socket_connect_timeout=2)

email_queue = Queue(EMAIL_QUEUE, connection=redis_conn)


def enqueue_task(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[str]:
    """
    Put an email task on the queue.

    A Redis outage is logged and reported as ``None`` rather than raised,
    so a request that already committed its own work still answers the
    same way whether or not the mail could be queued.

    Returns:
        Job ID, or ``None`` when the queue is unreachable
    """
    try:
        job = email_queue.enqueue(
            func,
            args=args,
            kwargs=kwargs,
            retry=EMAIL_RETRY,
            job_timeout=EMAIL_JOB_TIMEOUT,
        )
    except RedisError as e:
        logger.error(f"Could not enqueue {func.__name__}: {e}")
        return None
    logger.info(f"Enqueued {func.__name__} on {EMAIL_QUEUE} as job {job.id}")
    return job.id


def queue_status() -> dict[str, Any]:
    """Ping Redis and report the email backlog."""
    try:
        redis_conn.ping()
        return {"status": "healthy", "queue": EMAIL_QUEUE, "pending": email_queue.count}
    except RedisError as e:
        logger.warning(f"Queue health check failed: {e}")
        return {"status": "unhealthy", "queue": EMAIL_QUEUE, "error": str(e)}
