"""
Job transport — RQ queues on Redis, plus a shared fixed-window rate limiter.

Jobs are addressed by type; JOB_ROUTES decides the queue and the function
path the worker imports. Retries use RQ's Retry with an exponential
interval schedule, so a job raising RetryableError (or anything else) is
re-run after 1s, 2s, 4s, ... until its attempts are spent.
"""
import logging
import time
from typing import Any, Dict, List, Optional

from inbox.config import ANALYSIS_QUEUE, BACKOFF_BASE_SECONDS, INGESTION_QUEUE, MAINTENANCE_QUEUE

logger = logging.getLogger('services.queue')

# job type → (queue name, dotted function path)
JOB_ROUTES = {
    'ingest-batch': (INGESTION_QUEUE, 'inbox.pipeline.manager.run_ingestion'),
    'webhook-ingest': (INGESTION_QUEUE, 'inbox.pipeline.manager.run_webhook_ingestion'),
    'analyze-interaction': (ANALYSIS_QUEUE, 'inbox.pipeline.manager.run_analysis'),
    'reconcile-stats': (MAINTENANCE_QUEUE, 'inbox.pipeline.manager.run_stats_reconciliation'),
}

JOB_TIMEOUT_SECONDS = 600


def backoff_intervals(attempts: int, base: int = BACKOFF_BASE_SECONDS) -> List[int]:
    """Delays between attempts: one fewer than attempts, doubling each time."""
    return [base * (2 ** i) for i in range(max(0, attempts - 1))]


class JobQueue:

    def __init__(self, connection=None):
        self._connection = connection
        self._queues = {}

    def _get_queue(self, name):
        # Lazy so importing this module never touches Redis
        if name not in self._queues:
            from rq import Queue
            if self._connection is None:
                from inbox.extensions import rq_connection
                self._connection = rq_connection
            self._queues[name] = Queue(name, connection=self._connection)
        return self._queues[name]

    def enqueue(self, job_type: str, payload: Dict[str, Any], attempts: int = 1,
                backoff: int = BACKOFF_BASE_SECONDS) -> str:
        """Enqueue a job; payload becomes the job function's keyword arguments."""
        from rq import Retry

        if job_type not in JOB_ROUTES:
            raise ValueError(f"Unknown job type: {job_type}")
        queue_name, func_path = JOB_ROUTES[job_type]

        retry = None
        if attempts > 1:
            retry = Retry(max=attempts - 1, interval=backoff_intervals(attempts, backoff))

        job = self._get_queue(queue_name).enqueue(
            func_path,
            kwargs=dict(payload),
            retry=retry,
            job_timeout=JOB_TIMEOUT_SECONDS,
            description=job_type,
        )
        logger.debug("Enqueued %s on '%s' as job %s", job_type, queue_name, job.id)
        return job.id


class RateLimiter:
    """
    Fixed-window limiter shared by every worker through Redis.

    Each window is one key, INCR'd per acquisition and expired after two
    windows. acquire() blocks until a slot is free. If Redis is unreachable
    the limiter lets work through rather than stall the queue.
    """

    PREFIX = 'inbox:ratelimit'

    def __init__(self, redis_client, name: str, max_calls: int, window_seconds: float,
                 sleep=time.sleep, clock=time.time):
        self.redis = redis_client
        self.name = name
        self.max_calls = max_calls
        self.window_ms = int(window_seconds * 1000)
        self.sleep = sleep
        self.clock = clock

    def _window(self) -> int:
        return int(self.clock() * 1000) // self.window_ms

    def try_acquire(self) -> bool:
        key = f'{self.PREFIX}:{self.name}:{self._window()}'
        try:
            pipe = self.redis.pipeline()
            pipe.incr(key)
            pipe.pexpire(key, self.window_ms * 2)
            count, _ = pipe.execute()
        except Exception as e:
            logger.warning("Rate limiter '%s' unavailable, allowing call: %s", self.name, e)
            return True
        return int(count) <= self.max_calls

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """Block until a slot is granted. False only if timeout expires first."""
        deadline = None if timeout is None else self.clock() + timeout
        while True:
            if self.try_acquire():
                return True
            now_ms = self.clock() * 1000
            wait = (self.window_ms - (now_ms % self.window_ms)) / 1000.0
            if deadline is not None and self.clock() + wait > deadline:
                return False
            logger.debug("Rate limiter '%s' full, waiting %.3fs", self.name, wait)
            self.sleep(wait)
