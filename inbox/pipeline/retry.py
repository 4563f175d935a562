"""
Bounded optimistic retry for unique-constraint races.

Two ingestions can both miss a row and both try to create it; the loser gets
an IntegrityError. Instead of locking, the whole find-or-create is retried
after a short random pause, by which time the winner's row is visible.
"""
import logging
import random
import time
from functools import wraps

from sqlalchemy.exc import IntegrityError

logger = logging.getLogger('pipeline.retry')


def with_optimistic_retry(fn, max_attempts=3, jitter_ms=(25, 100), retry_on=(IntegrityError,), sleep=time.sleep):
    """
    Call fn() up to max_attempts times, retrying on retry_on exceptions.

    The last failure is re-raised unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except retry_on as e:
            if attempt == max_attempts:
                logger.error("Giving up after %d attempts: %s", max_attempts, e.__class__.__name__)
                raise
            delay_ms = random.uniform(*jitter_ms)
            logger.info("Conflict on attempt %d/%d (%s), retrying in %.0fms",
                        attempt, max_attempts, e.__class__.__name__, delay_ms)
            sleep(delay_ms / 1000.0)


def optimistic_retry(max_attempts=3, jitter_ms=(25, 100), retry_on=(IntegrityError,)):
    """Decorator form of with_optimistic_retry()."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return with_optimistic_retry(
                lambda: func(*args, **kwargs),
                max_attempts=max_attempts, jitter_ms=jitter_ms, retry_on=retry_on,
            )
        return wrapper
    return decorator
