"""
Exception taxonomy for the ingestion / analysis pipeline.

RetryableError subclasses are meant to escape a job so the queue's
retry/backoff policy engages. InvalidBatchError is permanent: retrying a
malformed payload never makes it valid.
"""


class InboxError(Exception):
    """Base class for pipeline errors."""


class RetryableError(InboxError):
    """Transient failure — the job should be retried by the queue."""


class RateLimitExceeded(RetryableError):
    """An upstream platform or provider answered with a rate-limit response."""

    def __init__(self, source='', retry_after=None):
        self.source = source
        self.retry_after = retry_after
        super().__init__('RATE_LIMIT_EXCEEDED')


class InvalidBatchError(InboxError, ValueError):
    """A normalized batch failed boundary validation."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__('; '.join(self.errors) or 'invalid batch')


def is_rate_limit_error(error):
    """True if an exception looks like an upstream 429 / rate-limit response."""
    if isinstance(error, RateLimitExceeded):
        return True
    status = getattr(error, 'status_code', None) or getattr(getattr(error, 'response', None), 'status_code', None)
    if status == 429:
        return True
    error_str = str(error).lower()
    return 'rate_limit' in error_str or '429' in error_str or 'rate limit' in error_str


class StaleWriteError(RetryableError):
    """A compare-and-set write lost to a concurrent writer; re-read and retry."""
