"""
Redis-backed circuit breaker for the classifier provider.

State is shared through Redis so every worker process sees the same view:
  closed     calls pass through
  open       calls fail fast with CircuitOpenError until reset_timeout passes
  half_open  the next call is let through; success closes, failure re-opens

Redis being unreachable never blocks a call: the breaker then behaves as
closed. Per-breaker counters feed GET /api/health.
"""
import logging
import time
from functools import wraps

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(Exception):
    """Raised instead of calling a provider whose breaker is open."""
    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN — provider unavailable")


class CircuitBreaker:

    PREFIX = 'inbox:cb'

    def __init__(self, name, redis_client, failure_threshold=5, reset_timeout=60):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    def _key(self, suffix):
        return f'{self.PREFIX}:{self.name}:{suffix}'

    def _opened_at(self):
        value = self.redis.get(self._key('opened_at'))
        return float(value) if value else None

    @property
    def state(self):
        try:
            current = self.redis.get(self._key('state')) or CLOSED
            if current == OPEN:
                opened_at = self._opened_at()
                if opened_at is not None and time.time() - opened_at > self.reset_timeout:
                    self.redis.set(self._key('state'), HALF_OPEN)
                    return HALF_OPEN
            return current
        except Exception:
            return CLOSED

    @property
    def failure_count(self):
        try:
            return int(self.redis.get(self._key('failures')) or 0)
        except Exception:
            return 0

    def call(self, func, *args, **kwargs):
        if self.state == OPEN:
            retry_after = None
            try:
                opened_at = self._opened_at()
                if opened_at is not None:
                    retry_after = max(0.0, self.reset_timeout - (time.time() - opened_at))
            except Exception:
                pass
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def protect(self, func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper

    def _on_success(self):
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.hincrby(self._key('health'), 'success', 1)
            pipe.hset(self._key('health'), 'last_success', str(time.time()))
            pipe.execute()
        except Exception:
            logger.debug("Circuit '%s': could not record success", self.name)

    def _on_failure(self, error):
        try:
            failures = self.redis.incr(self._key('failures'))
            pipe = self.redis.pipeline()
            pipe.hincrby(self._key('health'), 'failure', 1)
            pipe.hset(self._key('health'), 'last_failure', str(time.time()))
            pipe.hset(self._key('health'), 'last_error', str(error)[:200])
            if failures >= self.failure_threshold:
                pipe.set(self._key('state'), OPEN)
                pipe.set(self._key('opened_at'), str(time.time()))
            pipe.execute()
        except Exception:
            logger.debug("Circuit '%s': could not record failure", self.name)
            return

        if failures >= self.failure_threshold:
            logger.warning("Circuit '%s' OPEN after %d failures: %s", self.name, failures, error)
        else:
            logger.info("Circuit '%s' failure %d/%d: %s", self.name, failures, self.failure_threshold, error)

    def reset(self):
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.delete(self._key('opened_at'))
            pipe.execute()
            logger.info("Circuit '%s' manually reset", self.name)
        except Exception as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)

    def get_health(self):
        try:
            data = self.redis.hgetall(self._key('health')) or {}
        except Exception:
            data = {}
        return {
            'name': self.name,
            'state': self.state,
            'failure_count': self.failure_count,
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(data.get('success', 0)),
            'total_failure': int(data.get('failure', 0)),
            'last_success': float(data['last_success']) if data.get('last_success') else None,
            'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
            'last_error': data.get('last_error', ''),
        }


# ── Registry ──────────────────────────────────────────────────────────────

# name → (failure_threshold, reset_timeout)
BREAKER_SETTINGS = {
    'openai': (5, 60),
}

_registry = {}


def get_breaker(name, redis_client=None):
    """Named breaker, created on first use with its configured thresholds."""
    if name not in _registry:
        if redis_client is None:
            from inbox.extensions import redis_client
        threshold, timeout = BREAKER_SETTINGS.get(name, (5, 60))
        _registry[name] = CircuitBreaker(name, redis_client, failure_threshold=threshold, reset_timeout=timeout)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    for name in BREAKER_SETTINGS:
        _registry.pop(name, None)
        get_breaker(name, redis_client)
    return get_all_breakers()
