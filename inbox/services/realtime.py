"""
Realtime notifications over Redis pub/sub.

Fire-and-forget: a failed publish is logged and swallowed, never failing the
job that produced the event. Subscribers that miss a message catch up from
the database.
"""
import json
import logging

logger = logging.getLogger('services.realtime')


class RedisPublisher:

    def __init__(self, redis_client=None):
        self._redis = redis_client

    @property
    def redis(self):
        if self._redis is None:
            from inbox.extensions import redis_client
            self._redis = redis_client
        return self._redis

    def publish(self, channel, event):
        try:
            receivers = self.redis.publish(channel, json.dumps(event, default=str))
            logger.debug("Published %s to %s (%s receivers)", event.get('type'), channel, receivers)
            return True
        except Exception as e:
            logger.warning("Publish to %s failed: %s", channel, e)
            return False
