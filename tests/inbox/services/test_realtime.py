"""Tests for inbox.services.realtime — pub/sub event publishing."""
import json
from datetime import datetime, timezone

from unittest.mock import MagicMock

from inbox.services.realtime import RedisPublisher


class TestRedisPublisher:

    def test_publishes_json(self, fake_redis):
        event = {'type': 'INTERACTION_ANALYZED', 'tenantId': 'tenant-1', 'data': {'id': 'i-1'}}
        assert RedisPublisher(fake_redis).publish('tenant:tenant-1:events', event) is True

        channel, message = fake_redis.published[0]
        assert channel == 'tenant:tenant-1:events'
        assert json.loads(message) == event

    def test_datetimes_are_stringified(self, fake_redis):
        at = datetime(2026, 1, 15, 10, tzinfo=timezone.utc)
        RedisPublisher(fake_redis).publish('c', {'type': 'X', 'at': at})
        assert json.loads(fake_redis.published[0][1])['at'] == str(at)

    def test_failure_is_swallowed(self):
        broken = MagicMock()
        broken.publish.side_effect = ConnectionError('redis down')
        assert RedisPublisher(broken).publish('c', {'type': 'X'}) is False

    def test_defaults_to_shared_client(self, mock_redis):
        RedisPublisher().publish('c', {'type': 'X'})
        assert len(mock_redis.published) == 1
