"""Shared test fixtures."""
from datetime import datetime, timezone

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy.orm import sessionmaker

from inbox.database import Base, import_models, make_engine


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created (savepoints + FKs enabled)."""
    engine = make_engine('sqlite://')
    import_models()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    Modules bind `get_session` at import time, but it builds sessions through
    inbox.database.SessionLocal, so that is what gets patched. close() is
    disabled so code closing its session in a finally block doesn't
    invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with patch('inbox.database.SessionLocal', return_value=db_session):
        yield db_session
    db_session.close = _real_close


@pytest.fixture
def session_factory(db_session):
    """Explicit session factory for services that take one."""
    return lambda: db_session


@pytest.fixture
def tenant(db_session):
    from inbox.models.tenant import Tenant
    row = Tenant(id='tenant-1', email='shop@example.com', business_name='Kathmandu Threads', language='en')
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def other_tenant(db_session):
    from inbox.models.tenant import Tenant
    row = Tenant(id='tenant-2', email='other@example.com', business_name='Other Shop', language='en')
    db_session.add(row)
    db_session.commit()
    return row


class FakeQueue:
    """Records enqueue calls instead of talking to RQ."""

    def __init__(self):
        self.jobs = []

    def enqueue(self, job_type, payload, attempts=1, backoff=1):
        self.jobs.append((job_type, dict(payload), attempts))
        return f'job-{len(self.jobs)}'

    def of_type(self, job_type):
        return [payload for kind, payload, _ in self.jobs if kind == job_type]


class FakePublisher:
    """Records published events."""

    def __init__(self):
        self.events = []

    def publish(self, channel, event):
        self.events.append((channel, event))
        return True


class FakeRedis:
    """Minimal in-memory Redis fake: strings, hashes, counters, pipelines."""

    def __init__(self):
        self.store = {}
        self.hashes = {}
        self.expiries = {}
        self.published = []

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value):
        self.store[key] = str(value)

    def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    def pexpire(self, key, ms):
        self.expiries[key] = ms
        return True

    def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)
            self.hashes.pop(key, None)

    def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = str(value)

    def hincrby(self, key, field, amount):
        h = self.hashes.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)
        return int(h[field])

    def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Buffers commands and runs them against the FakeRedis on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def __getattr__(self, name):
        def _queue(*args):
            self._ops.append((name, args))
            return self
        return _queue

    def execute(self):
        results = [getattr(self._redis, name)(*args) for name, args in self._ops]
        self._ops = []
        return results


@pytest.fixture
def fake_queue():
    return FakeQueue()


@pytest.fixture
def fake_publisher():
    return FakePublisher()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def mock_redis(fake_redis):
    """Swap the shared Redis client for the in-memory fake."""
    with patch('inbox.extensions.redis_client', fake_redis):
        yield fake_redis


@pytest.fixture
def app(mock_redis):
    """Flask test app."""
    from inbox import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def ts():
    """Build aware UTC timestamps: ts(10) → 2026-01-15 10:00 UTC."""
    def _make(hour, minute=0):
        return datetime(2026, 1, 15, hour, minute, tzinfo=timezone.utc)
    return _make


@pytest.fixture
def make_event():
    """Factory for raw interaction dicts as a platform adapter would emit them."""
    def _make(external_id='m1', **overrides):
        event = {
            'external_id': external_id,
            'platform': 'INSTAGRAM',
            'type': 'DM',
            'verb': 'add',
            'sender_id': 'ig-100',
            'sender_username': 'sita.shrestha',
            'content_text': 'hello',
            'received_at': '2026-01-15T10:00:00+00:00',
        }
        event.update(overrides)
        return event
    return _make


@pytest.fixture
def mock_openai_response():
    """Factory: a MagicMock shaped like an OpenAI chat completion."""
    import json

    def _make(content, model='gpt-4o-mini'):
        response = MagicMock()
        response.choices[0].message.content = json.dumps(content)
        response.model = model
        return response
    return _make
