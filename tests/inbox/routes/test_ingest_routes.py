"""Tests for POST /api/ingest/<tenant_id>."""
import pytest
from unittest.mock import patch

import inbox.pipeline.manager as manager


@pytest.fixture(autouse=True)
def _queue(fake_queue):
    with patch.object(manager, '_job_queue', fake_queue):
        yield fake_queue


class TestIngestBatch:

    def test_accepts_and_queues(self, client, fake_queue, make_event):
        body = {'platform': 'instagram', 'account_id': 'acct-1', 'interactions': [make_event('m1')]}

        resp = client.post('/api/ingest/tenant-1', json=body)

        assert resp.status_code == 202
        assert resp.get_json() == {'job_id': 'job-1', 'status': 'queued'}
        job_type, payload, _ = fake_queue.jobs[0]
        assert job_type == 'ingest-batch'
        assert payload['tenant_id'] == 'tenant-1'
        assert payload['platform'] == 'INSTAGRAM'
        assert payload['account_id'] == 'acct-1'
        assert payload['batch'] == {'posts': [], 'interactions': [make_event('m1')]}

    def test_posts_only_batch(self, client, fake_queue):
        body = {'platform': 'FACEBOOK', 'posts': [{'external_id': 'p1', 'caption': 'New arrivals'}]}
        resp = client.post('/api/ingest/tenant-1', json=body)
        assert resp.status_code == 202
        assert len(fake_queue.jobs) == 1

    def test_non_object_body(self, client, fake_queue):
        resp = client.post('/api/ingest/tenant-1', json=[1, 2])
        assert resp.status_code == 400
        assert fake_queue.jobs == []

    def test_missing_body(self, client):
        resp = client.post('/api/ingest/tenant-1', data='not json', content_type='text/plain')
        assert resp.status_code == 400

    def test_unknown_platform(self, client, fake_queue, make_event):
        resp = client.post('/api/ingest/tenant-1', json={'platform': 'MYSPACE', 'interactions': [make_event()]})
        assert resp.status_code == 400
        assert 'platform must be one of' in resp.get_json()['error']
        assert fake_queue.jobs == []

    def test_invalid_batch_lists_errors(self, client, fake_queue, make_event):
        body = {'platform': 'INSTAGRAM', 'interactions': [make_event('m1', type='POKE')]}
        resp = client.post('/api/ingest/tenant-1', json=body)
        assert resp.status_code == 400
        data = resp.get_json()
        assert data['error'] == 'Invalid batch'
        assert data['details']
        assert fake_queue.jobs == []
