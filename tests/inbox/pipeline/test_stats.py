"""Tests for inbox.pipeline.stats — fast-path increments and reconciliation."""
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from inbox.models.interaction import Interaction
from inbox.models.tenant_stats import TenantStats
from inbox.pipeline.stats import StatsAggregator


def _row(platform='INSTAGRAM', kind='DM', is_replied=False):
    return SimpleNamespace(platform=platform, type=kind, is_replied=is_replied)


def _stored(external_id, tenant_id='tenant-1', platform='INSTAGRAM', kind='DM', intent=None, is_replied=False):
    at = datetime(2026, 1, 15, 10, tzinfo=timezone.utc)
    return Interaction(tenant_id=tenant_id, platform=platform, type=kind, external_id=external_id,
                       received_at=at, content_updated_at=at, ai_intent=intent, is_replied=is_replied)


@pytest.fixture
def aggregator(db_session, tenant):
    return StatsAggregator(db_session)


class TestIncrement:

    def test_creates_row_then_adds(self, aggregator, db_session):
        assert aggregator.increment('tenant-1', [_row(), _row(kind='COMMENT', is_replied=True)]) == 2
        assert aggregator.increment('tenant-1', [_row(platform='FACEBOOK')]) == 1
        db_session.commit()

        snapshot = aggregator.snapshot('tenant-1')
        assert snapshot['total_interactions'] == 3
        assert snapshot['unanswered_count'] == 2
        assert snapshot['platform_counts'] == {'INSTAGRAM': 2, 'FACEBOOK': 1}
        assert snapshot['type_counts'] == {'DM': 2, 'COMMENT': 1}
        assert snapshot['intent_counts'] == {}

    def test_nothing_to_count(self, aggregator, db_session):
        assert aggregator.increment('tenant-1', []) == 0
        assert db_session.get(TenantStats, 'tenant-1') is None


class TestReconcile:

    def test_overwrites_drifted_counters(self, aggregator, db_session, other_tenant):
        aggregator.increment('tenant-1', [_row()] * 5)
        db_session.add_all([
            _stored('a', intent='pricing_inquiry'),
            _stored('b', kind='COMMENT', intent='pricing_inquiry', is_replied=True),
            _stored('c', platform='TIKTOK'),
            _stored('z', tenant_id='tenant-2'),
        ])
        db_session.flush()

        result = aggregator.reconcile_tenant('tenant-1')
        db_session.commit()

        assert result == {'total_interactions': 3, 'unanswered_count': 2}
        snapshot = aggregator.snapshot('tenant-1')
        assert snapshot['total_interactions'] == 3
        assert snapshot['platform_counts'] == {'INSTAGRAM': 2, 'TIKTOK': 1}
        assert snapshot['type_counts'] == {'DM': 2, 'COMMENT': 1}
        # NULL intents are not bucketed
        assert snapshot['intent_counts'] == {'pricing_inquiry': 2}
        assert snapshot['last_reconciled_at'] is not None

    def test_reconcile_all(self, aggregator, db_session, other_tenant):
        db_session.add(_stored('z', tenant_id='tenant-2'))
        db_session.flush()
        assert aggregator.reconcile_all() == 2
        db_session.commit()
        assert db_session.get(TenantStats, 'tenant-1').total_interactions == 0
        assert db_session.get(TenantStats, 'tenant-2').total_interactions == 1

    def test_reconcile_is_idempotent(self, aggregator, db_session):
        db_session.add(_stored('a'))
        db_session.flush()
        first = aggregator.reconcile_tenant('tenant-1')
        second = aggregator.reconcile_tenant('tenant-1')
        assert first == second


class TestSnapshot:

    def test_unknown_tenant_is_zeroes(self, aggregator):
        snapshot = aggregator.snapshot('tenant-1')
        assert snapshot['total_interactions'] == 0
        assert snapshot['last_updated_at'] is None
        assert snapshot['platform_counts'] == {}
