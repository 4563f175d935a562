"""Tests for inbox.pipeline.scoring — decay, increments, clamping, status and the CAS update."""
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import MagicMock, patch

import inbox.pipeline.scoring as scoring
from inbox.errors import StaleWriteError
from inbox.models.customer import Customer
from inbox.pipeline.scoring import (
    ScoringService, calculate_decayed_score, calculate_increment, clamp_score, decay_anchor,
    determine_status, effective_score, load_scoring_config,
)

NOW = datetime(2026, 1, 15, 12, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_config_cache():
    scoring._scoring_config = None
    yield
    scoring._scoring_config = None


def _customer(session, customer_id='c-1', score=0, status='COLD', **fields):
    fields.setdefault('total_interactions', 0)
    customer = Customer(id=customer_id, tenant_id='tenant-1', total_lead_score=score, status=status, **fields)
    session.add(customer)
    session.commit()
    return customer


class TestConfig:

    def test_yaml_loaded(self):
        cfg = load_scoring_config()
        assert cfg['half_life_days'] == 7
        assert cfg['intent_scores']['purchase_intent'] == 50
        assert cfg['type_weights']['DM'] == 2.5

    def test_fallback_when_yaml_missing(self):
        with patch('builtins.open', side_effect=FileNotFoundError('gone')):
            cfg = load_scoring_config()
        assert cfg['version'] == 'default'
        assert cfg['status_thresholds'] == {'HOT': 500, 'WARM': 100}


class TestDecay:

    def test_day_zero_unchanged(self):
        assert calculate_decayed_score(400, NOW, NOW) == 400

    def test_one_half_life(self):
        assert calculate_decayed_score(400, NOW - timedelta(days=7), NOW) == 200

    def test_two_half_lives(self):
        assert calculate_decayed_score(400, NOW - timedelta(days=14), NOW) == 100

    def test_monotonic_non_increasing(self):
        scores = [calculate_decayed_score(1000, NOW - timedelta(days=d), NOW) for d in range(0, 60)]
        assert scores[0] == 1000
        assert all(later <= earlier for earlier, later in zip(scores, scores[1:]))

    def test_future_anchor_does_not_grow(self):
        assert calculate_decayed_score(300, NOW + timedelta(days=2), NOW) == 300

    def test_no_anchor_or_zero_score(self):
        assert calculate_decayed_score(300, None, NOW) == 300
        assert calculate_decayed_score(0, NOW - timedelta(days=3), NOW) == 0

    def test_naive_anchor_treated_as_utc(self):
        naive = (NOW - timedelta(days=7)).replace(tzinfo=None)
        assert calculate_decayed_score(400, naive, NOW) == 200


class TestIncrement:

    def test_purchase_dm(self):
        assert calculate_increment('purchase_intent', 90, 'positive', 'DM') == 113    # 50 × .9 × 2.5 = 112.5

    def test_comment_weight(self):
        assert calculate_increment('pricing_inquiry', 100, 'neutral', 'COMMENT') == 30

    def test_negative_sentiment_flips_positive_delta(self):
        assert calculate_increment('purchase_intent', 100, 'negative', 'COMMENT') == -25

    def test_negative_intent_not_flipped_again(self):
        assert calculate_increment('complaint', 100, 'negative', 'COMMENT') == -15

    def test_half_rounds_up(self):
        # -15 × 1.0 × 0.5 = -7.5 → -7
        assert calculate_increment('complaint', 100, 'neutral', 'SHARE') == -7

    def test_unknown_intent_and_type(self):
        assert calculate_increment('mystery', 100, 'neutral', 'DM') == 0
        assert calculate_increment('pricing_inquiry', 100, 'neutral', 'CARRIER_PIGEON') == 30


class TestStatus:

    @pytest.mark.parametrize('score,status', [(0, 'COLD'), (99, 'COLD'), (100, 'WARM'), (499, 'WARM'), (500, 'HOT')])
    def test_thresholds(self, score, status):
        assert determine_status(score) == status

    def test_clamp(self):
        assert clamp_score(-5) == 0
        assert clamp_score(10001) == 10000
        assert clamp_score(42) == 42


class TestDecayAnchor:

    def test_prefers_score_timestamp(self):
        customer = Customer(score_updated_at=NOW - timedelta(days=7), last_interaction_at=NOW,
                            total_lead_score=400)
        assert decay_anchor(customer) == NOW - timedelta(days=7)
        assert effective_score(customer, NOW) == 200

    def test_falls_back_to_last_interaction(self):
        customer = Customer(last_interaction_at=NOW - timedelta(days=14), total_lead_score=400)
        assert effective_score(customer, NOW) == 100


class TestScoringService:

    def test_first_score(self, db_session, tenant):
        _customer(db_session)
        update = ScoringService(db_session).update_customer_score(
            'c-1', 'DM', {'intent': 'purchase_intent', 'confidence': 100, 'sentiment': 'positive'}, now=NOW)
        db_session.commit()

        assert update.delta == 125
        assert update.new_score == 125
        assert update.status == 'WARM'
        fresh = db_session.get(Customer, 'c-1')
        assert fresh.total_lead_score == 125
        assert fresh.status == 'WARM'
        assert fresh.last_intent == 'purchase_intent'
        assert fresh.total_interactions == 1

    def test_counts_the_scored_interaction(self, db_session, tenant):
        _customer(db_session, total_interactions=3)
        service = ScoringService(db_session)
        service.update_customer_score(
            'c-1', 'DM', {'intent': 'purchase_intent', 'confidence': 100, 'sentiment': 'positive'}, now=NOW)
        service.update_customer_score(
            'c-1', 'COMMENT', {'intent': 'general', 'confidence': 50}, now=NOW)
        db_session.commit()
        assert db_session.get(Customer, 'c-1').total_interactions == 5

    def test_decays_before_adding(self, db_session, tenant):
        _customer(db_session, score=400, status='WARM', score_updated_at=NOW - timedelta(days=7))
        update = ScoringService(db_session).update_customer_score(
            'c-1', 'COMMENT', {'intent': 'pricing_inquiry', 'confidence': 100, 'sentiment': 'neutral'}, now=NOW)
        assert update.decayed_score == 200
        assert update.new_score == 230

    def test_clamped_at_max(self, db_session, tenant):
        _customer(db_session, score=9990, status='HOT', score_updated_at=NOW)
        service = ScoringService(db_session)
        for _ in range(5):
            update = service.update_customer_score(
                'c-1', 'DM', {'intent': 'purchase_intent', 'confidence': 100, 'sentiment': 'positive'}, now=NOW)
        assert update.new_score == 10000

    def test_clamped_at_zero(self, db_session, tenant):
        _customer(db_session, score=50, status='COLD', score_updated_at=NOW)
        service = ScoringService(db_session)
        for _ in range(3):
            update = service.update_customer_score(
                'c-1', 'DM', {'intent': 'spam', 'confidence': 100, 'sentiment': 'neutral'}, now=NOW)
        assert update.new_score == 0
        assert update.status == 'COLD'

    def test_converted_is_sticky(self, db_session, tenant):
        _customer(db_session, score=10, status='CONVERTED', score_updated_at=NOW)
        update = ScoringService(db_session).update_customer_score(
            'c-1', 'DM', {'intent': 'purchase_intent', 'confidence': 100, 'sentiment': 'positive'}, now=NOW)
        assert update.status == 'CONVERTED'

    def test_missing_customer(self, db_session, tenant):
        with pytest.raises(LookupError):
            ScoringService(db_session).update_customer_score('nobody', 'DM', {'intent': 'general', 'confidence': 50})

    def test_lost_compare_and_set_is_retried(self):
        customer = Customer(id='c-1', total_lead_score=100, status='WARM', score_updated_at=NOW)
        repo = MagicMock()
        repo.get.return_value = customer
        repo.apply_score.side_effect = [False, True]

        update = ScoringService(repo=repo).update_customer_score(
            'c-1', 'COMMENT', {'intent': 'pricing_inquiry', 'confidence': 100}, now=NOW)

        assert repo.apply_score.call_count == 2
        assert update.new_score == 130
        repo.get.assert_called_with('c-1', fresh=True)

    def test_gives_up_after_repeated_conflicts(self):
        repo = MagicMock()
        repo.get.return_value = Customer(id='c-1', total_lead_score=0, status='COLD')
        repo.apply_score.return_value = False
        with pytest.raises(StaleWriteError):
            ScoringService(repo=repo, max_attempts=2).update_customer_score(
                'c-1', 'DM', {'intent': 'general', 'confidence': 100}, now=NOW)


class TestRankCustomers:

    def test_orders_by_decayed_score(self, db_session, tenant):
        _customer(db_session, 'stale', score=800, status='HOT', score_updated_at=NOW - timedelta(days=21))
        _customer(db_session, 'fresh', score=300, status='WARM', score_updated_at=NOW)
        _customer(db_session, 'zero', score=0)

        ranked = ScoringService(db_session).rank_customers('tenant-1', limit=10, now=NOW)
        assert [row['customer_id'] for row in ranked] == ['fresh', 'stale']
        assert ranked[1]['effective_score'] == 100
