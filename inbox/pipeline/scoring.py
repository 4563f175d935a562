"""
Lead scoring — a continuous score per customer with status thresholds.

  effective = round(stored × 0.5^(days / half_life))     lazy decay, no ticker
  delta     = round(intent_score × confidence/100 × type_weight)
  new       = clamp(effective + delta, 0, max_score)
  status    = HOT ≥ 500, WARM ≥ 100, else COLD; CONVERTED is never overwritten

The write is a compare-and-set on the score the update was computed from, so
two analyses of the same customer never lose each other's delta.
"""
import logging
import math
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import yaml

from inbox.errors import StaleWriteError
from inbox.models.customer import Customer
from inbox.pipeline.retry import with_optimistic_retry
from inbox.pipeline.types import as_utc, utcnow
from inbox.repositories.customers import CustomerRepository

logger = logging.getLogger('pipeline.scoring')

CONVERTED = 'CONVERTED'
SECONDS_PER_DAY = 86400.0


# ── Scoring config (YAML with hardcoded fallback) ────────────────────────────

_scoring_config = None


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'half_life_days': 7,
        'max_score': 10000,
        'intent_scores': {
            'purchase_intent': 50,
            'pricing_inquiry': 30,
            'shipping_inquiry': 25,
            'service_inquiry': 20,
            'availability_inquiry': 20,
            'support_issue': 10,
            'general_comment': 5,
            'general': 2,
            'complaint': -15,
            'spam': -100,
        },
        'type_weights': {
            'DM': 2.5,
            'COMMENT': 1.0,
            'STORY_REPLY': 1.0,
            'MENTION': 1.0,
            'SHARE': 0.5,
            'LIKE': 0.1,
        },
        'negative_sentiment_factor': -0.5,
        'status_thresholds': {
            'HOT': 500,
            'WARM': 100,
        },
    }


def load_scoring_config():
    """Load scoring config from YAML, with in-memory cache and hardcoded fallback."""
    global _scoring_config
    if _scoring_config is not None:
        return _scoring_config

    config_path = os.path.join(os.path.dirname(__file__), 'scoring_config.yaml')
    try:
        with open(config_path, 'r') as f:
            _scoring_config = yaml.safe_load(f)
        logger.info("Config loaded from YAML (version=%s)", _scoring_config.get('version', '?'))
    except Exception as e:
        logger.warning("YAML config not found (%s), using defaults", e)
        _scoring_config = _default_config()

    return _scoring_config


def _round(value: float) -> int:
    # Half-up, so -7.5 → -7 and 7.5 → 8 (Python's round() is half-to-even)
    return int(math.floor(value + 0.5))


# ── Pure functions ───────────────────────────────────────────────────────────

def calculate_decayed_score(score: int, last_interaction_at: Optional[datetime], now: Optional[datetime] = None) -> int:
    """Score after exponential decay since last_interaction_at. Never increases it."""
    if not score or last_interaction_at is None:
        return score or 0
    now = as_utc(now) or utcnow()
    days = (now - as_utc(last_interaction_at)).total_seconds() / SECONDS_PER_DAY
    if days <= 0:
        return score
    half_life = load_scoring_config().get('half_life_days', 7)
    return _round(score * math.pow(0.5, days / half_life))


def determine_status(score: int) -> str:
    thresholds = load_scoring_config().get('status_thresholds', _default_config()['status_thresholds'])
    if score >= thresholds['HOT']:
        return 'HOT'
    if score >= thresholds['WARM']:
        return 'WARM'
    return 'COLD'


def calculate_increment(intent: str, confidence: float, sentiment: Optional[str], interaction_type: str) -> int:
    cfg = load_scoring_config()
    base = cfg.get('intent_scores', {}).get(intent, 0)
    weight = cfg.get('type_weights', {}).get(interaction_type, 1.0)

    weighted = base * (confidence / 100.0) * weight
    if sentiment == 'negative' and weighted > 0:
        # Positive intent with negative sentiment reads as suspicion, not interest
        weighted *= cfg.get('negative_sentiment_factor', -0.5)
    return _round(weighted)


def clamp_score(score: int) -> int:
    return max(0, min(score, load_scoring_config().get('max_score', 10000)))


# ── Service ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScoreUpdate:
    customer_id: str
    previous_score: int
    decayed_score: int
    delta: int
    new_score: int
    previous_status: str
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'customer_id': self.customer_id,
            'previous_score': self.previous_score,
            'decayed_score': self.decayed_score,
            'delta': self.delta,
            'new_score': self.new_score,
            'previous_status': self.previous_status,
            'status': self.status,
        }


def decay_anchor(customer) -> Optional[datetime]:
    """
    When the stored score was last true.

    score_updated_at comes first: last_interaction_at is bumped at ingestion
    time, before analysis scores the same interaction.
    """
    return customer.score_updated_at or customer.last_interaction_at or customer.updated_at


def effective_score(customer, now: Optional[datetime] = None) -> int:
    """Decayed score as of now, without writing anything."""
    return calculate_decayed_score(customer.total_lead_score or 0, decay_anchor(customer), now)


class ScoringService:

    def __init__(self, session=None, repo: Optional[CustomerRepository] = None, max_attempts: int = 3):
        self.repo = repo or CustomerRepository(session)
        self.max_attempts = max_attempts

    def update_customer_score(self, customer_id: str, interaction_type: str, analysis: Dict[str, Any],
                              now: Optional[datetime] = None) -> ScoreUpdate:
        """
        Decay, add the analysis delta, clamp, re-derive status.

        Runs in the caller's transaction. Raises LookupError for an unknown
        customer.
        """
        return with_optimistic_retry(
            lambda: self._update_once(customer_id, interaction_type, analysis, now or utcnow()),
            max_attempts=self.max_attempts,
            retry_on=(StaleWriteError,),
        )

    def _update_once(self, customer_id, interaction_type, analysis, now):
        customer = self.repo.get(customer_id, fresh=True)
        if customer is None:
            raise LookupError(f"Customer {customer_id} not found for scoring update")

        previous_score = customer.total_lead_score or 0
        previous_status = customer.status or 'COLD'

        intent = analysis.get('intent') or 'general'
        delta = calculate_increment(intent, analysis.get('confidence', 0), analysis.get('sentiment'), interaction_type)
        decayed = calculate_decayed_score(previous_score, decay_anchor(customer), now)
        new_score = clamp_score(decayed + delta)
        status = previous_status if previous_status == CONVERTED else determine_status(new_score)

        applied = self.repo.apply_score(customer_id, previous_score, previous_status, {
            'total_lead_score': new_score,
            'status': status,
            'total_interactions': Customer.total_interactions + 1,
            'last_intent': intent,
            'last_interaction_at': now,
            'score_updated_at': now,
            'updated_at': now,
        })
        if not applied:
            raise StaleWriteError(f"customer {customer_id} score changed concurrently")

        if status != previous_status:
            logger.info("Customer %s: %s → %s (score %d → %d)", customer_id, previous_status, status, previous_score, new_score)

        return ScoreUpdate(
            customer_id=customer_id,
            previous_score=previous_score,
            decayed_score=decayed,
            delta=delta,
            new_score=new_score,
            previous_status=previous_status,
            status=status,
        )

    def rank_customers(self, tenant_id: str, limit: int = 20, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Reply-priority list: customers ordered by decayed score, highest first."""
        now = now or utcnow()
        ranked = []
        for customer in self.repo.top_by_score(tenant_id, max(limit * 5, limit)):
            score = effective_score(customer, now)
            ranked.append({
                'customer_id': customer.id,
                'display_name': customer.display_name,
                'stored_score': customer.total_lead_score,
                'effective_score': score,
                'status': customer.status,
                'last_interaction_at': customer.last_interaction_at,
            })
        ranked.sort(key=lambda row: row['effective_score'], reverse=True)
        return ranked[:limit]
