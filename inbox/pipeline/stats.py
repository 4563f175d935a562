"""
Stats Aggregator — keeps the TenantStats cache close to the truth.

Fast path: ingestion adds the genuinely new rows of a batch with atomic
increments. Repair path: reconciliation recomputes every counter from the
interactions table and overwrites the cache, healing drift from deletes and
from edits that move an interaction between buckets.
"""
import logging
from collections import Counter
from typing import Any, Dict, Iterable, Optional

from inbox.models.interaction import Interaction
from inbox.pipeline.types import as_utc, utcnow
from inbox.repositories.stats import StatsRepository

logger = logging.getLogger('pipeline.stats')

DIMENSIONS = ('platform', 'type', 'intent')


class StatsAggregator:

    def __init__(self, session=None, repo: Optional[StatsRepository] = None):
        self.repo = repo or StatsRepository(session)

    def increment(self, tenant_id: str, rows: Iterable[Any]) -> int:
        """
        Count newly inserted interaction rows into the tenant's cache.

        rows need .platform, .type and .is_replied. Returns the number counted.
        """
        rows = list(rows)
        if not rows:
            return 0

        buckets = Counter()
        unanswered = 0
        for row in rows:
            buckets[('platform', row.platform)] += 1
            buckets[('type', row.type)] += 1
            if not row.is_replied:
                unanswered += 1

        self.repo.increment(tenant_id, len(rows), unanswered, dict(buckets), utcnow())
        return len(rows)

    def reconcile_tenant(self, tenant_id: str) -> Dict[str, Any]:
        """Recompute from first principles and overwrite the cache unconditionally."""
        total = self.repo.count_interactions(tenant_id)
        unanswered = self.repo.count_interactions(tenant_id, unanswered_only=True)

        buckets = {}
        for dimension, column in (('platform', Interaction.platform),
                                  ('type', Interaction.type),
                                  ('intent', Interaction.ai_intent)):
            for key, count in self.repo.count_by(tenant_id, column).items():
                buckets[(dimension, key)] = count

        self.repo.overwrite(tenant_id, total, unanswered, buckets, utcnow())
        logger.info("Tenant %s stats reconciled: %d total, %d unanswered", tenant_id, total, unanswered)
        return {'total_interactions': total, 'unanswered_count': unanswered}

    def reconcile_all(self) -> int:
        count = 0
        for tenant_id in self.repo.tenant_ids():
            self.reconcile_tenant(tenant_id)
            count += 1
        return count

    def snapshot(self, tenant_id: str) -> Dict[str, Any]:
        """Cached counters as a JSON-friendly dict; zeros for a tenant with no row yet."""
        stats = self.repo.get(tenant_id)
        result = {
            'tenant_id': tenant_id,
            'total_interactions': stats.total_interactions if stats else 0,
            'unanswered_count': stats.unanswered_count if stats else 0,
            'last_updated_at': _isoformat(stats.last_updated_at) if stats else None,
            'last_reconciled_at': _isoformat(stats.last_reconciled_at) if stats else None,
        }
        for dimension in DIMENSIONS:
            result[f'{dimension}_counts'] = {}
        for (dimension, key), count in self.repo.buckets(tenant_id).items():
            if dimension in DIMENSIONS:
                result[f'{dimension}_counts'][key] = count
        return result


def _isoformat(value):
    value = as_utc(value)
    return value.isoformat() if value else None
