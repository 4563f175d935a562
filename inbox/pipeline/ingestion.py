"""
Ingestion — turns one normalized batch into posts, customers and interactions.

Flow per batch (one DB transaction):
  posts → deletes → identity + attribution → batched interaction upsert
        → stats increment (new rows only) → account sync timestamp
After commit: every upserted id is queued for analysis, and an
ingestion_complete event is published when anything new landed.

Replays are safe: (platform, external_id) is unique and the upsert only
moves a row forward in time, so re-ingesting a batch never double-counts and
add/edit arrive in either order with the same end state.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import update

from inbox.config import ANALYSIS_JOB_ATTEMPTS, EVENTS_CHANNEL, URGENT_KEYWORDS
from inbox.database import get_session
from inbox.models.tenant import ConnectedAccount, new_id
from inbox.pipeline.attribution import AttributionResolver
from inbox.pipeline.identity import IdentityResolver
from inbox.pipeline.offerings import OfferingMatcher
from inbox.pipeline.posts import PostIndex, PostRegistry
from inbox.pipeline.stats import StatsAggregator
from inbox.pipeline.types import IngestionBatch, IngestionResult, NormalizedInteraction, utcnow
from inbox.repositories.interactions import InteractionRepository

logger = logging.getLogger('pipeline.ingestion')

ANALYZE_JOB = 'analyze-interaction'


def detect_urgency(text: Optional[str]) -> bool:
    lower = (text or '').lower()
    return any(keyword in lower for keyword in URGENT_KEYWORDS)


def collapse_duplicates(interactions: Iterable[NormalizedInteraction]) -> List[NormalizedInteraction]:
    """
    One event per (platform, external_id), keeping the newest version.

    A single ON CONFLICT statement cannot touch the same row twice, and the
    newest version is what the row would converge to anyway. Ties go to the
    later event in the batch. First-seen order is preserved.
    """
    latest: Dict[Tuple[str, str], NormalizedInteraction] = {}
    for event in interactions:
        key = (event.platform, event.external_id)
        current = latest.get(key)
        if current is None or event.ordering_key >= current.ordering_key:
            latest[key] = event
    return list(latest.values())


@dataclass
class UpsertOutcome:
    upserted_ids: List[str] = field(default_factory=list)
    inserted_ids: List[str] = field(default_factory=list)
    inserted_rows: List[Any] = field(default_factory=list)


class InteractionUpserter:

    def __init__(self, session, identity: Optional[IdentityResolver] = None,
                 attribution: Optional[AttributionResolver] = None,
                 repo: Optional[InteractionRepository] = None):
        self.session = session
        self.identity = identity or IdentityResolver(session)
        self.attribution = attribution or AttributionResolver(OfferingMatcher(session))
        self.repo = repo or InteractionRepository(session)

    def delete(self, tenant_id: str, interactions: Iterable[NormalizedInteraction]) -> int:
        """
        Batch-delete every `remove` event. TenantStats is left alone; the
        reconciliation job corrects the counts.
        """
        keys = {(event.platform, event.external_id) for event in interactions if event.is_removal}
        if not keys:
            return 0
        deleted = self.repo.delete_by_keys(tenant_id, sorted(keys))
        logger.info("Tenant %s: %d of %d removed interactions deleted", tenant_id, deleted, len(keys))
        return deleted

    def upsert(self, tenant_id: str, interactions: Iterable[NormalizedInteraction],
               post_index: Optional[PostIndex] = None) -> UpsertOutcome:
        post_index = post_index or PostIndex()
        events = collapse_duplicates(e for e in interactions if not e.is_removal)
        if not events:
            return UpsertOutcome()

        rows = [self._build_row(tenant_id, event, post_index) for event in events]
        returned = self.repo.upsert_many(rows)

        outcome = UpsertOutcome()
        for row in returned:
            outcome.upserted_ids.append(row.id)
            if row.revision == 0:
                outcome.inserted_ids.append(row.id)
                outcome.inserted_rows.append(row)

        skipped = len(rows) - len(returned)
        if skipped:
            logger.info("Tenant %s: %d stale interaction versions ignored", tenant_id, skipped)
        return outcome

    def _build_row(self, tenant_id, event: NormalizedInteraction, post_index: PostIndex) -> Dict[str, Any]:
        post_id = post_index.resolve(event.post_external_id)

        customer, _ = self.identity.find_or_create(
            tenant_id,
            event.platform,
            username=event.sender_username or None,
            platform_user_id=event.sender_id,
            phone=event.sender_phone,
            display_name=event.sender_display_name or event.sender_username or None,
        )

        attribution = self.attribution.resolve(tenant_id, event, post_id)

        self.identity.record_interaction(customer.id)

        return {
            'id': new_id(),
            'tenant_id': tenant_id,
            'platform': event.platform,
            'type': event.type,
            'external_id': event.external_id,
            'sender_username': event.sender_username,
            'content_text': event.content_text,
            'media_urls': list(event.media_urls),
            'received_at': event.received_at,
            'content_updated_at': event.ordering_key,
            'revision': 0,
            'flag_urgent': detect_urgency(event.content_text),
            'is_replied': False,
            'flag_low_confidence': False,
            'is_spam': False,
            'lead_score_change': 0,
            'post_id': post_id,
            'customer_id': customer.id,
            'offering_id': attribution.offering_id,
            'post_reference': event.post_reference,
            'source_channel': attribution.source_channel,
            'source_post_id': attribution.source_post_id,
            'attribution_confidence': attribution.confidence or None,
        }


class IngestionService:
    """
    Orchestrates one batch. Queue and publisher are injected so tests can
    pass fakes; session_factory defaults to the app's get_session.
    """

    def __init__(self, queue, publisher, session_factory=get_session):
        self.queue = queue
        self.publisher = publisher
        self.session_factory = session_factory

    def process_batch(self, tenant_id: str, platform: str, batch, account_id: Optional[str] = None) -> IngestionResult:
        if isinstance(batch, dict):
            batch = IngestionBatch.from_dict(batch, platform)

        result = IngestionResult()
        session = self.session_factory()
        try:
            referenced = {
                (event.platform, event.post_external_id)
                for event in batch.interactions if event.post_external_id and not event.is_removal
            }
            post_index = PostRegistry(session).register(tenant_id, batch.posts, referenced)
            result.post_count = len(batch.posts)

            upserter = InteractionUpserter(session)
            result.deleted_count = upserter.delete(tenant_id, batch.interactions)
            outcome = upserter.upsert(tenant_id, batch.interactions, post_index)

            StatsAggregator(session).increment(tenant_id, outcome.inserted_rows)

            if account_id:
                session.execute(
                    update(ConnectedAccount)
                    .where(ConnectedAccount.id == account_id)
                    .values(last_synced_at=utcnow())
                    .execution_options(synchronize_session=False)
                )

            session.commit()
        except Exception:
            session.rollback()
            logger.error("Ingestion failed for tenant %s (%s), batch rolled back", tenant_id, platform,
                         exc_info=True, extra={'tenant_id': tenant_id, 'platform': platform})
            raise
        finally:
            session.close()

        result.upserted_ids = outcome.upserted_ids
        result.inserted_ids = outcome.inserted_ids
        result.processed_count = len(outcome.inserted_ids)

        for interaction_id in result.upserted_ids:
            self.queue.enqueue(ANALYZE_JOB, {'interaction_id': interaction_id}, attempts=ANALYSIS_JOB_ATTEMPTS)

        if result.processed_count > 0:
            self.publisher.publish(EVENTS_CHANNEL, {
                'tenantId': tenant_id,
                'type': 'ingestion_complete',
                'data': {'interactionsCount': result.processed_count},
            })

        logger.info("Tenant %s (%s): %d new, %d upserted, %d deleted, %d posts",
                    tenant_id, platform, result.processed_count, len(result.upserted_ids),
                    result.deleted_count, result.post_count,
                    extra={'tenant_id': tenant_id, 'platform': platform})
        return result
