"""
Pipeline Manager — RQ job entry points and their enqueue helpers.

  ingestion queue    run_ingestion, run_webhook_ingestion   10 jobs / 1s
  analysis queue     run_analysis                           10 jobs / 2s
  maintenance queue  run_stats_reconciliation

Jobs raise to get retried: RQ's Retry (exponential backoff) re-runs them.
Payloads that can never succeed (invalid batch, unknown webhook receiver,
deleted interaction) are logged and dropped instead.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select

from inbox.config import (
    ANALYSIS_RATE_LIMIT, INGESTION_RATE_LIMIT, WEBHOOK_JOB_ATTEMPTS,
)
from inbox.database import get_session
from inbox.errors import InvalidBatchError, RateLimitExceeded, RetryableError, is_rate_limit_error
from inbox.models.tenant import ConnectedAccount
from inbox.pipeline.analysis import AnalysisDispatcher
from inbox.pipeline.ingestion import IngestionService
from inbox.pipeline.stats import StatsAggregator
from inbox.pipeline.types import IngestionBatch

logger = logging.getLogger('pipeline.manager')


# ── Lazy collaborators (no Redis connection at import time) ──────────────────

_job_queue = None
_publisher = None
_classifier = None
_limiters = {}


def get_job_queue():
    global _job_queue
    if _job_queue is None:
        from inbox.services.queue import JobQueue
        _job_queue = JobQueue()
    return _job_queue


def get_publisher():
    global _publisher
    if _publisher is None:
        from inbox.services.realtime import RedisPublisher
        _publisher = RedisPublisher()
    return _publisher


def get_classifier():
    global _classifier
    if _classifier is None:
        from inbox.services.classifier import get_classifier as build
        _classifier = build()
    return _classifier


def get_rate_limiter(name):
    if name not in _limiters:
        from inbox.extensions import redis_client
        from inbox.services.queue import RateLimiter
        max_calls, window = {'ingestion': INGESTION_RATE_LIMIT, 'analysis': ANALYSIS_RATE_LIMIT}[name]
        _limiters[name] = RateLimiter(redis_client, name, max_calls, window)
    return _limiters[name]


# ── Enqueue helpers ──────────────────────────────────────────────────────────

def enqueue_ingestion(tenant_id: str, platform: str, batch: Dict[str, Any], account_id: Optional[str] = None) -> str:
    """Validate a raw batch at the boundary, then queue it. Raises InvalidBatchError."""
    parsed = IngestionBatch.from_dict(batch, platform)
    job_id = get_job_queue().enqueue(
        'ingest-batch',
        {'tenant_id': tenant_id, 'platform': platform, 'batch': batch, 'account_id': account_id},
        attempts=WEBHOOK_JOB_ATTEMPTS,
    )
    logger.info("Tenant %s: queued %s batch (%d posts, %d interactions) as job %s",
                tenant_id, platform, len(parsed.posts), len(parsed.interactions), job_id)
    return job_id


def enqueue_webhook_ingestion(platform: str, receiver_id: str, batch: Dict[str, Any]) -> str:
    return get_job_queue().enqueue(
        'webhook-ingest',
        {'platform': platform, 'receiver_id': receiver_id, 'batch': batch},
        attempts=WEBHOOK_JOB_ATTEMPTS,
    )


def enqueue_stats_reconciliation(tenant_id: Optional[str] = None) -> str:
    return get_job_queue().enqueue('reconcile-stats', {'tenant_id': tenant_id})


# ── Jobs ─────────────────────────────────────────────────────────────────────

def run_ingestion(tenant_id: str, platform: str, batch: Dict[str, Any], account_id: Optional[str] = None):
    get_rate_limiter('ingestion').acquire()
    service = IngestionService(get_job_queue(), get_publisher())
    try:
        return service.process_batch(tenant_id, platform, batch, account_id=account_id).to_dict()
    except InvalidBatchError as e:
        logger.error("Tenant %s: dropping invalid %s batch: %s", tenant_id, platform, e)
        return None
    except RetryableError:
        raise
    except Exception as e:
        if is_rate_limit_error(e):
            logger.warning("Tenant %s: %s rate limit hit, job will back off", tenant_id, platform)
            raise RateLimitExceeded(platform) from e
        raise


def run_webhook_ingestion(platform: str, receiver_id: str, batch: Dict[str, Any]):
    """Resolve the tenant from the account that received the webhook, then ingest."""
    session = get_session()
    try:
        account = session.scalars(
            select(ConnectedAccount).where(
                ConnectedAccount.platform == platform,
                ConnectedAccount.platform_user_id == receiver_id,
            ).limit(1)
        ).first()
        tenant_id = account.tenant_id if account else None
        account_id = account.id if account else None
    finally:
        session.close()

    if tenant_id is None:
        logger.warning("No connected %s account for receiver %s, dropping webhook", platform, receiver_id)
        return None
    return run_ingestion(tenant_id, platform, batch, account_id=account_id)


def run_analysis(interaction_id: str):
    get_rate_limiter('analysis').acquire()
    dispatcher = AnalysisDispatcher(get_classifier(), get_publisher())
    try:
        return dispatcher.analyze(interaction_id)
    except RetryableError:
        raise
    except Exception as e:
        if is_rate_limit_error(e):
            raise RateLimitExceeded('classifier') from e
        raise


def run_stats_reconciliation(tenant_id: Optional[str] = None):
    """Recompute TenantStats from the interactions table: one tenant, or all of them."""
    session = get_session()
    try:
        aggregator = StatsAggregator(session)
        if tenant_id:
            aggregator.reconcile_tenant(tenant_id)
            count = 1
        else:
            count = aggregator.reconcile_all()
        session.commit()
    except Exception:
        session.rollback()
        logger.error("Stats reconciliation failed", exc_info=True)
        raise
    finally:
        session.close()

    logger.info("Stats reconciled for %d tenant(s)", count)
    return count
