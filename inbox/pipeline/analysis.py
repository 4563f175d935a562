"""
Analysis Dispatcher — classifies one interaction and folds it into the lead score.

Three phases, so no transaction is held across the provider call:
  1. read the interaction and tenant context, then release the session
  2. call the classifier
  3. one transaction: AI fields + customer score; then publish the result

Degraded paths (missing business name, no linked customer) log a warning
and carry on. A missing interaction is logged and dropped, since retrying
cannot bring it back. Anything else propagates so the queue retries the job.
"""
import logging
from typing import Any, Dict, Optional

from inbox.config import FALLBACK_BUSINESS_NAME, LOW_CONFIDENCE_THRESHOLD, TENANT_CHANNEL_TEMPLATE
from inbox.database import get_session
from inbox.models.interaction import Interaction
from inbox.models.tenant import Tenant
from inbox.pipeline.scoring import ScoringService
from inbox.pipeline.types import utcnow
from inbox.repositories.interactions import InteractionRepository
from inbox.services.settings import resolve_model_override

logger = logging.getLogger('pipeline.analysis')


def build_context(session, tenant_id: str, tenant: Optional[Tenant]) -> Dict[str, Any]:
    business_name = (tenant.business_name or '').strip() if tenant is not None else ''
    if not business_name:
        logger.warning("Tenant %s has no business name, using fallback", tenant_id)
        business_name = FALLBACK_BUSINESS_NAME

    context = {
        'business_name': business_name,
        'language': (tenant.language if tenant is not None else None) or 'en',
    }
    model = resolve_model_override(session, tenant)
    if model:
        context['model'] = model
    return context


class AnalysisDispatcher:

    def __init__(self, classifier, publisher, session_factory=get_session):
        self.classifier = classifier
        self.publisher = publisher
        self.session_factory = session_factory

    def analyze(self, interaction_id: str) -> Optional[Dict[str, Any]]:
        session = self.session_factory()
        try:
            interaction = session.get(Interaction, interaction_id)
            if interaction is None:
                logger.error("Interaction %s not found, skipping analysis", interaction_id)
                return None
            tenant_id = interaction.tenant_id
            interaction_type = interaction.type
            customer_id = interaction.customer_id
            text = interaction.content_text
            context = build_context(session, tenant_id, session.get(Tenant, tenant_id))
        finally:
            session.close()

        analysis = self.classifier.analyze(text, context)
        flag_low_confidence = analysis['confidence'] < LOW_CONFIDENCE_THRESHOLD
        is_spam = analysis['intent'] == 'spam'

        score = None
        session = self.session_factory()
        try:
            fields = {
                'ai_intent': analysis['intent'],
                'ai_confidence': analysis['confidence'],
                'ai_suggestion': analysis['suggestion'],
                'sentiment': analysis['sentiment'],
                'flag_low_confidence': flag_low_confidence,
                'is_spam': is_spam,
                'ai_model_version': analysis.get('model_version') or 'unknown',
                'ai_analyzed_at': utcnow(),
            }

            if customer_id:
                try:
                    score = ScoringService(session).update_customer_score(customer_id, interaction_type, analysis)
                    fields['lead_score_change'] = score.delta
                except LookupError:
                    logger.warning("Customer %s of interaction %s is gone, skipping scoring", customer_id, interaction_id)
            else:
                logger.warning("Interaction %s has no customer, skipping scoring", interaction_id)

            InteractionRepository(session).apply_analysis(interaction_id, **fields)
            session.commit()
        except Exception:
            session.rollback()
            logger.error("Analysis write failed for interaction %s", interaction_id, exc_info=True)
            raise
        finally:
            session.close()

        logger.info("Interaction %s: %s (confidence %d)%s", interaction_id, analysis['intent'], analysis['confidence'],
                    f", customer score {score.new_score}" if score else '',
                    extra={'tenant_id': tenant_id, 'interaction_id': interaction_id})

        event = {
            'tenantId': tenant_id,
            'type': 'INTERACTION_ANALYZED',
            'data': {
                'id': interaction_id,
                'aiIntent': analysis['intent'],
                'aiConfidence': analysis['confidence'],
                'aiSuggestion': analysis['suggestion'],
                'sentiment': analysis['sentiment'],
                'flagLowConfidence': flag_low_confidence,
                'isSpam': is_spam,
                'customerId': score.customer_id if score else None,
                'leadScore': score.new_score if score else None,
                'status': score.status if score else None,
            },
        }
        self.publisher.publish(TENANT_CHANNEL_TEMPLATE.format(tenant_id=tenant_id), event)
        return event
