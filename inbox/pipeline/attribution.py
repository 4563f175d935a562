"""
Attribution Resolver — decides which post/offering an inbound message is about.

First match wins:
  1. explicit platform referral (ad id, ref code, source)  — trusted as-is
  2. offering linked to the event's direct post           — confidence 95
  3. post-reference text naming an offering                 — accepted at >= 50
  4. content-based offering match on the message body       — accepted at >= 20
Steps 3 and 4 only run for DMs without a direct post: comments already
carry their post. No match leaves the attribution fields null; ingestion
never blocks on it.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from inbox.pipeline.offerings import OfferingMatcher
from inbox.pipeline.types import NormalizedInteraction

logger = logging.getLogger('pipeline.attribution')

POST_REFERENCE_MIN_CONFIDENCE = 50
MESSAGE_MIN_CONFIDENCE = 20
REFERRAL_CONFIDENCE = 100


@dataclass(frozen=True)
class Attribution:
    source_channel: Optional[str] = None
    source_post_id: Optional[str] = None
    offering_id: Optional[str] = None
    confidence: int = 0
    method: Optional[str] = None     # referral / linked_post / post_reference / offering


def needs_text_matching(event: NormalizedInteraction, post_id: Optional[str]) -> bool:
    return event.type == 'DM' and not post_id


class AttributionResolver:

    def __init__(self, matcher: OfferingMatcher):
        self.matcher = matcher

    def resolve(self, tenant_id: str, event: NormalizedInteraction, post_id: Optional[str] = None) -> Attribution:
        default = Attribution(source_channel=event.platform, source_post_id=post_id)
        referral = event.referral

        if referral is not None and not referral.is_empty:
            return Attribution(
                source_channel=referral.source or default.source_channel,
                source_post_id=referral.ad_id or referral.ref_code or post_id,
                confidence=REFERRAL_CONFIDENCE,
                method='referral',
            )

        if post_id:
            linked = self.matcher.match_from_message(tenant_id, '', post_id=post_id)
            if linked is not None:
                return Attribution(event.platform, post_id, linked.offering_id, linked.confidence, 'linked_post')

        if not needs_text_matching(event, post_id):
            return default

        if event.post_reference:
            source = self.matcher.match_post_reference(tenant_id, event.post_reference)
            if source.offering_id and source.confidence >= POST_REFERENCE_MIN_CONFIDENCE:
                return Attribution(
                    source_channel=source.source_channel or event.platform,
                    source_post_id=source.source_post_id,
                    offering_id=source.offering_id,
                    confidence=source.confidence,
                    method='post_reference',
                )

        match = self.matcher.match_from_message(tenant_id, event.content_text)
        if match is not None and match.confidence >= MESSAGE_MIN_CONFIDENCE:
            return Attribution(
                source_channel=event.platform,
                source_post_id=match.post_id,
                offering_id=match.offering_id,
                confidence=match.confidence,
                method='offering',
            )

        logger.debug("Tenant %s: no attribution for %s %s", tenant_id, event.platform, event.external_id)
        return default
