"""
Offering Matcher — scores free text against a tenant's product/service catalog.

Confidence scale is 0-100:
  95   offering directly linked to the post the message came from
  75   post-reference text names an offering (keyword or name)
  20-90 keyword/name scoring of the message body, capped at 90
  50   name LIKE search over extracted keywords (last resort)

Caption-level fuzzy search is intentionally absent: it matched words like
"price" to unrelated posts.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from inbox.pipeline.types import utcnow
from inbox.repositories.offerings import OfferingRepository

logger = logging.getLogger('pipeline.offerings')

LINKED_POST_CONFIDENCE = 95
REFERENCE_CONFIDENCE = 75
FUZZY_CONFIDENCE = 50
MAX_SCORED_CONFIDENCE = 90
MIN_MESSAGE_SCORE = 20

KEYWORD_HIT = 20
NAME_HIT = 30
NAME_WORD_HIT = 10

STOP_WORDS = frozenset([
    'the', 'a', 'an', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'must', 'can', 'need', 'to', 'of', 'in',
    'for', 'on', 'with', 'at', 'by', 'from', 'or', 'and', 'but', 'if',
    'this', 'that', 'these', 'those', 'it', 'its', 'you', 'your', 'i',
    'me', 'we', 'us', 'he', 'she', 'they', 'them', 'what', 'which',
    'who', 'when', 'where', 'why', 'how', 'all', 'each', 'every',
    'hi', 'hello', 'please', 'thanks', 'thank', 'ok', 'okay',
    # Nepali (romanized)
    'ho', 'cha', 'huncha', 'ke', 'ma', 'lai', 'ko', 'le', 'ni', 'ra',
])

_NON_WORD = re.compile(r'[^\w\s]')


def extract_keywords(text: str, limit: int = 10) -> List[str]:
    """Significant words of a text: stopword-filtered, len > 2, unique, in order."""
    if not text:
        return []
    words = _NON_WORD.sub(' ', text.lower()).split()
    keywords = []
    for word in words:
        if len(word) > 2 and word not in STOP_WORDS and word not in keywords:
            keywords.append(word)
    return keywords[:limit]


@dataclass(frozen=True)
class OfferingMatch:
    offering_id: str
    offering_name: str
    offering_type: str
    post_id: Optional[str]
    confidence: int


@dataclass(frozen=True)
class SourceMatch:
    confidence: int = 0
    source_channel: Optional[str] = None
    source_post_id: Optional[str] = None
    offering_id: Optional[str] = None


def score_offering(offering, lower_message: str) -> int:
    score = 0
    for keyword in offering.keywords or []:
        keyword = str(keyword).lower()
        if keyword and keyword in lower_message:
            score += KEYWORD_HIT

    name = (offering.name or '').lower()
    if name and name in lower_message:
        score += NAME_HIT

    for word in name.split():
        if len(word) > 3 and word in lower_message:
            score += NAME_WORD_HIT
    return score


class OfferingMatcher:

    def __init__(self, session=None, repo: Optional[OfferingRepository] = None):
        self.repo = repo or OfferingRepository(session)

    def match_from_message(self, tenant_id: str, message_text: str, post_id: Optional[str] = None) -> Optional[OfferingMatch]:
        """Most likely offering referenced by a message, or None."""
        if post_id:
            linked = self.repo.linked_to_post(tenant_id, post_id)
            if linked:
                return _to_match(linked, LINKED_POST_CONFIDENCE)

        lower_message = (message_text or '').lower()
        if not lower_message.strip():
            return None

        best, best_score = None, 0
        for offering in self.repo.for_tenant(tenant_id, limit=50):
            score = score_offering(offering, lower_message)
            # Strictly greater keeps the earliest offering on ties
            if score > best_score:
                best, best_score = offering, score

        if best is not None and best_score >= MIN_MESSAGE_SCORE:
            return _to_match(best, min(MAX_SCORED_CONFIDENCE, best_score))

        keywords = extract_keywords(lower_message)
        if keywords:
            fuzzy = self.repo.search_by_name(tenant_id, '%' + '%'.join(keywords) + '%', limit=1)
            if fuzzy:
                return _to_match(fuzzy[0], FUZZY_CONFIDENCE)

        return None

    def match_post_reference(self, tenant_id: str, reference_text: Optional[str]) -> SourceMatch:
        """
        Resolve free text that names a post ("saw your floral dress post")
        to an offering and, through it, the originating post.
        """
        if not reference_text or len(reference_text.strip()) < 3:
            return SourceMatch()

        matches = self.repo.by_reference(tenant_id, reference_text.strip(), limit=3)
        if not matches:
            return SourceMatch()

        best = matches[0]
        source_channel = self.repo.post_platform(best.post_id) if best.post_id else None
        return SourceMatch(
            confidence=REFERENCE_CONFIDENCE,
            source_channel=source_channel,
            source_post_id=best.post_id,
            offering_id=best.id,
        )

    def sync_keywords_from_post(self, offering_id: str, caption: str) -> List[str]:
        """Replace an offering's keywords with those extracted from a caption."""
        keywords = extract_keywords(caption)
        if keywords:
            self.repo.update_keywords(offering_id, keywords, utcnow())
            logger.info("Offering %s keywords synced: %s", offering_id, ', '.join(keywords))
        return keywords


def _to_match(offering, confidence) -> OfferingMatch:
    return OfferingMatch(
        offering_id=offering.id,
        offering_name=offering.name,
        offering_type=offering.type,
        post_id=offering.post_id,
        confidence=int(confidence),
    )
