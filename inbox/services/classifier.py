"""
Message classification — intent, sentiment, confidence and a suggested reply.

Two implementations behind one analyze(text, context) call:
  OpenAIClassifier   chat completions in JSON mode, through the 'openai' breaker
  KeywordClassifier  deterministic keyword rules for tests, local dev and
                     deployments without an API key

Both return the same normalized dict:
  {intent, confidence (0-100 int), sentiment, suggestion, reasoning, model_version}
"""
import json
import logging
from typing import Any, Dict, Optional

from inbox.config import INTENTS, MOCK_CLASSIFIER, OPENAI_MODEL, SENTIMENTS
from inbox.errors import RateLimitExceeded, is_rate_limit_error

logger = logging.getLogger('services.classifier')

KEYWORD_MODEL_VERSION = 'keyword-v1'

SYSTEM_PROMPT = """You are a sales assistant for a small business that sells through social media.
Analyze the incoming customer message and extract the intent, the sentiment and a helpful suggested reply.

BUSINESS:
Name: {business_name}
Language: {language}

INTENTS (pick exactly one):
- purchase_intent: wants to buy, asks how to order
- pricing_inquiry: asks "how much?" or for a price
- shipping_inquiry: asks about delivery location, time or cost
- service_inquiry: asks about a service (repairs, bookings, catering)
- availability_inquiry: asks whether an item or size is in stock
- support_issue: needs help with an existing order
- complaint: angry, or reporting a problem
- general_comment: compliments, emojis, tagging friends
- spam: scams, bots, irrelevant promotion
- general: greetings and anything else

SENTIMENT: positive, neutral or negative.

SUGGESTED REPLY: brief and professional, written in '{language}'.

Respond ONLY with JSON:
{{"intent": "string", "confidence": 0-100, "sentiment": "string", "suggestion": "string"}}"""


def normalize_result(raw: Dict[str, Any], model_version: str) -> Dict[str, Any]:
    """Coerce a provider answer into the pipeline's vocabulary and ranges."""
    intent = str(raw.get('intent') or '').strip().lower()
    if intent not in INTENTS:
        intent = 'general'

    try:
        confidence = float(raw.get('confidence') or 0)
    except (TypeError, ValueError):
        confidence = 0.0
    # Some models answer on a 0-1 scale
    if 0 < confidence <= 1:
        confidence *= 100
    confidence = int(round(max(0.0, min(confidence, 100.0))))

    sentiment = str(raw.get('sentiment') or '').strip().lower()
    if sentiment not in SENTIMENTS:
        sentiment = 'neutral'

    return {
        'intent': intent,
        'confidence': confidence,
        'sentiment': sentiment,
        'suggestion': str(raw.get('suggestion') or ''),
        'reasoning': raw.get('reasoning'),
        'model_version': model_version,
    }


class OpenAIClassifier:

    def __init__(self, client, breaker=None, default_model: str = OPENAI_MODEL):
        self.client = client
        self.breaker = breaker
        self.default_model = default_model

    def _chat_completion(self, **kwargs):
        if self.breaker is None:
            from inbox.services.circuit_breaker import get_breaker
            self.breaker = get_breaker('openai')
        return self.breaker.call(self.client.chat.completions.create, **kwargs)

    def analyze(self, text: str, context: Dict[str, Any]) -> Dict[str, Any]:
        if not text or not text.strip():
            return normalize_result({'intent': 'general', 'confidence': 0, 'reasoning': 'Empty input'}, 'none')

        model = context.get('model') or self.default_model
        prompt = SYSTEM_PROMPT.format(
            business_name=context.get('business_name', ''),
            language=context.get('language', 'en'),
        )
        try:
            response = self._chat_completion(
                model=model,
                messages=[
                    {'role': 'system', 'content': prompt},
                    {'role': 'user', 'content': text[:4000]},
                ],
                response_format={'type': 'json_object'},
                temperature=0,
            )
        except Exception as e:
            if is_rate_limit_error(e):
                raise RateLimitExceeded('openai', retry_after=getattr(e, 'retry_after', None)) from e
            raise

        raw = json.loads(response.choices[0].message.content)
        return normalize_result(raw, getattr(response, 'model', None) or model)


# Checked in order; the first rule with a hit decides the intent
_KEYWORD_RULES = [
    ('spam', ('click here', 'work from home', '$1000', 'free followers', 'win a'), 'neutral', 95, ''),
    ('pricing_inquiry', ('price', 'cost', 'how much', 'kati'), 'neutral', 85,
     'The price depends on the item. Which one are you interested in?'),
    ('support_issue', ('refund', 'exchange', 'my order', 'tracking'), 'neutral', 75,
     'Sorry for the trouble. Could you share your order details?'),
    ('purchase_intent', ('buy', 'order', 'want', 'purchase', 'get this'), 'positive', 85,
     'Great! Please DM us to complete your order.'),
    ('availability_inquiry', ('available', 'in stock', 'size', 'restock'), 'neutral', 80,
     'Let us check availability for you. Which size or colour?'),
    ('shipping_inquiry', ('deliver', 'shipping', 'location', 'courier'), 'neutral', 85,
     'We deliver nationwide. Where are you located?'),
    ('complaint', ('bad', 'broken', 'worst', 'not working', 'never arrived', 'late'), 'negative', 85,
     'We are sorry to hear that. Can you please provide more details?'),
    ('general_comment', ('good', 'love', 'wow', 'amazing', 'great', 'beautiful'), 'positive', 85,
     'Thank you so much!'),
]


class KeywordClassifier:
    """Deterministic stand-in for the AI provider."""

    model_version = KEYWORD_MODEL_VERSION

    def analyze(self, text: str, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not text or not text.strip():
            return normalize_result({'intent': 'general', 'confidence': 0, 'reasoning': 'Empty input'},
                                    self.model_version)

        if text.strip().lower() == '[media]':
            return normalize_result({
                'intent': 'general_comment', 'confidence': 50, 'sentiment': 'neutral',
                'suggestion': 'Thanks for sharing!', 'reasoning': 'Media-only message',
            }, self.model_version)

        lower = text.lower()
        for intent, keywords, sentiment, confidence, suggestion in _KEYWORD_RULES:
            if any(keyword in lower for keyword in keywords):
                return normalize_result({
                    'intent': intent, 'confidence': confidence, 'sentiment': sentiment,
                    'suggestion': suggestion, 'reasoning': 'Keyword match',
                }, self.model_version)

        return normalize_result({
            'intent': 'general', 'confidence': 85, 'sentiment': 'neutral',
            'suggestion': 'Thank you for your message.', 'reasoning': 'No keyword matched',
        }, self.model_version)


def get_classifier():
    """OpenAI when a client is configured, unless MOCK_CLASSIFIER forces keywords."""
    from inbox.extensions import openai_client

    if MOCK_CLASSIFIER or openai_client is None:
        logger.info("Using keyword classifier")
        return KeywordClassifier()
    return OpenAIClassifier(openai_client)
