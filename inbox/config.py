"""
Centralized configuration — all env vars, constants, platform vocabularies.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── OpenAI ────────────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')

# Force the keyword classifier even when an API key is present (local dev, demos)
MOCK_CLASSIFIER = os.getenv('MOCK_CLASSIFIER')

# ── Queues ────────────────────────────────────────────────────────────────────
INGESTION_QUEUE = 'ingestion'
ANALYSIS_QUEUE = 'analysis'
MAINTENANCE_QUEUE = 'maintenance'
QUEUE_NAMES = [INGESTION_QUEUE, ANALYSIS_QUEUE, MAINTENANCE_QUEUE]

# Rate limits: (max jobs, window seconds)
INGESTION_RATE_LIMIT = (int(os.getenv('INGESTION_RATE_MAX', '10')), float(os.getenv('INGESTION_RATE_WINDOW', '1')))
ANALYSIS_RATE_LIMIT = (int(os.getenv('ANALYSIS_RATE_MAX', '10')), float(os.getenv('ANALYSIS_RATE_WINDOW', '2')))

WEBHOOK_JOB_ATTEMPTS = int(os.getenv('WEBHOOK_JOB_ATTEMPTS', '5'))
ANALYSIS_JOB_ATTEMPTS = int(os.getenv('ANALYSIS_JOB_ATTEMPTS', '3'))
BACKOFF_BASE_SECONDS = int(os.getenv('BACKOFF_BASE_SECONDS', '1'))

# ── Identity resolution ──────────────────────────────────────────────────────
# Total attempts, i.e. the first try plus two retries on a uniqueness race
IDENTITY_MAX_ATTEMPTS = int(os.getenv('IDENTITY_MAX_ATTEMPTS', '3'))

# ── Realtime channels ────────────────────────────────────────────────────────
EVENTS_CHANNEL = 'events'
TENANT_CHANNEL_TEMPLATE = 'tenant:{tenant_id}:events'

# ── Analysis ─────────────────────────────────────────────────────────────────
FALLBACK_BUSINESS_NAME = 'Valued Customer'
LOW_CONFIDENCE_THRESHOLD = 70
MODEL_OVERRIDE_SETTING = 'AI_MODEL'

# ── Vocabularies ─────────────────────────────────────────────────────────────
PLATFORMS = ['INSTAGRAM', 'FACEBOOK', 'WHATSAPP', 'TIKTOK']

INTERACTION_TYPES = ['COMMENT', 'DM', 'LIKE', 'SHARE', 'STORY_REPLY', 'MENTION']

CUSTOMER_STATUSES = ['COLD', 'WARM', 'HOT', 'CONVERTED']

INTENTS = [
    'purchase_intent',
    'pricing_inquiry',
    'shipping_inquiry',
    'service_inquiry',
    'availability_inquiry',
    'support_issue',
    'complaint',
    'general_comment',
    'spam',
    'general',
]

SENTIMENTS = ['positive', 'neutral', 'negative']

VERBS = ['add', 'edit', 'remove']

URGENT_KEYWORDS = [
    'urgent',
    'check dm',
    'payment',
    'check inbox',
    'sent money',
    'asap',
]
