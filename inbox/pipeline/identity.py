"""
Identity Resolver — one Customer per person, across platforms.

Matching is on strong identifiers only (platform user ids, phone numbers,
TikTok handles). Display names never match: a false merge of two people is
worse than a duplicate profile.

Lookup and insert run without locks. A concurrent ingestion that creates
the same person first makes our INSERT violate a unique constraint; the
whole find-or-create is then retried, and the second pass finds that row.
"""
import logging
import time
from typing import Dict, Optional, Tuple

from inbox.config import IDENTITY_MAX_ATTEMPTS
from inbox.models.customer import Customer
from inbox.pipeline.retry import with_optimistic_retry
from inbox.pipeline.types import utcnow
from inbox.repositories.customers import CustomerRepository

logger = logging.getLogger('pipeline.identity')

# Identifier columns that can change for the same person (handle renames)
MUTABLE_HANDLES = {'instagram_username'}

# Column holding the platform's stable id, when it has one
STABLE_ID_COLUMN = {
    'INSTAGRAM': 'instagram_user_id',
    'FACEBOOK': 'facebook_user_id',
}


def identifiers_for(platform: str, username: Optional[str] = None, platform_user_id: Optional[str] = None,
                    phone: Optional[str] = None) -> Dict[str, str]:
    """Strong identifiers a platform event carries, as {customer column: value}."""
    if platform == 'INSTAGRAM':
        ids = {'instagram_user_id': platform_user_id, 'instagram_username': username}
    elif platform == 'FACEBOOK':
        ids = {'facebook_user_id': platform_user_id}
    elif platform == 'WHATSAPP':
        # The WhatsApp sender id is the phone number itself
        ids = {'whatsapp_phone': phone or platform_user_id}
    elif platform == 'TIKTOK':
        ids = {'tiktok_username': username}
    else:
        ids = {}
    return {column: value for column, value in ids.items() if value}


class IdentityResolver:

    def __init__(self, session=None, repo: Optional[CustomerRepository] = None,
                 max_attempts: int = IDENTITY_MAX_ATTEMPTS, sleep=time.sleep):
        self.repo = repo or CustomerRepository(session)
        self.max_attempts = max_attempts
        self.sleep = sleep

    def find_or_create(self, tenant_id: str, platform: str, username: Optional[str] = None,
                       platform_user_id: Optional[str] = None, phone: Optional[str] = None,
                       display_name: Optional[str] = None) -> Tuple[Customer, bool]:
        """Return (customer, is_new). IntegrityError escapes only after the last attempt."""
        identifiers = identifiers_for(platform, username, platform_user_id, phone)
        return with_optimistic_retry(
            lambda: self._find_or_create_once(tenant_id, platform, identifiers, username, phone, display_name),
            max_attempts=self.max_attempts,
            sleep=self.sleep,
        )

    def _find_or_create_once(self, tenant_id, platform, identifiers, username, phone, display_name):
        if identifiers:
            existing = self._pick_match(platform, identifiers, self.repo.find_by_identifiers(tenant_id, identifiers))
            if existing is not None:
                if self._heal(existing, identifiers, display_name):
                    self.repo.save(existing)
                return existing, False
        else:
            logger.warning("Tenant %s: %s event without a strong identifier, creating an unlinked profile",
                           tenant_id, platform)

        customer = self.repo.insert(
            tenant_id=tenant_id,
            display_name=display_name or username or identifiers.get('whatsapp_phone') or phone,
            total_lead_score=0,
            total_interactions=0,
            status='COLD',
            tags=[],
            **identifiers,
        )
        logger.info("Tenant %s: new customer %s from %s", tenant_id, customer.id, platform)
        return customer, True

    @staticmethod
    def _pick_match(platform, identifiers, candidates):
        """
        Best candidate row, or None.

        A row matching the stable platform id always wins. A username-only
        match is rejected when that row already carries a different stable
        id: the handle now belongs to someone else.
        """
        stable_column = STABLE_ID_COLUMN.get(platform)
        stable_value = identifiers.get(stable_column) if stable_column else None

        if stable_value:
            for candidate in candidates:
                if getattr(candidate, stable_column) == stable_value:
                    return candidate

        for candidate in candidates:
            if stable_value and getattr(candidate, stable_column) not in (None, stable_value):
                continue
            return candidate
        return None

    @staticmethod
    def _heal(customer, identifiers, display_name) -> bool:
        """Backfill missing identifiers and follow renamed handles. True if anything changed."""
        changed = False
        for column, value in identifiers.items():
            current = getattr(customer, column)
            if current is None or (column in MUTABLE_HANDLES and current != value):
                setattr(customer, column, value)
                changed = True
        if display_name and not customer.display_name:
            customer.display_name = display_name
            changed = True
        return changed

    def record_interaction(self, customer_id: str, intent: Optional[str] = None):
        """totalInteractions += 1 as an SQL expression, safe under concurrent ingestion."""
        self.repo.bump_interaction(customer_id, utcnow(), intent=intent)

    def linked_accounts(self, customer_id: str) -> Dict[str, Dict[str, Optional[str]]]:
        """Per-platform handles known for a customer; platforms never seen are omitted."""
        customer = self.repo.get(customer_id)
        if customer is None:
            raise LookupError(f"customer {customer_id} not found")

        accounts = {}
        if customer.instagram_user_id or customer.instagram_username:
            accounts['INSTAGRAM'] = {'user_id': customer.instagram_user_id, 'username': customer.instagram_username}
        if customer.facebook_user_id:
            accounts['FACEBOOK'] = {'user_id': customer.facebook_user_id}
        if customer.whatsapp_phone:
            accounts['WHATSAPP'] = {'phone': customer.whatsapp_phone}
        if customer.tiktok_username:
            accounts['TIKTOK'] = {'username': customer.tiktok_username}
        return accounts
