"""
Customer persistence — the only place identity SQL lives.

The identity resolver decides *what* to match and merge; this repository
only knows how to read and write rows.
"""
import logging

from sqlalchemy import or_, select, update

from inbox.models.customer import Customer

logger = logging.getLogger('repositories.customers')

# Columns a strong-identifier match may use
IDENTIFIER_COLUMNS = {
    'instagram_user_id': Customer.instagram_user_id,
    'instagram_username': Customer.instagram_username,
    'facebook_user_id': Customer.facebook_user_id,
    'whatsapp_phone': Customer.whatsapp_phone,
    'tiktok_username': Customer.tiktok_username,
}


class CustomerRepository:

    def __init__(self, session):
        self.session = session

    def get(self, customer_id, fresh=False):
        # fresh=True re-reads the row instead of trusting the identity map
        return self.session.get(Customer, customer_id, populate_existing=fresh)

    def find_by_identifiers(self, tenant_id, identifiers):
        """Rows in the tenant matching ANY of {column_name: value}."""
        conditions = [IDENTIFIER_COLUMNS[name] == value for name, value in identifiers.items() if value]
        if not conditions:
            return []
        stmt = (
            select(Customer)
            .where(Customer.tenant_id == tenant_id, or_(*conditions))
            .order_by(Customer.created_at, Customer.id)
            .limit(5)
        )
        return list(self.session.scalars(stmt))

    def insert(self, **fields):
        """
        INSERT inside a SAVEPOINT.

        A uniqueness violation rolls back only the savepoint, so the
        surrounding ingestion transaction stays usable for the retry.
        """
        customer = Customer(**fields)
        with self.session.begin_nested():
            self.session.add(customer)
            self.session.flush()
        return customer

    def save(self, customer):
        with self.session.begin_nested():
            self.session.flush([customer])
        return customer

    def bump_interaction(self, customer_id, now, intent=None):
        """Atomic counter bump; never read-modify-write in Python."""
        values = {
            'total_interactions': Customer.total_interactions + 1,
            'last_interaction_at': now,
            'updated_at': now,
        }
        if intent:
            values['last_intent'] = intent
        self.session.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    def top_by_score(self, tenant_id, limit):
        stmt = (
            select(Customer)
            .where(Customer.tenant_id == tenant_id, Customer.total_lead_score > 0)
            .order_by(Customer.total_lead_score.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def apply_score(self, customer_id, expected_score, expected_status, values):
        """
        Compare-and-set the score columns.

        Matches only while score and status still hold the values the caller
        read; returns False when a concurrent writer got there first.
        """
        result = self.session.execute(
            update(Customer)
            .where(
                Customer.id == customer_id,
                Customer.total_lead_score == expected_score,
                Customer.status == expected_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
