"""
Offering / catalog queries used by the matcher.
"""
from sqlalchemy import select, update

from inbox.models.offering import Offering
from inbox.models.post import Post


class OfferingRepository:

    def __init__(self, session):
        self.session = session

    def get(self, offering_id):
        return self.session.get(Offering, offering_id)

    def linked_to_post(self, tenant_id, post_id):
        stmt = (
            select(Offering)
            .where(Offering.tenant_id == tenant_id, Offering.post_id == post_id)
            .order_by(Offering.created_at, Offering.id)
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def for_tenant(self, tenant_id, limit=50, offering_type=None):
        stmt = select(Offering).where(Offering.tenant_id == tenant_id)
        if offering_type:
            stmt = stmt.where(Offering.type == offering_type)
        stmt = stmt.order_by(Offering.created_at, Offering.id).limit(limit)
        return list(self.session.scalars(stmt))

    def search_by_name(self, tenant_id, pattern, limit=1):
        """Case-insensitive LIKE on the offering name; pattern carries its own wildcards."""
        stmt = (
            select(Offering)
            .where(Offering.tenant_id == tenant_id, Offering.name.ilike(pattern))
            .order_by(Offering.created_at, Offering.id)
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def by_reference(self, tenant_id, reference, limit=3):
        """
        Offerings whose name contains the reference, or whose keyword list
        contains it exactly (case-insensitive).

        Keywords are a JSON list, so containment is checked here rather than
        with a dialect-specific array operator.
        """
        needle = reference.lower()
        matches = self.search_by_name(tenant_id, f'%{_escape_like(needle)}%', limit=limit)
        seen = {o.id for o in matches}
        if len(matches) < limit:
            for offering in self.for_tenant(tenant_id, limit=200):
                if offering.id in seen:
                    continue
                keywords = [str(k).lower() for k in (offering.keywords or [])]
                if needle in keywords:
                    matches.append(offering)
                    seen.add(offering.id)
                    if len(matches) >= limit:
                        break
        return matches

    def post_platform(self, post_id):
        return self.session.scalar(select(Post.platform).where(Post.id == post_id))

    def update_keywords(self, offering_id, keywords, now):
        self.session.execute(
            update(Offering)
            .where(Offering.id == offering_id)
            .values(keywords=list(keywords), updated_at=now)
            .execution_options(synchronize_session=False)
        )


def _escape_like(text):
    # Wildcards typed by a customer must match literally
    return text.replace('%', '').replace('_', ' ')
