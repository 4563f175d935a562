"""
Interaction persistence — the batched idempotent upsert and the delete path.
"""
from sqlalchemy import and_, case, delete, func, or_, update

from inbox.database import upsert_insert
from inbox.models.interaction import Interaction

# Columns the newest version of an event owns. AI fields, is_replied and the
# platform/customer_id links are never rewritten by a conflict.
CONTENT_COLUMNS = [
    'sender_username',
    'content_text',
    'media_urls',
    'received_at',
    'content_updated_at',
    'flag_urgent',
    'post_reference',
]

# Columns resolved from the post link. A version carrying a resolved post
# wins over one without, whatever their order.
ATTRIBUTION_COLUMNS = [
    'source_channel',
    'source_post_id',
    'offering_id',
    'attribution_confidence',
]


class InteractionRepository:

    def __init__(self, session):
        self.session = session

    def get(self, interaction_id):
        return self.session.get(Interaction, interaction_id)

    def upsert_many(self, rows):
        """
        One INSERT ... ON CONFLICT (platform, external_id) DO UPDATE for the batch.

        Content only moves forward: it is replaced when the incoming version
        is at least as new as the stored one. A missing post link is filled
        by any version that resolved it, together with its attribution, so an
        edit delivered before its add (or without its post) converges to the
        same row as add-then-edit. Each applied conflict bumps revision;
        revision == 0 in the RETURNING set means the row was genuinely
        inserted. Rows whose conflict changed nothing are not returned.
        """
        if not rows:
            return []
        stmt = upsert_insert(self.session, Interaction).values(rows)
        excluded = stmt.excluded

        newer = excluded.content_updated_at >= Interaction.content_updated_at
        fills_link = and_(Interaction.post_id.is_(None), excluded.post_id.isnot(None))
        keeps_link = or_(excluded.post_id.isnot(None), Interaction.post_id.is_(None))
        takes_attribution = or_(fills_link, and_(newer, keeps_link))

        set_ = {
            name: case((newer, getattr(excluded, name)), else_=getattr(Interaction, name))
            for name in CONTENT_COLUMNS
        }
        set_.update({
            name: case((takes_attribution, getattr(excluded, name)), else_=getattr(Interaction, name))
            for name in ATTRIBUTION_COLUMNS
        })
        set_['post_id'] = func.coalesce(Interaction.post_id, excluded.post_id)
        set_['revision'] = Interaction.revision + 1

        stmt = stmt.on_conflict_do_update(
            index_elements=['platform', 'external_id'],
            set_=set_,
            where=or_(newer, fills_link),
        ).returning(
            Interaction.id,
            Interaction.external_id,
            Interaction.platform,
            Interaction.type,
            Interaction.is_replied,
            Interaction.revision,
        )
        return list(self.session.execute(stmt).all())

    def delete_by_keys(self, tenant_id, keys):
        """Batch delete by (platform, external_id) pairs. Returns rows removed."""
        if not keys:
            return 0
        conditions = [
            and_(Interaction.platform == platform, Interaction.external_id == external_id)
            for platform, external_id in keys
        ]
        result = self.session.execute(
            delete(Interaction)
            .where(Interaction.tenant_id == tenant_id, or_(*conditions))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def apply_analysis(self, interaction_id, **fields):
        self.session.execute(
            update(Interaction)
            .where(Interaction.id == interaction_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
