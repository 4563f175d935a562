"""
TenantStats persistence — atomic increments (fast path) and exact overwrites
(reconciliation path).
"""
from sqlalchemy import delete, func, select

from inbox.database import upsert_insert
from inbox.models.interaction import Interaction
from inbox.models.tenant import Tenant
from inbox.models.tenant_stats import TenantStats, TenantStatBucket


class StatsRepository:

    def __init__(self, session):
        self.session = session

    # ── fast path ─────────────────────────────────────────────────────

    def increment(self, tenant_id, total, unanswered, buckets, now):
        """
        Upsert-increment the tenant row and its buckets.

        Every counter change is an SQL `col = col + n` expression, so
        concurrent ingestions for the same tenant never lose updates.
        """
        stmt = upsert_insert(self.session, TenantStats).values(
            tenant_id=tenant_id,
            total_interactions=total,
            unanswered_count=unanswered,
            last_updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['tenant_id'],
            set_={
                'total_interactions': TenantStats.total_interactions + total,
                'unanswered_count': TenantStats.unanswered_count + unanswered,
                'last_updated_at': now,
            },
        )
        self.session.execute(stmt)

        for (dimension, key), count in sorted(buckets.items()):
            stmt = upsert_insert(self.session, TenantStatBucket).values(
                tenant_id=tenant_id, dimension=dimension, key=key, count=count,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=['tenant_id', 'dimension', 'key'],
                set_={'count': TenantStatBucket.count + count},
            )
            self.session.execute(stmt)

    # ── repair path ───────────────────────────────────────────────────

    def overwrite(self, tenant_id, total, unanswered, buckets, now):
        stmt = upsert_insert(self.session, TenantStats).values(
            tenant_id=tenant_id,
            total_interactions=total,
            unanswered_count=unanswered,
            last_updated_at=now,
            last_reconciled_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['tenant_id'],
            set_={
                'total_interactions': total,
                'unanswered_count': unanswered,
                'last_updated_at': now,
                'last_reconciled_at': now,
            },
        )
        self.session.execute(stmt)

        self.session.execute(
            delete(TenantStatBucket)
            .where(TenantStatBucket.tenant_id == tenant_id)
            .execution_options(synchronize_session=False)
        )
        rows = [
            {'tenant_id': tenant_id, 'dimension': dimension, 'key': key, 'count': count}
            for (dimension, key), count in sorted(buckets.items())
        ]
        if rows:
            self.session.execute(TenantStatBucket.__table__.insert(), rows)

    def count_interactions(self, tenant_id, unanswered_only=False):
        stmt = select(func.count()).select_from(Interaction).where(Interaction.tenant_id == tenant_id)
        if unanswered_only:
            stmt = stmt.where(Interaction.is_replied.is_(False))
        return self.session.scalar(stmt) or 0

    def count_by(self, tenant_id, column):
        """{value: count} grouped by an interactions column; NULL groups dropped."""
        stmt = (
            select(column, func.count())
            .where(Interaction.tenant_id == tenant_id)
            .group_by(column)
        )
        return {value: count for value, count in self.session.execute(stmt) if value is not None}

    def tenant_ids(self):
        return list(self.session.scalars(select(Tenant.id).order_by(Tenant.id)))

    # ── reads ─────────────────────────────────────────────────────────

    def get(self, tenant_id):
        return self.session.get(TenantStats, tenant_id)

    def buckets(self, tenant_id):
        stmt = select(TenantStatBucket.dimension, TenantStatBucket.key, TenantStatBucket.count).where(
            TenantStatBucket.tenant_id == tenant_id,
        )
        return {(dimension, key): count for dimension, key, count in self.session.execute(stmt)}
