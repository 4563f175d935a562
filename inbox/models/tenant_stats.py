"""
TenantStats — denormalized per-tenant interaction counters.

Not authoritative: always reconstructible from the interactions table.
The by-platform / by-type / by-intent breakdown lives in TenantStatBucket
rows so each bucket can be bumped with an atomic SQL increment.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from inbox.database import Base


class TenantStats(Base):
    __tablename__ = 'tenant_stats'

    tenant_id = Column(Text, ForeignKey('tenants.id', ondelete='CASCADE'), primary_key=True)
    total_interactions = Column(Integer, nullable=False, default=0)
    unanswered_count = Column(Integer, nullable=False, default=0)
    last_updated_at = Column(DateTime(timezone=True), server_default=func.now())
    last_reconciled_at = Column(DateTime(timezone=True), nullable=True)


class TenantStatBucket(Base):
    __tablename__ = 'tenant_stat_buckets'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'dimension', 'key', name='uq_stat_bucket'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Text, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    dimension = Column(Text, nullable=False)     # platform / type / intent
    key = Column(Text, nullable=False)
    count = Column(Integer, nullable=False, default=0)
