"""
Customer model — the unified identity of one person across channels.

At most one row per tenant for any strong identifier (platform user id or
phone); the unique constraints are what the identity resolver's optimistic
retry relies on. Instagram usernames are mutable handles, so they are
indexed but not unique.
"""
from sqlalchemy import Column, Index, Integer, Text, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from inbox.database import Base
from inbox.models.tenant import new_id


class Customer(Base):
    __tablename__ = 'customers'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'instagram_user_id', name='uq_customer_instagram_user'),
        UniqueConstraint('tenant_id', 'facebook_user_id', name='uq_customer_facebook_user'),
        UniqueConstraint('tenant_id', 'whatsapp_phone', name='uq_customer_whatsapp_phone'),
        UniqueConstraint('tenant_id', 'tiktok_username', name='uq_customer_tiktok_username'),
        Index('ix_customer_instagram_username', 'tenant_id', 'instagram_username'),
        Index('ix_customer_score', 'tenant_id', 'total_lead_score'),
    )

    id = Column(Text, primary_key=True, default=new_id)
    tenant_id = Column(Text, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    display_name = Column(Text, nullable=True)

    # Linked platform accounts
    instagram_user_id = Column(Text, nullable=True)
    instagram_username = Column(Text, nullable=True)
    facebook_user_id = Column(Text, nullable=True)
    whatsapp_phone = Column(Text, nullable=True)
    tiktok_username = Column(Text, nullable=True)

    # Aggregated lead data
    total_lead_score = Column(Integer, nullable=False, default=0)   # 0-10000
    status = Column(Text, nullable=False, default='COLD')
    total_interactions = Column(Integer, nullable=False, default=0)
    last_interaction_at = Column(DateTime(timezone=True), nullable=True)
    last_intent = Column(Text, nullable=True)
    score_updated_at = Column(DateTime(timezone=True), nullable=True)   # when total_lead_score was last computed; decay anchor
    tags = Column(JSON, default=list)                                 # workflow flags: "priority", "done", ...

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
