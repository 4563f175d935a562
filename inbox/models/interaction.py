"""
Interaction model — one inbound event, deduplicated by (platform, external_id).

platform / post_id are the literal ingest values: platform is never rewritten,
post_id is only filled in when a later version resolves a link the stored row
lacked. source_channel / source_post_id hold the current attribution belief
and may change when a later edit changes post_reference.
"""
from sqlalchemy import Column, Boolean, Index, Integer, Text, DateTime, JSON, ForeignKey, UniqueConstraint

from inbox.database import Base
from inbox.models.tenant import new_id


class Interaction(Base):
    __tablename__ = 'interactions'
    __table_args__ = (
        UniqueConstraint('platform', 'external_id', name='uq_interaction_platform_external'),
        Index('ix_interaction_tenant_replied', 'tenant_id', 'is_replied'),
        Index('ix_interaction_tenant_received', 'tenant_id', 'received_at'),
        Index('ix_interaction_tenant_intent', 'tenant_id', 'ai_intent'),
    )

    id = Column(Text, primary_key=True, default=new_id)
    tenant_id = Column(Text, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)

    # Links
    post_id = Column(Text, ForeignKey('posts.id', ondelete='SET NULL'), nullable=True, index=True)
    customer_id = Column(Text, ForeignKey('customers.id', ondelete='SET NULL'), nullable=True, index=True)
    offering_id = Column(Text, ForeignKey('offerings.id', ondelete='SET NULL'), nullable=True)

    # Event details
    platform = Column(Text, nullable=False)
    type = Column(Text, nullable=False)
    external_id = Column(Text, nullable=False)
    sender_username = Column(Text, nullable=False, default='')
    content_text = Column(Text, nullable=False, default='')
    media_urls = Column(JSON, default=list)
    received_at = Column(DateTime(timezone=True), nullable=False)
    content_updated_at = Column(DateTime(timezone=True), nullable=False)   # ordering key for add/edit convergence
    revision = Column(Integer, nullable=False, default=0)                  # 0 = inserted, +1 per conflicting upsert

    # Attribution
    post_reference = Column(Text, nullable=True)
    source_channel = Column(Text, nullable=True)
    source_post_id = Column(Text, nullable=True)      # a post id, or an ad id / ref code from a referral
    attribution_confidence = Column(Integer, nullable=True)

    # Status flags
    is_replied = Column(Boolean, nullable=False, default=False)
    flag_urgent = Column(Boolean, nullable=False, default=False)
    reply_text = Column(Text, nullable=True)
    replied_at = Column(DateTime(timezone=True), nullable=True)

    # AI analysis
    ai_intent = Column(Text, nullable=True)
    ai_confidence = Column(Integer, nullable=True)
    ai_suggestion = Column(Text, nullable=True)
    sentiment = Column(Text, nullable=True)
    flag_low_confidence = Column(Boolean, nullable=False, default=False)
    is_spam = Column(Boolean, nullable=False, default=False)
    ai_model_version = Column(Text, nullable=True)
    ai_analyzed_at = Column(DateTime(timezone=True), nullable=True)
    lead_score_change = Column(Integer, nullable=False, default=0)
