"""
Post model — tenant content on a platform, deduplicated by (platform, external_id).
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from inbox.database import Base
from inbox.models.tenant import new_id


class Post(Base):
    __tablename__ = 'posts'
    __table_args__ = (
        UniqueConstraint('platform', 'external_id', name='uq_post_platform_external'),
    )

    id = Column(Text, primary_key=True, default=new_id)
    tenant_id = Column(Text, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    platform = Column(Text, nullable=False)
    external_id = Column(Text, nullable=False)
    url = Column(Text, default='')
    image_url = Column(Text, nullable=True)
    caption = Column(Text, nullable=True)
    likes = Column(Integer, default=0)
    shares = Column(Integer, default=0)
    comments_count = Column(Integer, default=0)
    posted_at = Column(DateTime(timezone=True), nullable=True)
    synced_at = Column(DateTime(timezone=True), server_default=func.now())
