"""
Offering model — a product or service a tenant sells, optionally tied to the
post that introduced it. Keywords drive message → offering matching.
"""
from sqlalchemy import Column, Boolean, Text, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func

from inbox.database import Base
from inbox.models.tenant import new_id


class Offering(Base):
    __tablename__ = 'offerings'

    id = Column(Text, primary_key=True, default=new_id)
    tenant_id = Column(Text, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    post_id = Column(Text, ForeignKey('posts.id', ondelete='SET NULL'), nullable=True, index=True)
    type = Column(Text, nullable=False, default='PRODUCT')   # PRODUCT / SERVICE
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Text, nullable=True)                      # "Rs. 2,500" or "Rs. 500/hr"
    keywords = Column(JSON, default=list)
    is_available = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
