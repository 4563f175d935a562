"""
Tenant model — one row per business account, plus its platform credentials
and global system settings.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from inbox.database import Base


def new_id():
    return str(uuid.uuid4())


class Tenant(Base):
    __tablename__ = 'tenants'

    id = Column(Text, primary_key=True, default=new_id)
    email = Column(Text, nullable=False, unique=True)
    business_name = Column(Text, nullable=True)
    language = Column(Text, nullable=False, default='en')
    preferences = Column(JSON, default=dict)       # {"ai_model": "..."} overrides the global model
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ConnectedAccount(Base):
    __tablename__ = 'connected_accounts'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'platform', name='uq_connected_tenant_platform'),
    )

    id = Column(Text, primary_key=True, default=new_id)
    tenant_id = Column(Text, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    platform = Column(Text, nullable=False)
    platform_user_id = Column(Text, nullable=False, index=True)
    platform_username = Column(Text, nullable=True)
    access_token = Column(Text, nullable=False)    # encrypted by the OAuth layer, opaque here
    last_synced_at = Column(DateTime(timezone=True), nullable=True)


class SystemSetting(Base):
    __tablename__ = 'system_settings'

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
