"""Initial schema: tenants, accounts, posts, offerings, customers, interactions, stats

Revision ID: 3f1a9c2d7e54
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7e54'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOW = sa.text('(CURRENT_TIMESTAMP)')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('tenants',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('business_name', sa.Text(), nullable=True),
        sa.Column('language', sa.Text(), nullable=False, server_default='en'),
        sa.Column('preferences', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table('system_settings',
        sa.Column('key', sa.Text(), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('key'),
    )

    op.create_table('connected_accounts',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('tenant_id', sa.Text(), nullable=False),
        sa.Column('platform', sa.Text(), nullable=False),
        sa.Column('platform_user_id', sa.Text(), nullable=False),
        sa.Column('platform_username', sa.Text(), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'platform', name='uq_connected_tenant_platform'),
    )
    op.create_index('ix_connected_accounts_platform_user_id', 'connected_accounts', ['platform_user_id'])

    op.create_table('posts',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('tenant_id', sa.Text(), nullable=False),
        sa.Column('platform', sa.Text(), nullable=False),
        sa.Column('external_id', sa.Text(), nullable=False),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('caption', sa.Text(), nullable=True),
        sa.Column('likes', sa.Integer(), nullable=True),
        sa.Column('shares', sa.Integer(), nullable=True),
        sa.Column('comments_count', sa.Integer(), nullable=True),
        sa.Column('posted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('synced_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('platform', 'external_id', name='uq_post_platform_external'),
    )
    op.create_index('ix_posts_tenant_id', 'posts', ['tenant_id'])

    op.create_table('offerings',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('tenant_id', sa.Text(), nullable=False),
        sa.Column('post_id', sa.Text(), nullable=True),
        sa.Column('type', sa.Text(), nullable=False, server_default='PRODUCT'),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Text(), nullable=True),
        sa.Column('keywords', sa.JSON(), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_offerings_tenant_id', 'offerings', ['tenant_id'])
    op.create_index('ix_offerings_post_id', 'offerings', ['post_id'])

    op.create_table('customers',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('tenant_id', sa.Text(), nullable=False),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('instagram_user_id', sa.Text(), nullable=True),
        sa.Column('instagram_username', sa.Text(), nullable=True),
        sa.Column('facebook_user_id', sa.Text(), nullable=True),
        sa.Column('whatsapp_phone', sa.Text(), nullable=True),
        sa.Column('tiktok_username', sa.Text(), nullable=True),
        sa.Column('total_lead_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.Text(), nullable=False, server_default='COLD'),
        sa.Column('total_interactions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_interaction_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_intent', sa.Text(), nullable=True),
        sa.Column('score_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'instagram_user_id', name='uq_customer_instagram_user'),
        sa.UniqueConstraint('tenant_id', 'facebook_user_id', name='uq_customer_facebook_user'),
        sa.UniqueConstraint('tenant_id', 'whatsapp_phone', name='uq_customer_whatsapp_phone'),
        sa.UniqueConstraint('tenant_id', 'tiktok_username', name='uq_customer_tiktok_username'),
    )
    op.create_index('ix_customers_tenant_id', 'customers', ['tenant_id'])
    op.create_index('ix_customer_instagram_username', 'customers', ['tenant_id', 'instagram_username'])
    op.create_index('ix_customer_score', 'customers', ['tenant_id', 'total_lead_score'])

    op.create_table('interactions',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('tenant_id', sa.Text(), nullable=False),
        sa.Column('post_id', sa.Text(), nullable=True),
        sa.Column('customer_id', sa.Text(), nullable=True),
        sa.Column('offering_id', sa.Text(), nullable=True),
        sa.Column('platform', sa.Text(), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('external_id', sa.Text(), nullable=False),
        sa.Column('sender_username', sa.Text(), nullable=False, server_default=''),
        sa.Column('content_text', sa.Text(), nullable=False, server_default=''),
        sa.Column('media_urls', sa.JSON(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('content_updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revision', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('post_reference', sa.Text(), nullable=True),
        sa.Column('source_channel', sa.Text(), nullable=True),
        sa.Column('source_post_id', sa.Text(), nullable=True),
        sa.Column('attribution_confidence', sa.Integer(), nullable=True),
        sa.Column('is_replied', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('flag_urgent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reply_text', sa.Text(), nullable=True),
        sa.Column('replied_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ai_intent', sa.Text(), nullable=True),
        sa.Column('ai_confidence', sa.Integer(), nullable=True),
        sa.Column('ai_suggestion', sa.Text(), nullable=True),
        sa.Column('sentiment', sa.Text(), nullable=True),
        sa.Column('flag_low_confidence', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_spam', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('ai_model_version', sa.Text(), nullable=True),
        sa.Column('ai_analyzed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('lead_score_change', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['offering_id'], ['offerings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('platform', 'external_id', name='uq_interaction_platform_external'),
    )
    op.create_index('ix_interactions_tenant_id', 'interactions', ['tenant_id'])
    op.create_index('ix_interactions_post_id', 'interactions', ['post_id'])
    op.create_index('ix_interactions_customer_id', 'interactions', ['customer_id'])
    op.create_index('ix_interaction_tenant_replied', 'interactions', ['tenant_id', 'is_replied'])
    op.create_index('ix_interaction_tenant_received', 'interactions', ['tenant_id', 'received_at'])
    op.create_index('ix_interaction_tenant_intent', 'interactions', ['tenant_id', 'ai_intent'])

    op.create_table('tenant_stats',
        sa.Column('tenant_id', sa.Text(), nullable=False),
        sa.Column('total_interactions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unanswered_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.Column('last_reconciled_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('tenant_id'),
    )

    op.create_table('tenant_stat_buckets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Text(), nullable=False),
        sa.Column('dimension', sa.Text(), nullable=False),
        sa.Column('key', sa.Text(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'dimension', 'key', name='uq_stat_bucket'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('tenant_stat_buckets')
    op.drop_table('tenant_stats')
    op.drop_table('interactions')
    op.drop_table('customers')
    op.drop_table('offerings')
    op.drop_table('posts')
    op.drop_table('connected_accounts')
    op.drop_table('system_settings')
    op.drop_table('tenants')
