"""Create PromoHub schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

# revision identifiers
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _tenant_fk():
    return sa.Column(
        'tenant_id', UUID(as_uuid=True),
        sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True,
    )


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False)


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False)


def upgrade():
    """Create tenant, catalog, commission, tracking and campaign tables"""

    # ====================
    # TENANTS & USERS
    # ====================
    op.create_table(
        'tenants',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('subdomain', sa.String(100), unique=True, nullable=False),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),
        sa.Column('settings', JSONB, server_default='{}', nullable=False),
        _created_at(),
    )

    op.create_table(
        'users',
        _id(),
        _tenant_fk(),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('role', sa.String(20), server_default='affiliate', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        _created_at(),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    # ====================
    # PRODUCTS
    # ====================
    op.create_table(
        'products',
        _id(),
        _tenant_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('sku_code', sa.String(50), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), server_default='USD', nullable=False),
        sa.Column('commission_percent', sa.Numeric(5, 2), nullable=True),
        sa.Column('status', sa.String(10), server_default='active', nullable=False),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint('tenant_id', 'sku_code', name='uq_product_tenant_sku'),
    )

    # ====================
    # COMMISSION TIERS & RULES
    # ====================
    op.create_table(
        'commission_tiers',
        _id(),
        _tenant_fk(),
        sa.Column('tier_name', sa.String(100), nullable=False),
        sa.Column('commission_percent', sa.Numeric(5, 2), nullable=False),
        sa.Column('min_sales', sa.Numeric(12, 2), server_default='0', nullable=False),
        _created_at(),
    )
    op.create_index('ix_commission_tiers_tenant_min_sales', 'commission_tiers', ['tenant_id', 'min_sales'])

    op.create_table(
        'commission_rules',
        _id(),
        _tenant_fk(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('condition', sa.Text, nullable=False),
        sa.Column('value', sa.Numeric(10, 2), nullable=False),
        sa.Column('value_type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(10), server_default='active', nullable=False),
        sa.Column('priority', sa.Integer, server_default='0', nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )

    # ====================
    # AFFILIATES
    # ====================
    op.create_table(
        'affiliate_details',
        _id(),
        _tenant_fk(),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'current_tier_id', UUID(as_uuid=True),
            sa.ForeignKey('commission_tiers.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('referral_code', sa.String(50), nullable=True),
        sa.Column('website_url', sa.String(500), nullable=True),
        sa.Column('social_media', JSONB, server_default='{}', nullable=False),
        sa.Column('promotional_methods', JSONB, server_default='[]', nullable=False),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint('tenant_id', 'user_id', name='uq_affiliate_details_tenant_user'),
    )

    op.create_table(
        'affiliate_invites',
        _id(),
        _tenant_fk(),
        sa.Column('email', sa.String(255), nullable=False, index=True),
        sa.Column('token', sa.String(100), unique=True, nullable=False),
        sa.Column('product_ids', JSONB, server_default='[]', nullable=False),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('invited_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('accepted_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index('ix_affiliate_invites_token', 'affiliate_invites', ['token'])

    # ====================
    # TRACKING
    # ====================
    op.create_table(
        'tracking_links',
        _id(),
        _tenant_fk(),
        sa.Column(
            'affiliate_id', UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True,
        ),
        sa.Column('product_id', UUID(as_uuid=True), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tracking_code', sa.String(64), unique=True, nullable=False),
        sa.Column('total_clicks', sa.Integer, server_default='0', nullable=False),
        sa.Column('total_conversions', sa.Integer, server_default='0', nullable=False),
        sa.Column('total_sales', sa.Numeric(12, 2), server_default='0', nullable=False),
        _created_at(),
        sa.UniqueConstraint('affiliate_id', 'product_id', name='uq_tracking_link_affiliate_product'),
    )
    op.create_index('ix_tracking_links_tracking_code', 'tracking_links', ['tracking_code'])

    op.create_table(
        'tracking_events',
        _id(),
        _tenant_fk(),
        sa.Column(
            'tracking_link_id', UUID(as_uuid=True),
            sa.ForeignKey('tracking_links.id', ondelete='CASCADE'), nullable=False, index=True,
        ),
        sa.Column('affiliate_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('metadata', JSONB, server_default='{}', nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        _created_at(),
    )

    # ====================
    # COMMISSION LEDGER
    # ====================
    op.create_table(
        'affiliate_product_commissions',
        _id(),
        _tenant_fk(),
        sa.Column(
            'affiliate_id', UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True, index=True,
        ),
        sa.Column('product_id', UUID(as_uuid=True), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'invite_id', UUID(as_uuid=True),
            sa.ForeignKey('affiliate_invites.id', ondelete='SET NULL'), nullable=True, index=True,
        ),
        sa.Column(
            'tracking_link_id', UUID(as_uuid=True),
            sa.ForeignKey('tracking_links.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('commission_tier_id', UUID(as_uuid=True), sa.ForeignKey('commission_tiers.id'), nullable=False),
        sa.Column('commission_percent', sa.Numeric(5, 2), nullable=False, comment='Tier rate snapshot (%)'),
        sa.Column('product_commission', sa.Numeric(5, 2), nullable=False, comment='Product rate snapshot (%)'),
        sa.Column('final_commission', sa.Numeric(5, 2), nullable=False, comment='Rate actually paid (%)'),
        sa.Column('rate_source', sa.String(10), server_default='tier', nullable=False),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint('affiliate_id', 'product_id', name='uq_apc_affiliate_product'),
        sa.CheckConstraint("rate_source IN ('tier', 'product')", name='ck_apc_rate_source'),
    )
    op.create_index('ix_apc_tenant_product', 'affiliate_product_commissions', ['tenant_id', 'product_id'])

    # ====================
    # CAMPAIGNS
    # ====================
    op.create_table(
        'campaigns',
        _id(),
        _tenant_fk(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('type', sa.String(20), server_default='product', nullable=False),
        sa.Column('status', sa.String(20), server_default='draft', nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metrics', JSONB, server_default='{}', nullable=False),
        sa.Column('created_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint('tenant_id', 'name', name='uq_campaign_tenant_name'),
    )

    op.create_table(
        'campaign_participations',
        _id(),
        _tenant_fk(),
        sa.Column(
            'campaign_id', UUID(as_uuid=True),
            sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True,
        ),
        sa.Column(
            'influencer_id', UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True,
        ),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('metrics', JSONB, server_default='{}', nullable=False),
        sa.Column('promotional_links', JSONB, server_default='[]', nullable=False),
        sa.Column('promotional_codes', JSONB, server_default='[]', nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('campaign_id', 'influencer_id', name='uq_participation_campaign_influencer'),
    )


def downgrade():
    op.drop_table('campaign_participations')
    op.drop_table('campaigns')
    op.drop_table('affiliate_product_commissions')
    op.drop_table('tracking_events')
    op.drop_table('tracking_links')
    op.drop_table('affiliate_invites')
    op.drop_table('affiliate_details')
    op.drop_table('commission_rules')
    op.drop_table('commission_tiers')
    op.drop_table('products')
    op.drop_table('users')
    op.drop_table('tenants')
