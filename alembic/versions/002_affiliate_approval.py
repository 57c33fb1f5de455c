"""Add affiliate approval columns and tenant trial end

Revision ID: 002_affiliate_approval
Revises: 001_initial
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers
revision = '002_affiliate_approval'
down_revision = '001_initial'
branch_labels = None
depends_on = None


def upgrade():
    """Affiliates start pending and are approved or rejected by an admin"""
    op.add_column(
        'affiliate_details',
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
    )
    op.add_column(
        'affiliate_details',
        sa.Column(
            'approved_by', UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True,
        ),
    )
    op.add_column(
        'affiliate_details',
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_affiliate_details_tenant_status', 'affiliate_details', ['tenant_id', 'status'])
    op.add_column('tenants', sa.Column('trial_ends_at', sa.DateTime(timezone=True), nullable=True))


def downgrade():
    op.drop_column('tenants', 'trial_ends_at')
    op.drop_index('ix_affiliate_details_tenant_status', table_name='affiliate_details')
    op.drop_column('affiliate_details', 'approved_at')
    op.drop_column('affiliate_details', 'approved_by')
    op.drop_column('affiliate_details', 'status')
