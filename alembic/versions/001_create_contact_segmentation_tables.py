"""Create contact segmentation tables (api_users, contacts, contact_segments, memberships)

Revision ID: 001_create_contact_segmentation_tables
Revises:
Create Date: 2026-10-19

Note: contact_segment_memberships is rebuilt by every segment refresh; the
(contact_id, segment_id) unique constraint backs the one-row-per-pair rule.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text

# revision identifiers, used by Alembic.
revision = '001_create_contact_segmentation_tables'
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(conn, table_name: str) -> bool:
    result = conn.execute(text(
        "SELECT EXISTS (SELECT FROM information_schema.tables WHERE table_name = :name)"
    ), {"name": table_name})
    return bool(result.scalar())


def upgrade():
    """Create segmentation tables."""
    conn = op.get_bind()

    if not _table_exists(conn, 'api_users'):
        op.create_table(
            'api_users',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
            sa.Column('first_name', sa.String(100)),
            sa.Column('last_name', sa.String(100)),
            sa.Column('is_active', sa.Boolean(), default=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), onupdate=sa.func.now()),
        )

    if not _table_exists(conn, 'contacts'):
        op.create_table(
            'contacts',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('api_users.id', ondelete='CASCADE'),
                      nullable=False, index=True),
            sa.Column('email', sa.String(255), nullable=False),
            sa.Column('first_name', sa.String(100)),
            sa.Column('last_name', sa.String(100)),
            sa.Column('company', sa.String(255)),
            sa.Column('job_title', sa.String(255)),
            sa.Column('location', sa.String(255)),
            sa.Column('website', sa.String(500)),
            sa.Column('phone', sa.String(50)),
            sa.Column('custom_fields', sa.JSON()),
            sa.Column('tags', sa.JSON()),
            # Engagement counters
            sa.Column('total_emails_opened', sa.Integer(), default=0),
            sa.Column('total_emails_clicked', sa.Integer(), default=0),
            sa.Column('engagement_score', sa.Integer(), default=0),
            # Lifecycle
            sa.Column('is_active', sa.Boolean(), default=True),
            sa.Column('subscription_date', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('unsubscribed_at', sa.DateTime(timezone=True)),
            sa.Column('last_activity_at', sa.DateTime(timezone=True)),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), onupdate=sa.func.now()),
        )
        op.create_index('ix_contacts_user_email', 'contacts', ['user_id', 'email'])

    if not _table_exists(conn, 'contact_segments'):
        op.create_table(
            'contact_segments',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('api_users.id', ondelete='CASCADE'),
                      nullable=False, index=True),
            sa.Column('name', sa.String(100), nullable=False),
            sa.Column('description', sa.Text()),
            sa.Column('conditions', sa.JSON()),
            sa.Column('is_active', sa.Boolean(), default=True),
            sa.Column('is_auto_update', sa.Boolean(), default=True),
            sa.Column('contact_count', sa.Integer(), default=0),
            sa.Column('last_updated_at', sa.DateTime(timezone=True)),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )

    if not _table_exists(conn, 'contact_segment_memberships'):
        op.create_table(
            'contact_segment_memberships',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('contact_id', sa.Integer(), sa.ForeignKey('contacts.id', ondelete='CASCADE'),
                      nullable=False, index=True),
            sa.Column('segment_id', sa.Integer(), sa.ForeignKey('contact_segments.id', ondelete='CASCADE'),
                      nullable=False, index=True),
            sa.Column('added_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.UniqueConstraint('contact_id', 'segment_id', name='uq_segment_membership_contact_segment'),
        )
        op.create_index(
            'ix_segment_membership_segment_added',
            'contact_segment_memberships',
            ['segment_id', 'added_at'],
        )


def downgrade():
    """Drop segmentation tables."""
    op.drop_index('ix_segment_membership_segment_added', table_name='contact_segment_memberships')
    op.drop_table('contact_segment_memberships')
    op.drop_table('contact_segments')
    op.drop_index('ix_contacts_user_email', table_name='contacts')
    op.drop_table('contacts')
    op.drop_table('api_users')
