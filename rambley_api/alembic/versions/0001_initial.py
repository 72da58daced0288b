"""create account-owned tables

Revision ID: 0001_initial
Revises:
Create Date: 2025-08-04 00:00:00
"""

from alembic import op
import sqlalchemy as sa

from rambley_api.app.policies import index_name

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

# Tables as of this revision; later revisions add their own.
TENANT_TABLES = ('properties', 'contacts', 'bookings', 'message_log', 'faqs')
SECONDARY_INDEXES = {
    'message_log': ('booking_id', 'timestamp'),
    'bookings': ('booking_id',),
    'faqs': ('property_id',),
    'contact_service_locations': ('contact_id', 'property_id'),
}


def _account_fk():
    return sa.Column(
        'account_id',
        sa.Integer(),
        sa.ForeignKey('accounts.id', ondelete='CASCADE'),
        nullable=False,
    )


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('subscription_tier', sa.String(50), server_default='basic'),
        sa.Column('max_properties', sa.Integer(), server_default='10'),
        sa.Column('max_contacts', sa.Integer(), server_default='100'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_accounts_is_active', 'accounts', ['is_active'])
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        _account_fk(),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100)),
        sa.Column('last_name', sa.String(100)),
        sa.Column('role', sa.String(50), server_default='user'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('last_login', sa.DateTime()),
    )
    op.create_index('ix_users_account_id', 'users', ['account_id'])
    op.create_table(
        'properties',
        sa.Column('id', sa.Integer(), primary_key=True),
        _account_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.Text()),
        sa.Column('description', sa.Text()),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        'contacts',
        sa.Column('id', sa.Integer(), primary_key=True),
        _account_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('service_type', sa.String(100), nullable=False),
        sa.Column('phone', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('preferred_language', sa.String(10), server_default='en'),
        sa.Column('notes', sa.Text()),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        'contact_service_locations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('contact_id', sa.Integer(), sa.ForeignKey('contacts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('property_id', sa.Integer(), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('contact_id', 'property_id'),
    )
    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        _account_fk(),
        sa.Column('booking_id', sa.Integer()),
        sa.Column('property_id', sa.Integer()),
        sa.Column('confirmation_code', sa.String(100)),
        sa.Column('start_date', sa.DateTime()),
        sa.Column('end_date', sa.DateTime()),
        sa.Column('nights', sa.Integer()),
        sa.Column('guest', sa.String(255)),
        sa.Column('listing', sa.String(500)),
        sa.Column('phone', sa.String(255)),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_table(
        'message_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        _account_fk(),
        sa.Column('message_uuid', sa.String(255), nullable=False),
        sa.Column('timestamp', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('from_number', sa.String(50)),
        sa.Column('to_number', sa.String(50)),
        sa.Column('message_body', sa.Text()),
        sa.Column('image_url', sa.Text()),
        sa.Column('message_type', sa.String(50), server_default='Outbound'),
        sa.Column('requestor_role', sa.String(50)),
        sa.Column('booking_id', sa.String(255)),
        sa.Column('ai_enrichment_uuid', sa.String(255)),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_message_log_message_uuid', 'message_log', ['message_uuid'])
    op.create_table(
        'faqs',
        sa.Column('id', sa.Integer(), primary_key=True),
        _account_fk(),
        sa.Column('property_id', sa.Integer(), sa.ForeignKey('properties.id', ondelete='CASCADE')),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('answer', sa.Text()),
        sa.Column('answer_type', sa.String(20), server_default='unanswered'),
        sa.Column('confidence', sa.Numeric(3, 2), server_default='0'),
        sa.Column('ask_count', sa.Integer(), server_default='0'),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )

    # The isolation predicate runs in every plan touching these tables.
    for table in TENANT_TABLES:
        op.create_index(index_name(table, 'account_id'), table, ['account_id'])
    for table, columns in SECONDARY_INDEXES.items():
        for column in columns:
            op.create_index(index_name(table, column), table, [column])


def downgrade() -> None:
    op.drop_table('faqs')
    op.drop_table('message_log')
    op.drop_table('bookings')
    op.drop_table('contact_service_locations')
    op.drop_table('contacts')
    op.drop_table('properties')
    op.drop_table('users')
    op.drop_table('accounts')
