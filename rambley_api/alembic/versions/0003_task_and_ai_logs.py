"""add task_log and ai_log with account isolation

Revision ID: 0003_task_and_ai_logs
Revises: 0002_account_isolation
Create Date: 2025-08-11 00:00:00
"""

from alembic import op
import sqlalchemy as sa

from rambley_api.app.policies import account_isolation_ddl, drop_account_isolation_ddl, index_name

# revision identifiers, used by Alembic.
revision = '0003_task_and_ai_logs'
down_revision = '0002_account_isolation'
branch_labels = None
depends_on = None

INDEXES = {
    'task_log': ('account_id', 'task_uuid', 'property_id'),
    'ai_log': ('account_id', 'uuid', 'property_id', 'execution_timestamp'),
}


def upgrade() -> None:
    op.create_table(
        'task_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('task_uuid', sa.String(255)),
        sa.Column('created_date', sa.DateTime()),
        sa.Column('phone', sa.String(50)),
        sa.Column('property_id', sa.Integer(), sa.ForeignKey('properties.id', ondelete='SET NULL')),
        sa.Column('guest_message', sa.Text()),
        sa.Column('sub_category', sa.String(100)),
        sa.Column('staff_id', sa.Integer(), sa.ForeignKey('contacts.id', ondelete='SET NULL')),
        sa.Column('staff_phone', sa.String(50)),
        sa.Column('requirements_to_complete_task', sa.Text()),
        sa.Column('ai_message_response', sa.Text()),
        sa.Column('status', sa.Boolean(), server_default=sa.false()),
        sa.Column('escalated_to_host', sa.Text()),
        sa.Column('response_received', sa.Boolean(), server_default=sa.false()),
        sa.Column('guest_notified', sa.Boolean(), server_default=sa.false()),
        sa.Column('host_escalated', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_table(
        'ai_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('uuid', sa.String(255)),
        sa.Column('recipient_type', sa.String(50)),
        sa.Column('property_id', sa.Integer(), sa.ForeignKey('properties.id', ondelete='SET NULL')),
        sa.Column('to_recipient', sa.String(50)),
        sa.Column('message', sa.Text()),
        sa.Column('language', sa.String(10)),
        sa.Column('tone', sa.String(50)),
        sa.Column('sentiment', sa.String(50)),
        sa.Column('urgency_indicators', sa.String(50)),
        sa.Column('sub_category', sa.String(100)),
        sa.Column('escalation_risk_indicators', sa.String(50)),
        sa.Column('ai_message_response', sa.Text()),
        sa.Column('status', sa.String(50)),
        sa.Column('task_created', sa.Boolean(), server_default=sa.false()),
        sa.Column('task_uuid', sa.String(255)),
        sa.Column('execution_timestamp', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    for table, columns in INDEXES.items():
        for column in columns:
            op.create_index(index_name(table, column), table, [column])

    if op.get_bind().dialect.name == 'postgresql':
        for table in INDEXES:
            for statement in account_isolation_ddl(table):
                op.execute(statement)


def downgrade() -> None:
    if op.get_bind().dialect.name == 'postgresql':
        for table in INDEXES:
            for statement in drop_account_isolation_ddl(table):
                op.execute(statement)
    op.drop_table('ai_log')
    op.drop_table('task_log')
