"""Enable RLS and account isolation policies on tenant tables

Revision ID: 0002_account_isolation
Revises: 0001_initial
Create Date: 2025-08-04 00:10:00
"""

from alembic import op

from rambley_api.app.policies import (
    CONTACT_LOCATIONS_TABLE,
    account_isolation_ddl,
    contact_locations_predicate,
    drop_account_isolation_ddl,
)

# revision identifiers, used by Alembic.
revision = '0002_account_isolation'
down_revision = '0001_initial'
branch_labels = None
depends_on = None

TENANT_TABLES = ('properties', 'contacts', 'bookings', 'message_log', 'faqs')


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == 'postgresql'


def upgrade():
    if not _is_postgres():
        return
    for table in TENANT_TABLES:
        for statement in account_isolation_ddl(table):
            op.execute(statement)
    for statement in account_isolation_ddl(CONTACT_LOCATIONS_TABLE, contact_locations_predicate()):
        op.execute(statement)


def downgrade():
    if not _is_postgres():
        return
    for table in (CONTACT_LOCATIONS_TABLE, *reversed(TENANT_TABLES)):
        for statement in drop_account_isolation_ddl(table):
            op.execute(statement)
