"""Row-level security DDL for tenant tables.

Each protected table gets one ``FOR ALL`` policy whose ``USING`` and
``WITH CHECK`` clauses are the same account predicate, so a tenant can
neither read nor write rows stamped with another account. ``FORCE`` makes
the policy bind the table owner as well.
"""

from .tenant_context import EFFECTIVE_ACCOUNT_ID_SQL

PROTECTED_TABLES = (
    "properties",
    "contacts",
    "bookings",
    "message_log",
    "faqs",
    "task_log",
    "ai_log",
)

# Protected through the parent contact rather than an account_id column.
CONTACT_LOCATIONS_TABLE = "contact_service_locations"

# Columns joined against in tenant queries, indexed next to account_id.
SECONDARY_INDEXES = {
    "message_log": ("booking_id", "timestamp"),
    "bookings": ("booking_id",),
    "faqs": ("property_id",),
    "task_log": ("task_uuid", "property_id"),
    "ai_log": ("uuid", "property_id", "execution_timestamp"),
    CONTACT_LOCATIONS_TABLE: ("contact_id", "property_id"),
}


def policy_name(table: str) -> str:
    return f"{table}_account_isolation"


def index_name(table: str, column: str) -> str:
    return f"ix_{table}_{column}"


def account_predicate(column: str = "account_id") -> str:
    return f"{column} = {EFFECTIVE_ACCOUNT_ID_SQL}"


def contact_locations_predicate() -> str:
    return (
        "EXISTS (SELECT 1 FROM contacts c "
        f"WHERE c.id = {CONTACT_LOCATIONS_TABLE}.contact_id "
        f"AND {account_predicate('c.account_id')})"
    )


def account_isolation_ddl(table: str, predicate: str | None = None) -> list[str]:
    predicate = predicate or account_predicate()
    name = policy_name(table)
    return [
        f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY",
        f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY",
        f"DROP POLICY IF EXISTS {name} ON {table}",
        f"CREATE POLICY {name} ON {table} FOR ALL "
        f"USING ({predicate}) WITH CHECK ({predicate})",
    ]


def drop_account_isolation_ddl(table: str) -> list[str]:
    return [
        f"DROP POLICY IF EXISTS {policy_name(table)} ON {table}",
        f"ALTER TABLE {table} NO FORCE ROW LEVEL SECURITY",
        f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY",
    ]


def all_policy_ddl() -> list[str]:
    statements = []
    for table in PROTECTED_TABLES:
        statements.extend(account_isolation_ddl(table))
    statements.extend(
        account_isolation_ddl(CONTACT_LOCATIONS_TABLE, contact_locations_predicate())
    )
    return statements
