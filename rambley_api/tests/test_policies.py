import importlib.util
from pathlib import Path

from rambley_api.app import models
from rambley_api.app.database import Base
from rambley_api.app.policies import (
    CONTACT_LOCATIONS_TABLE,
    PROTECTED_TABLES,
    SECONDARY_INDEXES,
    account_isolation_ddl,
    account_predicate,
    all_policy_ddl,
    contact_locations_predicate,
    drop_account_isolation_ddl,
    index_name,
    policy_name,
)
from rambley_api.app.tenant_context import EFFECTIVE_ACCOUNT_ID_SQL


def test_policy_guards_reads_and_writes_with_same_predicate():
    statements = account_isolation_ddl("message_log")
    assert statements[0] == "ALTER TABLE message_log ENABLE ROW LEVEL SECURITY"
    assert statements[1] == "ALTER TABLE message_log FORCE ROW LEVEL SECURITY"
    assert statements[2] == "DROP POLICY IF EXISTS message_log_account_isolation ON message_log"
    create = statements[3]
    predicate = account_predicate()
    assert create.startswith("CREATE POLICY message_log_account_isolation ON message_log FOR ALL")
    assert f"USING ({predicate})" in create
    assert f"WITH CHECK ({predicate})" in create
    assert predicate == f"account_id = {EFFECTIVE_ACCOUNT_ID_SQL}"


def test_contact_locations_scoped_through_contact():
    predicate = contact_locations_predicate()
    assert predicate.startswith("EXISTS (SELECT 1 FROM contacts c")
    assert "c.id = contact_service_locations.contact_id" in predicate
    assert f"c.account_id = {EFFECTIVE_ACCOUNT_ID_SQL}" in predicate


def test_every_protected_table_gets_a_policy():
    ddl = "\n".join(all_policy_ddl())
    for table in (*PROTECTED_TABLES, CONTACT_LOCATIONS_TABLE):
        assert f"CREATE POLICY {policy_name(table)} ON {table} FOR ALL" in ddl
        assert f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY" in ddl


def test_protected_tables_have_non_null_indexed_account_id():
    for table_name in PROTECTED_TABLES:
        table = Base.metadata.tables[table_name]
        column = table.c.account_id
        assert not column.nullable
        assert [fk.target_fullname for fk in column.foreign_keys] == ["accounts.id"]
        assert index_name(table_name, "account_id") in {ix.name for ix in table.indexes}


def test_secondary_indexes_exist_on_models():
    for table_name, columns in SECONDARY_INDEXES.items():
        names = {ix.name for ix in Base.metadata.tables[table_name].indexes}
        for column in columns:
            assert index_name(table_name, column) in names


def test_contact_locations_have_no_account_column():
    assert "account_id" not in models.ContactServiceLocation.__table__.c


def test_drop_reverses_enable():
    assert drop_account_isolation_ddl("faqs") == [
        "DROP POLICY IF EXISTS faqs_account_isolation ON faqs",
        "ALTER TABLE faqs NO FORCE ROW LEVEL SECURITY",
        "ALTER TABLE faqs DISABLE ROW LEVEL SECURITY",
    ]


def load_revision(filename):
    path = Path(__file__).resolve().parents[1] / "alembic" / "versions" / filename
    spec = importlib.util.spec_from_file_location(path.stem, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_migrations_isolate_every_protected_table():
    isolation = load_revision("0002_account_isolation.py")
    logs = load_revision("0003_task_and_ai_logs.py")
    assert set(isolation.TENANT_TABLES) | set(logs.INDEXES) == set(PROTECTED_TABLES)
    assert all("account_id" in columns for columns in logs.INDEXES.values())
