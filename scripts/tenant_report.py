"""Show what a given identity can see through the account isolation policies.

    python -m scripts.tenant_report --user-id 7
    python -m scripts.tenant_report --account-id 3 --user-id 7
"""

import argparse
import sys

from sqlalchemy import text

from rambley_api.app import models
from rambley_api.app.database import SessionLocal, tenant_connection
from rambley_api.app.logging_config import configure_logging
from rambley_api.app.policies import PROTECTED_TABLES, account_predicate
from rambley_api.app.tenant_context import TenantIdentity, effective_account_id, read_tenant_context


def lookup_user_account(user_id: int):
    with SessionLocal() as db:
        user = db.get(models.User, user_id)
        return user.account_id if user else None


def report(account_id, user_id) -> int:
    resolved = effective_account_id(
        None if account_id is None else str(account_id),
        None if user_id is None else str(user_id),
        lookup_user_account,
    )
    print(f"identity: account_id={account_id} user_id={user_id}")
    print(f"effective account (computed here): {resolved}")
    if resolved is None:
        print("no account resolves; every protected table reads as empty")
        return 1

    with tenant_connection(TenantIdentity(account_id=account_id, user_id=user_id)) as conn:
        seen = read_tenant_context(conn)
        print(f"effective account (database):      {seen['effective_account_id']}")
        for table in PROTECTED_TABLES:
            count = conn.execute(text(f"SELECT COUNT(*) FROM {table} WHERE {account_predicate()}")).scalar()
            print(f"  {table:<28} {count}")
    return 0 if seen["effective_account_id"] == resolved else 2


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--account-id", type=int)
    parser.add_argument("--user-id", type=int)
    args = parser.parse_args(argv)

    configure_logging("WARNING")
    return report(args.account_id, args.user_id)


if __name__ == "__main__":
    sys.exit(main())
