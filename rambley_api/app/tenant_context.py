"""Per-connection tenant identity for row-level security.

Every tenant table carries a policy that compares ``account_id`` with the
effective account id computed from two PostgreSQL settings:

* ``app.current_account_id`` - explicit account override
* ``app.current_user_id`` - the caller; ``users.account_id`` is the fallback

The settings are written with ``set_config(name, value, false)`` and then
committed. A non-local ``set_config`` issued inside a transaction that is
later rolled back is undone by PostgreSQL, so the commit is what makes the
context last for the whole checkout. The values stay on the physical
connection until :func:`clear_tenant_context` blanks them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from sqlalchemy import literal_column, text
from sqlalchemy.engine import Connection

logger = logging.getLogger(__name__)

ACCOUNT_SETTING = "app.current_account_id"
USER_SETTING = "app.current_user_id"

# users.id never takes this value, so an unset user resolves to no account.
NO_USER_SENTINEL = 0

EFFECTIVE_ACCOUNT_ID_SQL = (
    "COALESCE("
    "CAST(NULLIF(current_setting('app.current_account_id', true), '') AS INTEGER), "
    "(SELECT account_id FROM users WHERE id = COALESCE("
    "CAST(NULLIF(current_setting('app.current_user_id', true), '') AS INTEGER), 0)))"
)

_SET_CONFIG = text("SELECT set_config(:name, :value, :is_local)")
_READ_CONTEXT = text(
    "SELECT current_setting('app.current_account_id', true) AS account_id, "
    "current_setting('app.current_user_id', true) AS user_id, "
    f"{EFFECTIVE_ACCOUNT_ID_SQL} AS effective_account_id"
)
_RESOLVE = text(f"SELECT {EFFECTIVE_ACCOUNT_ID_SQL}")


def _coerce_id(value: Any, claim: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        logger.warning("Ignoring boolean %s claim", claim)
        return None
    try:
        parsed = int(str(value).strip())
    except ValueError:
        logger.warning("Ignoring non-numeric %s claim: %r", claim, value)
        return None
    if parsed <= 0:
        logger.warning("Ignoring non-positive %s claim: %r", claim, value)
        return None
    return parsed


@dataclass(frozen=True)
class TenantIdentity:
    """Who is asking: an optional account override and the calling user."""

    account_id: Optional[int] = None
    user_id: Optional[int] = None

    @property
    def is_anonymous(self) -> bool:
        return self.account_id is None and self.user_id is None

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "TenantIdentity":
        return cls(
            account_id=_coerce_id(claims.get("account_id"), "account_id"),
            user_id=_coerce_id(claims.get("sub"), "sub"),
        )


def _setting_value(value: Optional[int]) -> str:
    return "" if value is None else str(value)


def _write_settings(conn: Connection, account_id: Optional[int], user_id: Optional[int]) -> None:
    conn.execute(
        _SET_CONFIG,
        {"name": ACCOUNT_SETTING, "value": _setting_value(account_id), "is_local": False},
    )
    conn.execute(
        _SET_CONFIG,
        {"name": USER_SETTING, "value": _setting_value(user_id), "is_local": False},
    )
    conn.commit()


def set_tenant_context(conn: Connection, identity: TenantIdentity) -> bool:
    """Apply ``identity`` to ``conn`` for the rest of the checkout.

    An anonymous identity blanks both settings instead, so the policies see
    no tenant and fail closed. Returns True when an identity was applied.
    """
    if identity.is_anonymous:
        logger.debug("No tenant identity on request, blanking session context")
        _write_settings(conn, None, None)
        return False
    _write_settings(conn, identity.account_id, identity.user_id)
    logger.debug(
        "Tenant context set: account_id=%s user_id=%s",
        identity.account_id,
        identity.user_id,
    )
    return True


def clear_tenant_context(conn: Connection) -> None:
    _write_settings(conn, None, None)


def read_tenant_context(conn: Connection) -> dict:
    """Return the raw settings and resolved account visible on ``conn``."""
    row = conn.execute(_READ_CONTEXT).mappings().one()
    return {
        "account_id": row["account_id"],
        "user_id": row["user_id"],
        "effective_account_id": row["effective_account_id"],
    }


def resolve_effective_account_id(conn: Connection) -> Optional[int]:
    return conn.execute(_RESOLVE).scalar()


def account_scope(column):
    """Filter clause restricting ``column`` to the effective account."""
    return column == literal_column(f"({EFFECTIVE_ACCOUNT_ID_SQL})")


def _parse_setting(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    value = str(value)
    if value == "":
        return None
    return int(value)


def effective_account_id(
    account_setting: Optional[str],
    user_setting: Optional[str],
    lookup_user_account: Callable[[int], Optional[int]],
) -> Optional[int]:
    """Resolve the effective account the same way the RLS policies do.

    ``lookup_user_account`` maps a user id to its ``account_id`` (or None).
    Unparseable settings resolve to None rather than falling through, since
    the policy cast would reject them too. A None result means "no rows".
    """
    try:
        account_id = _parse_setting(account_setting)
        user_id = _parse_setting(user_setting)
    except ValueError:
        logger.warning(
            "Unparseable tenant settings: account=%r user=%r",
            account_setting,
            user_setting,
        )
        return None
    if account_id is not None:
        return account_id
    return lookup_user_account(NO_USER_SENTINEL if user_id is None else user_id)
