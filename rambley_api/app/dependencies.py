import logging
from typing import Iterator

from fastapi import Depends, HTTPException, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import auth, database
from .tenant_context import TenantIdentity, resolve_effective_account_id

logger = logging.getLogger(__name__)

# SQLSTATE codes mapped the way clients expect them.
_INTEGRITY_ERRORS = {
    '23505': (status.HTTP_409_CONFLICT, 'Record already exists'),
    '23503': (status.HTTP_400_BAD_REQUEST, 'Referenced record not found'),
    '23502': (status.HTTP_400_BAD_REQUEST, 'Required field missing'),
}
# SQLite reports the same violations only through the message text.
_SQLITE_MARKERS = {
    'UNIQUE constraint failed': '23505',
    'FOREIGN KEY constraint failed': '23503',
    'NOT NULL constraint failed': '23502',
}


def get_tenant_db(
    identity: TenantIdentity = Depends(auth.get_current_identity),
    bind: Engine = Depends(database.get_engine),
) -> Iterator[Session]:
    """Session on a connection carrying the caller's tenant context.

    HTTP and request validation errors pass through. Any other failure while
    setting the context or inside the route is logged and reported as a bare
    500; the connection goes back to the pool either way.
    """
    try:
        with database.tenant_session(identity, bind) as db:
            yield db
    except (HTTPException, RequestValidationError):
        raise
    except Exception:
        logger.exception(
            'Tenant-scoped request failed (account_id=%s, user_id=%s)',
            identity.account_id,
            identity.user_id,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Internal server error',
        )


def require_account_id(db: Session = Depends(get_tenant_db)) -> int:
    """Effective account for writes; 403 when the context resolves to none."""
    account_id = resolve_effective_account_id(db.connection())
    if account_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='No account context')
    return account_id


def http_error_for(exc: IntegrityError) -> HTTPException:
    code = getattr(exc.orig, 'pgcode', None)
    if code is None:
        message = str(exc.orig)
        code = next((c for marker, c in _SQLITE_MARKERS.items() if marker in message), None)
    status_code, detail = _INTEGRITY_ERRORS.get(
        code, (status.HTTP_400_BAD_REQUEST, 'Invalid data')
    )
    return HTTPException(status_code=status_code, detail=detail)
