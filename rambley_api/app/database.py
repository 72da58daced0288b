import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from . import config
from .tenant_context import TenantIdentity, clear_tenant_context, set_tenant_context

logger = logging.getLogger(__name__)


def build_engine(url: str = config.DATABASE_URL, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        return create_engine(url, **kwargs)
    return create_engine(
        url,
        pool_size=kwargs.pop("pool_size", config.DB_POOL_SIZE),
        max_overflow=kwargs.pop("max_overflow", 0),
        pool_timeout=kwargs.pop("pool_timeout", config.DB_POOL_TIMEOUT),
        pool_recycle=kwargs.pop("pool_recycle", config.DB_POOL_RECYCLE),
        pool_pre_ping=True,
        **kwargs,
    )


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_engine() -> Engine:
    return engine


def _release(conn: Connection) -> None:
    """Blank the tenant context and hand ``conn`` back to the pool.

    Uncommitted work is rolled back first so the clearing commit cannot
    publish it. A connection whose context cannot be cleared is invalidated
    and never reused.
    """
    try:
        conn.rollback()
        clear_tenant_context(conn)
    except SQLAlchemyError:
        logger.exception("Could not clear tenant context, discarding connection")
        conn.invalidate()
    finally:
        conn.close()


@contextmanager
def tenant_connection(identity: TenantIdentity, bind: Optional[Engine] = None) -> Iterator[Connection]:
    """Check out one connection with ``identity`` applied to it.

    Context and queries share the same physical connection, and the
    connection is released on every exit path, including generator close
    when a request is cancelled.
    """
    conn = (bind or engine).connect()
    try:
        set_tenant_context(conn, identity)
        yield conn
    finally:
        _release(conn)


@contextmanager
def tenant_session(identity: TenantIdentity, bind: Optional[Engine] = None) -> Iterator[Session]:
    with tenant_connection(identity, bind) as conn:
        db = Session(bind=conn, autoflush=False)
        try:
            yield db
        finally:
            db.close()
