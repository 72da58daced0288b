import logging
import os
from datetime import datetime, timedelta

from alembic import command
from alembic.config import Config
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import auth, config, crud, dependencies, schemas
from .dependencies import get_tenant_db, require_account_id
from .logging_config import configure_logging
from .tenant_context import TenantIdentity, read_tenant_context

configure_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
app = FastAPI(title="Rambley API")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

FAILED_ATTEMPTS: dict[str, dict] = {}
MAX_FAILURES = 5
LOCK_WINDOW = timedelta(minutes=15)


def _user_locked(email: str) -> bool:
    entry = FAILED_ATTEMPTS.get(email)
    if not entry:
        return False
    locked_until = entry.get("locked_until")
    return locked_until is not None and locked_until > datetime.utcnow()


def _record_failure(email: str) -> None:
    now = datetime.utcnow()
    entry = FAILED_ATTEMPTS.get(email)
    if not entry or now - entry.get("first_fail", now) > LOCK_WINDOW:
        entry = {"count": 1, "first_fail": now}
    else:
        entry["count"] = entry.get("count", 0) + 1
    if entry["count"] >= MAX_FAILURES:
        entry["locked_until"] = now + LOCK_WINDOW
        logger.warning("Login locked for %s after %d failures", email, entry["count"])
    FAILED_ATTEMPTS[email] = entry


def _clear_failures(email: str) -> None:
    FAILED_ATTEMPTS.pop(email, None)


def run_migrations():
    base_dir = os.path.dirname(os.path.dirname(__file__))
    cfg = Config(os.path.join(base_dir, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(base_dir, "alembic"))
    command.upgrade(cfg, "head")


@app.on_event("startup")
def apply_migrations() -> None:
    if config.RUN_MIGRATIONS_ON_STARTUP:
        run_migrations()


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/auth/login", response_model=schemas.TokenPair)
@limiter.limit(config.LOGIN_RATE_LIMIT)
def login(data: schemas.LoginRequest, request: Request, db: Session = Depends(auth.get_db)):
    if _user_locked(data.email):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many failed attempts",
        )
    user = auth.authenticate_user(db, data.email, data.password)
    if not user:
        _record_failure(data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect credentials"
        )

    _clear_failures(data.email)
    crud.record_login(db, user)
    logger.info("User %s logged in (account_id=%s)", user.id, user.account_id)
    return {
        "access_token": auth.create_access_token(user),
        "refresh_token": auth.create_refresh_token(user.id),
        "token_type": "bearer",
    }


@app.post("/auth/refresh", response_model=schemas.Token)
def refresh_token(data: schemas.RefreshRequest, db: Session = Depends(auth.get_db)):
    payload = auth.verify_refresh_token(data.refresh_token)
    user = crud.get_user(db, int(payload["sub"]))
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return {"access_token": auth.create_access_token(user), "token_type": "bearer"}


@app.get("/users/me", response_model=schemas.User)
def read_current_user(
    identity: TenantIdentity = Depends(auth.get_current_identity),
    db: Session = Depends(get_tenant_db),
):
    user = crud.get_current_user(db, identity.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@app.get("/api/tenant-context", response_model=schemas.TenantContext)
def tenant_context(db: Session = Depends(get_tenant_db)):
    return read_tenant_context(db.connection())


@app.get("/api/messages", response_model=schemas.ConversationList)
def list_conversations(
    search: str | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_tenant_db),
):
    """Conversations grouped by booking, newest activity first."""
    data = crud.get_conversations(db, search.strip() if search else None, limit)
    return {"success": True, "data": data, "count": len(data)}


@app.get("/api/messages/{conversation_id}", response_model=schemas.ConversationDetail)
def read_conversation(
    conversation_id: str,
    limit: int = Query(500, ge=1, le=1000),
    db: Session = Depends(get_tenant_db),
):
    conversation_id = conversation_id.strip()
    if not conversation_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Conversation ID is required")
    try:
        conversation = crud.get_conversation(db, conversation_id, limit)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return {"success": True, "data": conversation}


@app.get("/api/properties", response_model=list[schemas.Property])
def read_properties(db: Session = Depends(get_tenant_db)):
    return crud.get_properties(db)


@app.post("/api/properties", response_model=schemas.Property, status_code=201)
def create_property(
    prop: schemas.PropertyCreate,
    account_id: int = Depends(require_account_id),
    db: Session = Depends(get_tenant_db),
):
    try:
        return crud.create_property(db, account_id, prop)
    except IntegrityError as exc:
        db.rollback()
        raise dependencies.http_error_for(exc)


def _property_or_404(db: Session, property_id: int):
    prop = crud.get_property(db, property_id)
    if prop is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found")
    return prop


@app.get("/api/properties/{property_id}", response_model=schemas.Property)
def read_property(property_id: int, db: Session = Depends(get_tenant_db)):
    return _property_or_404(db, property_id)


@app.put("/api/properties/{property_id}", response_model=schemas.Property)
def update_property(
    property_id: int,
    data: schemas.PropertyUpdate,
    db: Session = Depends(get_tenant_db),
):
    prop = _property_or_404(db, property_id)
    try:
        return crud.update_property(db, prop, data)
    except IntegrityError as exc:
        db.rollback()
        raise dependencies.http_error_for(exc)


@app.delete("/api/properties/{property_id}", response_model=schemas.Message)
def delete_property(property_id: int, db: Session = Depends(get_tenant_db)):
    prop = _property_or_404(db, property_id)
    try:
        crud.delete_property(db, prop)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"message": "Property deleted successfully"}


@app.get("/api/contacts", response_model=list[schemas.Contact])
def read_contacts(db: Session = Depends(get_tenant_db)):
    return crud.get_contacts(db)


@app.post("/api/contacts", response_model=schemas.Contact, status_code=201)
def create_contact(
    contact: schemas.ContactCreate,
    account_id: int = Depends(require_account_id),
    db: Session = Depends(get_tenant_db),
):
    try:
        return crud.create_contact(db, account_id, contact)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except IntegrityError as exc:
        db.rollback()
        raise dependencies.http_error_for(exc)


@app.get("/api/faqs", response_model=list[schemas.Faq])
def read_faqs(property_id: int | None = None, db: Session = Depends(get_tenant_db)):
    return crud.get_faqs(db, property_id)


@app.post("/api/faqs", response_model=schemas.Faq, status_code=201)
def create_faq(
    faq: schemas.FaqCreate,
    identity: TenantIdentity = Depends(auth.get_current_identity),
    account_id: int = Depends(require_account_id),
    db: Session = Depends(get_tenant_db),
):
    try:
        return crud.create_faq(db, account_id, identity.user_id, faq)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except IntegrityError as exc:
        db.rollback()
        raise dependencies.http_error_for(exc)


@app.get("/api/task-log", response_model=schemas.TaskLogList)
def list_task_logs(
    status_filter: bool | None = Query(None, alias="status"),
    sub_category: str | None = None,
    property_id: int | None = Query(None, ge=1),
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_tenant_db),
):
    tasks, total = crud.get_task_logs(
        db, status_filter, sub_category, property_id, search.strip() if search else None, page, limit
    )
    return {"data": tasks, "total": total, "page": page, "limit": limit}


@app.get("/api/task-log/{task_id}", response_model=schemas.TaskLog)
def read_task_log(task_id: int, db: Session = Depends(get_tenant_db)):
    task = crud.get_task_log(db, task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


@app.put("/api/task-log/{task_id}", response_model=schemas.TaskLog)
def update_task_log(
    task_id: int,
    data: schemas.TaskLogUpdate,
    db: Session = Depends(get_tenant_db),
):
    task = crud.get_task_log(db, task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    try:
        return crud.update_task_log(db, task, data)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except IntegrityError as exc:
        db.rollback()
        raise dependencies.http_error_for(exc)


@app.get("/api/ai-log", response_model=schemas.AiLogList)
def list_ai_logs(
    sentiment: str | None = None,
    status_filter: str | None = Query(None, alias="status"),
    property_id: int | None = Query(None, ge=1),
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_tenant_db),
):
    logs, total = crud.get_ai_logs(
        db, sentiment, status_filter, property_id, search.strip() if search else None, page, limit
    )
    return {"data": logs, "total": total, "page": page, "limit": limit}


@app.get("/api/ai-log/{log_id}", response_model=schemas.AiLog)
def read_ai_log(log_id: int, db: Session = Depends(get_tenant_db)):
    log = crud.get_ai_log(db, log_id)
    if log is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="AI log not found")
    return log
