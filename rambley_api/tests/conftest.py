import os

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "0")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rambley_api.app import auth, config, models
from rambley_api.app.database import Base, get_engine
from rambley_api.app.main import app, FAILED_ATTEMPTS


def register_session_settings(dbapi_conn, connection_record):
    """Give a SQLite connection PostgreSQL's set_config/current_setting.

    Values live on the DBAPI connection, like session GUCs do on a backend.
    """
    settings = {}

    def set_config(name, value, is_local):
        settings[name] = value
        return value

    def current_setting(name, missing_ok):
        if name not in settings:
            if missing_ok:
                return None
            raise ValueError(f"unrecognized configuration parameter {name}")
        return settings[name]

    dbapi_conn.create_function("set_config", 3, set_config)
    dbapi_conn.create_function("current_setting", 2, current_setting)


def make_engine(url="sqlite://", **kwargs):
    if url == "sqlite://":
        # one physical connection: every checkout reuses it
        kwargs.setdefault("poolclass", StaticPool)
    engine = create_engine(url, connect_args={"check_same_thread": False}, **kwargs)
    event.listen(engine, "connect", register_session_settings)
    Base.metadata.create_all(engine)
    return engine


def make_token(account_id=None, user_id=None, **claims):
    payload = dict(claims)
    if account_id is not None:
        payload["account_id"] = account_id
    if user_id is not None:
        payload["sub"] = str(user_id)
    payload.setdefault("exp", datetime.now(timezone.utc) + timedelta(minutes=5))
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.ALGORITHM)


def bearer(account_id=None, user_id=None, **claims):
    return {"Authorization": f"Bearer {make_token(account_id, user_id, **claims)}"}


@pytest.fixture
def engine():
    engine = make_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def SessionTesting(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def client(engine, SessionTesting):
    def override_get_db():
        db = SessionTesting()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[auth.get_db] = override_get_db
    FAILED_ATTEMPTS.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def tenants(SessionTesting):
    """Three accounts with disjoint data.

    Account 1 owns booking ``B1``, numeric booking ``1001``, tasks 501 and
    502 and AI log 701; account 2 owns no messages; user 7 belongs to
    account 3, which owns task 601 and AI log 801.
    """
    now = datetime.utcnow()
    with SessionTesting() as db:
        db.add_all([
            models.Account(id=1, name="Lakeside Rentals", slug="lakeside"),
            models.Account(id=2, name="City Lofts", slug="city-lofts"),
            models.Account(id=3, name="Harbor Homes", slug="harbor"),
        ])
        db.add_all([
            models.User(id=1, account_id=1, email="host1@example.com", password_hash=auth.hash_password("pw1"), role="admin"),
            models.User(id=2, account_id=2, email="host2@example.com", password_hash=auth.hash_password("pw2")),
            models.User(id=7, account_id=3, email="host7@example.com", password_hash=auth.hash_password("pw7")),
        ])
        db.add_all([
            models.Property(id=11, account_id=1, name="Lake Cabin"),
            models.Property(id=21, account_id=2, name="Loft 3B"),
            models.Property(id=31, account_id=3, name="Harbor View"),
        ])
        db.add_all([
            models.Booking(account_id=1, booking_id=1001, guest="Ada Lovelace"),
            models.Booking(account_id=3, booking_id=1001, guest="Wrong Tenant Guest"),
        ])
        db.add_all([
            models.MessageLog(
                id=101, account_id=1, message_uuid="m-101", booking_id="B1",
                timestamp=now - timedelta(hours=3), from_number="+1555001", to_number="+1555999",
                message_body="Is early check-in possible?", message_type="Inbound",
            ),
            models.MessageLog(
                id=102, account_id=1, message_uuid="m-102", booking_id="B1",
                timestamp=now - timedelta(hours=2), from_number="+1555999", to_number="+1555001",
                message_body="Yes, from noon.", message_type="Outbound", requestor_role="ai",
            ),
            models.MessageLog(
                id=103, account_id=1, message_uuid="m-103", booking_id="1001",
                timestamp=now - timedelta(minutes=30), from_number="+1555002", to_number="+1555999",
                message_body="Where is the key box?", message_type="Inbound",
            ),
            models.MessageLog(
                id=104, account_id=1, message_uuid="m-104", booking_id=None,
                timestamp=now - timedelta(days=2), from_number="+1555003", to_number="+1555999",
                message_body="Do you have availability in May?", message_type="Inbound",
            ),
            models.MessageLog(
                id=301, account_id=3, message_uuid="m-301", booking_id="H9",
                timestamp=now - timedelta(minutes=10), from_number="+1555777", to_number="+1555888",
                message_body="Harbor guest question", message_type="Inbound",
            ),
        ])
        db.add_all([
            models.Faq(account_id=1, question="Is there parking?", answer="Yes", answer_type="host", ask_count=4),
            models.Faq(account_id=2, question="Pets allowed?", ask_count=1),
        ])
        db.add_all([
            models.TaskLog(
                id=501, account_id=1, task_uuid="t-501", property_id=11, phone="+1555001",
                guest_message="Towels missing", sub_category="housekeeping", created_date=now - timedelta(hours=1),
            ),
            models.TaskLog(
                id=502, account_id=1, task_uuid="t-502", property_id=11, phone="+1555002",
                guest_message="Key box jammed", sub_category="maintenance", status=True,
                created_date=now - timedelta(hours=5),
            ),
            models.TaskLog(
                id=601, account_id=3, task_uuid="t-601", property_id=31,
                guest_message="Harbor task", sub_category="maintenance", created_date=now,
            ),
            models.AiLog(
                id=701, account_id=1, uuid="a-701", property_id=11, message="Is early check-in possible?",
                sentiment="neutral", status="sent", execution_timestamp=now - timedelta(hours=3),
            ),
            models.AiLog(
                id=801, account_id=3, uuid="a-801", property_id=31, message="Harbor question",
                sentiment="negative", status="sent", execution_timestamp=now,
            ),
        ])
        db.commit()
    return {"account_ids": (1, 2, 3), "user_ids": (1, 2, 7)}
