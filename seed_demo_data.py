import argparse
import logging
import uuid
from datetime import datetime, timedelta

from rambley_api.app import models
from rambley_api.app.auth import hash_password
from rambley_api.app.database import SessionLocal, tenant_session
from rambley_api.app.logging_config import configure_logging
from rambley_api.app.tenant_context import TenantIdentity

PREFIX = "demo-"
DEMO_PASSWORD = "demo-password"

logger = logging.getLogger("seed_demo_data")

DEMO_ACCOUNTS = [
    {
        "name": "Demo Lakeside Rentals",
        "slug": f"{PREFIX}lakeside",
        "email": "host@lakeside.example.com",
        "properties": [("Lake Cabin", "12 Shore Rd"), ("Boat House", "14 Shore Rd")],
        "bookings": [(1001, "Ada Lovelace", "+15550001001")],
    },
    {
        "name": "Demo City Lofts",
        "slug": f"{PREFIX}citylofts",
        "email": "host@citylofts.example.com",
        "properties": [("Loft 3B", "200 Main St")],
        "bookings": [(2001, "Grace Hopper", "+15550002001")],
    },
]
HOST_NUMBER = "+15559990000"


def _seed_account(demo) -> None:
    with SessionLocal() as db:
        account = models.Account(name=demo["name"], slug=demo["slug"], subscription_tier="pro")
        db.add(account)
        db.flush()
        user = models.User(
            account_id=account.id,
            email=demo["email"],
            password_hash=hash_password(DEMO_PASSWORD),
            first_name="Demo",
            last_name="Host",
            role="admin",
        )
        db.add(user)
        db.commit()
        account_id = account.id

    # Tenant rows go through the same context the API uses, so the
    # policies' WITH CHECK clause validates every insert.
    now = datetime.utcnow()
    with tenant_session(TenantIdentity(account_id=account_id)) as db:
        for name, address in demo["properties"]:
            db.add(models.Property(account_id=account_id, name=name, address=address))
        for booking_id, guest, phone in demo["bookings"]:
            db.add(models.Booking(account_id=account_id, booking_id=booking_id, guest=guest, phone=phone, nights=3))
            for minutes_ago, body, direction in [
                (90, "Hi! What time is check-in?", "Inbound"),
                (88, "Check-in is from 4 PM. The door code arrives on the day.", "Outbound"),
                (5, "Thanks, see you soon!", "Inbound"),
            ]:
                inbound = direction == "Inbound"
                db.add(
                    models.MessageLog(
                        account_id=account_id,
                        message_uuid=str(uuid.uuid4()),
                        timestamp=now - timedelta(minutes=minutes_ago),
                        from_number=phone if inbound else HOST_NUMBER,
                        to_number=HOST_NUMBER if inbound else phone,
                        message_body=body,
                        message_type=direction,
                        requestor_role=None if inbound else "ai",
                        booking_id=str(booking_id),
                    )
                )
        db.add(
            models.Faq(
                account_id=account_id,
                question="Is parking available?",
                answer="Yes, one free spot per booking.",
                answer_type="host",
            )
        )
        db.commit()
    logger.info("Seeded %s (account_id=%s)", demo["slug"], account_id)


def seed_data() -> None:
    for demo in DEMO_ACCOUNTS:
        _seed_account(demo)


def clear_data() -> None:
    with SessionLocal() as db:
        # accounts(id) cascades to users and every tenant table
        removed = (
            db.query(models.Account)
            .filter(models.Account.slug.like(f"{PREFIX}%"))
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info("Removed %d demo accounts", removed)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed or clear demo tenants")
    parser.add_argument("--clear", action="store_true", help="Remove demo accounts")
    args = parser.parse_args()

    configure_logging("INFO")
    if args.clear:
        clear_data()
        print("Demo data removed")
    else:
        seed_data()
        print(f"Demo data inserted (password: {DEMO_PASSWORD})")
