from datetime import datetime

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from . import conversations, models, schemas
from .tenant_context import account_scope

# Every tenant query repeats the policy predicate explicitly, so a session
# whose role bypasses RLS still only sees the effective account.


def get_user(db: Session, user_id: int) -> models.User | None:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == email).first()


def record_login(db: Session, user: models.User) -> None:
    user.last_login = datetime.utcnow()
    db.commit()


def get_current_user(db: Session, user_id: int | None) -> models.User | None:
    if user_id is None:
        return None
    return (
        db.query(models.User)
        .filter(models.User.id == user_id, account_scope(models.User.account_id))
        .first()
    )


def get_properties(db: Session) -> list[models.Property]:
    return (
        db.query(models.Property)
        .filter(account_scope(models.Property.account_id), models.Property.is_active.is_(True))
        .order_by(models.Property.name)
        .all()
    )


def create_property(db: Session, account_id: int, data: schemas.PropertyCreate) -> models.Property:
    prop = models.Property(
        account_id=account_id,
        name=data.name,
        address=data.address,
        description=data.description,
    )
    db.add(prop)
    db.commit()
    db.refresh(prop)
    return prop


def get_property(db: Session, property_id: int) -> models.Property | None:
    return (
        db.query(models.Property)
        .filter(
            models.Property.id == property_id,
            account_scope(models.Property.account_id),
            models.Property.is_active.is_(True),
        )
        .first()
    )


def update_property(db: Session, prop: models.Property, data: schemas.PropertyUpdate) -> models.Property:
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(prop, field, value)
    db.commit()
    db.refresh(prop)
    return prop


def delete_property(db: Session, prop: models.Property) -> None:
    """Soft delete; refused while active contacts still serve the property."""
    contact_count = (
        db.query(models.ContactServiceLocation)
        .join(models.Contact)
        .filter(
            models.ContactServiceLocation.property_id == prop.id,
            models.Contact.is_active.is_(True),
            account_scope(models.Contact.account_id),
        )
        .count()
    )
    if contact_count:
        raise ValueError(
            f"Cannot delete property. It is currently assigned to {contact_count} active contact(s)."
        )
    prop.is_active = False
    db.commit()


def get_contacts(db: Session) -> list[models.Contact]:
    return (
        db.query(models.Contact)
        .filter(account_scope(models.Contact.account_id), models.Contact.is_active.is_(True))
        .order_by(models.Contact.name)
        .all()
    )


def _check_properties_visible(db: Session, property_ids: set[int]) -> None:
    # Foreign keys ignore row-level security, so cross-tenant ids must be
    # rejected here.
    if not property_ids:
        return
    visible = {
        pid
        for (pid,) in db.query(models.Property.id).filter(
            models.Property.id.in_(property_ids),
            account_scope(models.Property.account_id),
        )
    }
    missing = property_ids - visible
    if missing:
        raise ValueError(f"Unknown property ids: {sorted(missing)}")


def create_contact(db: Session, account_id: int, data: schemas.ContactCreate) -> models.Contact:
    property_ids = set(data.property_ids)
    _check_properties_visible(db, property_ids)

    contact = models.Contact(
        account_id=account_id,
        name=data.name,
        service_type=data.service_type,
        phone=data.phone,
        email=data.email,
        preferred_language=data.preferred_language,
        notes=data.notes,
    )
    contact.locations = [
        models.ContactServiceLocation(property_id=pid) for pid in sorted(property_ids)
    ]
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def get_faqs(db: Session, property_id: int | None = None) -> list[models.Faq]:
    query = db.query(models.Faq).filter(
        account_scope(models.Faq.account_id), models.Faq.is_active.is_(True)
    )
    if property_id is not None:
        query = query.filter(models.Faq.property_id == property_id)
    return query.order_by(models.Faq.ask_count.desc(), models.Faq.id).all()


def create_faq(
    db: Session, account_id: int, user_id: int | None, data: schemas.FaqCreate
) -> models.Faq:
    if data.property_id is not None:
        _check_properties_visible(db, {data.property_id})
    faq = models.Faq(
        account_id=account_id,
        property_id=data.property_id,
        question=data.question,
        answer=data.answer,
        answer_type="host" if data.answer else "unanswered",
        created_by=user_id,
    )
    db.add(faq)
    db.commit()
    db.refresh(faq)
    return faq


def _guest_names(db: Session, booking_ids) -> dict[str, str]:
    numeric = {int(b) for b in booking_ids if b and b.isdigit()}
    if not numeric:
        return {}
    rows = db.query(models.Booking.booking_id, models.Booking.guest).filter(
        models.Booking.booking_id.in_(numeric),
        account_scope(models.Booking.account_id),
    )
    return {str(booking_id): guest for booking_id, guest in rows if guest}


def get_conversations(db: Session, search: str | None = None, limit: int = 50) -> list[dict]:
    """Latest message of each conversation, newest conversation first."""
    query = db.query(models.MessageLog).filter(account_scope(models.MessageLog.account_id))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                models.MessageLog.message_body.ilike(pattern),
                models.MessageLog.from_number.ilike(pattern),
                models.MessageLog.to_number.ilike(pattern),
                models.MessageLog.booking_id.ilike(pattern),
            )
        )

    latest: dict[str, models.MessageLog] = {}
    for msg in query.order_by(models.MessageLog.timestamp.desc(), models.MessageLog.id.desc()):
        key = conversations.conversation_key(msg.booking_id, msg.from_number, msg.to_number)
        if key not in latest:
            latest[key] = msg
            if len(latest) >= limit:
                break

    names = _guest_names(db, [m.booking_id for m in latest.values()])
    return [
        conversations.transform_conversation(key, [msg], names.get(msg.booking_id or ""))
        for key, msg in latest.items()
    ]


def get_conversation(db: Session, conversation_id: str, limit: int = 500) -> dict | None:
    """Most recent ``limit`` messages of one conversation, oldest first.

    Raises ValueError for a malformed ``no_booking_`` id.
    """
    query = db.query(models.MessageLog).filter(account_scope(models.MessageLog.account_id))
    if conversation_id.startswith(conversations.NO_BOOKING_PREFIX):
        phone1, phone2 = conversations.parse_no_booking_key(conversation_id)
        query = query.filter(
            models.MessageLog.booking_id.is_(None),
            or_(
                and_(models.MessageLog.from_number == phone1, models.MessageLog.to_number == phone2),
                and_(models.MessageLog.from_number == phone2, models.MessageLog.to_number == phone1),
            ),
        )
    else:
        query = query.filter(models.MessageLog.booking_id == conversation_id)

    messages = (
        query.order_by(models.MessageLog.timestamp.desc(), models.MessageLog.id.desc())
        .limit(limit)
        .all()
    )
    if not messages:
        return None
    messages.reverse()

    booking_id = messages[-1].booking_id
    names = _guest_names(db, [booking_id])
    return conversations.transform_conversation(
        booking_id or conversation_id, messages, names.get(booking_id or "")
    )


def _check_contact_visible(db: Session, contact_id: int) -> None:
    visible = (
        db.query(models.Contact.id)
        .filter(models.Contact.id == contact_id, account_scope(models.Contact.account_id))
        .first()
    )
    if visible is None:
        raise ValueError(f"Unknown staff id: {contact_id}")


def get_task_logs(
    db: Session,
    status: bool | None = None,
    sub_category: str | None = None,
    property_id: int | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[models.TaskLog], int]:
    query = db.query(models.TaskLog).filter(account_scope(models.TaskLog.account_id))
    if status is not None:
        query = query.filter(models.TaskLog.status.is_(status))
    if sub_category:
        query = query.filter(models.TaskLog.sub_category == sub_category)
    if property_id is not None:
        query = query.filter(models.TaskLog.property_id == property_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                models.TaskLog.guest_message.ilike(pattern),
                models.TaskLog.phone.ilike(pattern),
                models.TaskLog.task_uuid.ilike(pattern),
            )
        )
    total = query.count()
    tasks = (
        query.order_by(models.TaskLog.created_date.desc(), models.TaskLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return tasks, total


def get_task_log(db: Session, task_id: int) -> models.TaskLog | None:
    return (
        db.query(models.TaskLog)
        .filter(models.TaskLog.id == task_id, account_scope(models.TaskLog.account_id))
        .first()
    )


def update_task_log(db: Session, task: models.TaskLog, data: schemas.TaskLogUpdate) -> models.TaskLog:
    changes = data.model_dump(exclude_unset=True)
    if changes.get("property_id") is not None:
        _check_properties_visible(db, {changes["property_id"]})
    if changes.get("staff_id") is not None:
        _check_contact_visible(db, changes["staff_id"])
    for field, value in changes.items():
        setattr(task, field, value)
    db.commit()
    db.refresh(task)
    return task


def get_ai_logs(
    db: Session,
    sentiment: str | None = None,
    status: str | None = None,
    property_id: int | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[models.AiLog], int]:
    query = db.query(models.AiLog).filter(account_scope(models.AiLog.account_id))
    if sentiment:
        query = query.filter(models.AiLog.sentiment == sentiment)
    if status:
        query = query.filter(models.AiLog.status == status)
    if property_id is not None:
        query = query.filter(models.AiLog.property_id == property_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                models.AiLog.message.ilike(pattern),
                models.AiLog.ai_message_response.ilike(pattern),
            )
        )
    total = query.count()
    logs = (
        query.order_by(models.AiLog.execution_timestamp.desc(), models.AiLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return logs, total


def get_ai_log(db: Session, log_id: int) -> models.AiLog | None:
    return (
        db.query(models.AiLog)
        .filter(models.AiLog.id == log_id, account_scope(models.AiLog.account_id))
        .first()
    )
