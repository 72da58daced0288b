from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from .database import Base


class Account(Base):
    """A tenant. Owns every protected row."""

    __tablename__ = "accounts"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    subscription_tier = Column(String(50), default="basic")
    max_properties = Column(Integer, default=10)
    max_contacts = Column(Integer, default=100)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="account")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    role = Column(String(50), default="user")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_login = Column(DateTime)

    account = relationship("Account", back_populates="users")


class Property(Base):
    __tablename__ = "properties"
    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text)
    description = Column(Text)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Contact(Base):
    """Service provider (cleaner, plumber, ...) working for an account."""

    __tablename__ = "contacts"
    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    service_type = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False)
    preferred_language = Column(String(10), default="en")
    notes = Column(Text)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    locations = relationship("ContactServiceLocation", back_populates="contact", cascade="all, delete-orphan")

    @property
    def property_ids(self):
        return sorted(loc.property_id for loc in self.locations)


class ContactServiceLocation(Base):
    """Which properties a contact serves. Scoped through the contact."""

    __tablename__ = "contact_service_locations"
    __table_args__ = (UniqueConstraint("contact_id", "property_id"),)
    id = Column(Integer, primary_key=True)
    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    contact = relationship("Contact", back_populates="locations")


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = Column(Integer, index=True)
    property_id = Column(Integer)
    confirmation_code = Column(String(100))
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    nights = Column(Integer)
    guest = Column(String(255))
    listing = Column(String(500))
    phone = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)


class MessageLog(Base):
    """One SMS in or out. Conversations are grouped by ``booking_id``."""

    __tablename__ = "message_log"
    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    message_uuid = Column(String(255), nullable=False, index=True)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)
    from_number = Column(String(50))
    to_number = Column(String(50))
    message_body = Column(Text)
    image_url = Column(Text)
    message_type = Column(String(50), default="Outbound")
    requestor_role = Column(String(50))
    booking_id = Column(String(255), index=True)
    ai_enrichment_uuid = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)


class Faq(Base):
    __tablename__ = "faqs"
    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text)
    answer_type = Column(String(20), default="unanswered")
    confidence = Column(Numeric(3, 2), default=0)
    ask_count = Column(Integer, default=0)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class TaskLog(Base):
    """Work handed to staff for a guest request."""

    __tablename__ = "task_log"
    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    task_uuid = Column(String(255), index=True)
    created_date = Column(DateTime)
    phone = Column(String(50))
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), index=True)
    guest_message = Column(Text)
    sub_category = Column(String(100))
    staff_id = Column(Integer, ForeignKey("contacts.id", ondelete="SET NULL"))
    staff_phone = Column(String(50))
    requirements_to_complete_task = Column(Text)
    ai_message_response = Column(Text)
    status = Column(Boolean, default=False)
    escalated_to_host = Column(Text)
    response_received = Column(Boolean, default=False)
    guest_notified = Column(Boolean, default=False)
    host_escalated = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AiLog(Base):
    """One AI evaluation of an inbound message and the reply it drafted."""

    __tablename__ = "ai_log"
    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    uuid = Column(String(255), index=True)
    recipient_type = Column(String(50))
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), index=True)
    to_recipient = Column(String(50))
    message = Column(Text)
    language = Column(String(10))
    tone = Column(String(50))
    sentiment = Column(String(50))
    urgency_indicators = Column(String(50))
    sub_category = Column(String(100))
    escalation_risk_indicators = Column(String(50))
    ai_message_response = Column(Text)
    status = Column(String(50))
    task_created = Column(Boolean, default=False)
    task_uuid = Column(String(255))
    execution_timestamp = Column(DateTime, default=datetime.utcnow, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
