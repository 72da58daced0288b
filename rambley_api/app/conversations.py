"""Shape ``message_log`` rows into the conversation payloads the inbox renders."""

from datetime import datetime
from typing import Iterable, Optional, Sequence

NO_BOOKING_PREFIX = "no_booking_"


def conversation_key(booking_id: Optional[str], from_number: Optional[str], to_number: Optional[str]) -> str:
    """Booking id, or a synthetic id for messages outside any booking."""
    if booking_id:
        return booking_id
    return f"{NO_BOOKING_PREFIX}{from_number or ''}_{to_number or ''}"


def parse_no_booking_key(conversation_id: str) -> tuple[str, str]:
    """Split ``no_booking_<phone1>_<phone2>`` into its two numbers.

    The last underscore separates the numbers. Raises ValueError when the id
    does not carry two parts.
    """
    parts = conversation_id[len(NO_BOOKING_PREFIX):].split("_")
    if len(parts) < 2:
        raise ValueError("Invalid conversation ID format")
    return "_".join(parts[:-1]), parts[-1]


def format_relative_time(timestamp: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    minutes = int((now - timestamp).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"
    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"
    days = hours // 24
    if days == 1:
        return "1 day ago"
    return f"{days} days ago"


def format_clock_time(timestamp: datetime) -> str:
    suffix = "AM" if timestamp.hour < 12 else "PM"
    return f"{timestamp.hour % 12 or 12}:{timestamp.minute:02d} {suffix}"


def extract_phone_number(messages: Iterable) -> str:
    """The guest's number: sender of the first inbound message if any."""
    messages = list(messages)
    for msg in messages:
        if msg.message_type == "Inbound" and msg.from_number:
            return msg.from_number
    for msg in messages:
        if msg.from_number or msg.to_number:
            return msg.from_number or msg.to_number
    return "Phone not available"


def transform_message(msg) -> dict:
    return {
        "id": msg.id,
        "text": msg.message_body or "",
        "sender": "guest" if msg.message_type == "Inbound" else "host",
        "senderType": "rambley" if msg.requestor_role == "ai" else "host",
        "timestamp": format_clock_time(msg.timestamp),
    }


def transform_conversation(
    conversation_id: str,
    messages: Sequence,
    guest_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Conversation payload; ``messages`` must be in chronological order."""
    latest = messages[-1]
    return {
        "id": conversation_id,
        "guestName": guest_name or "Guest",
        "phone": extract_phone_number(messages),
        "property": "Property Details Missing",
        "lastMessage": latest.message_body or "",
        "timestamp": format_relative_time(latest.timestamp, now),
        "unread": 0,
        "autoResponseEnabled": True,
        "messages": [transform_message(m) for m in messages],
    }
