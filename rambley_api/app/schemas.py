from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenPair(Token):
    refresh_token: str


class RefreshRequest(BaseModel):
    refresh_token: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class User(BaseModel):
    id: int
    account_id: int
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class TenantContext(BaseModel):
    """Session settings as the database sees them on this request."""

    account_id: Optional[str] = None
    user_id: Optional[str] = None
    effective_account_id: Optional[int] = None


class PropertyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: Optional[str] = None
    description: Optional[str] = None


class PropertyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = None
    description: Optional[str] = None


class Property(PropertyCreate):
    id: int
    account_id: int
    is_active: bool = True

    class Config:
        from_attributes = True


class ContactCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    service_type: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=1, max_length=50)
    email: EmailStr
    preferred_language: str = "en"
    notes: Optional[str] = None
    property_ids: List[int] = []


class Contact(BaseModel):
    id: int
    account_id: int
    name: str
    service_type: str
    phone: str
    email: str
    preferred_language: Optional[str] = None
    notes: Optional[str] = None
    property_ids: List[int] = []

    class Config:
        from_attributes = True


class FaqCreate(BaseModel):
    question: str = Field(min_length=1)
    answer: Optional[str] = None
    property_id: Optional[int] = None


class Faq(BaseModel):
    id: int
    account_id: int
    property_id: Optional[int] = None
    question: str
    answer: Optional[str] = None
    answer_type: Optional[str] = None
    confidence: Optional[Decimal] = None
    ask_count: Optional[int] = None

    class Config:
        from_attributes = True


class ChatMessage(BaseModel):
    id: int
    text: str
    sender: str
    senderType: str
    timestamp: str


class Conversation(BaseModel):
    id: str
    guestName: str
    phone: str
    property: str
    lastMessage: str
    timestamp: str
    unread: int = 0
    autoResponseEnabled: bool = True
    messages: List[ChatMessage] = []


class ConversationList(BaseModel):
    success: bool = True
    data: List[Conversation]
    count: int


class ConversationDetail(BaseModel):
    success: bool = True
    data: Conversation


class Message(BaseModel):
    message: str


class TaskLogUpdate(BaseModel):
    task_uuid: Optional[str] = None
    phone: Optional[str] = None
    property_id: Optional[int] = None
    guest_message: Optional[str] = None
    sub_category: Optional[str] = None
    staff_id: Optional[int] = None
    staff_phone: Optional[str] = None
    requirements_to_complete_task: Optional[str] = None
    ai_message_response: Optional[str] = None
    status: Optional[bool] = None
    escalated_to_host: Optional[str] = None
    response_received: Optional[bool] = None
    guest_notified: Optional[bool] = None
    host_escalated: Optional[bool] = None


class TaskLog(TaskLogUpdate):
    id: int
    account_id: int
    created_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TaskLogList(BaseModel):
    data: List[TaskLog]
    total: int
    page: int
    limit: int


class AiLog(BaseModel):
    id: int
    account_id: int
    uuid: Optional[str] = None
    recipient_type: Optional[str] = None
    property_id: Optional[int] = None
    to_recipient: Optional[str] = None
    message: Optional[str] = None
    language: Optional[str] = None
    tone: Optional[str] = None
    sentiment: Optional[str] = None
    urgency_indicators: Optional[str] = None
    sub_category: Optional[str] = None
    escalation_risk_indicators: Optional[str] = None
    ai_message_response: Optional[str] = None
    status: Optional[str] = None
    task_created: Optional[bool] = None
    task_uuid: Optional[str] = None
    execution_timestamp: Optional[datetime] = None

    class Config:
        from_attributes = True


class AiLogList(BaseModel):
    data: List[AiLog]
    total: int
    page: int
    limit: int
