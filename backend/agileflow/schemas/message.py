from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime

from agileflow.models.user import UserRole
from agileflow.schemas.user import UserSummary


class CommunityMessageCreate(BaseModel):
    message: str = Field(..., min_length=1)
    client_ref: Optional[str] = Field(None, max_length=64)

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message is required")
        return v


class PrivateMessageCreate(BaseModel):
    receiver_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    client_ref: Optional[str] = Field(None, max_length=64)

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message is required")
        return v


class PrivateMessageRecord(BaseModel):
    """Bare row, as returned by the read mark"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_id: str
    receiver_id: str
    message: str
    read: bool
    client_ref: Optional[str] = None
    created_at: datetime


class PrivateMessageResponse(PrivateMessageRecord):
    sender: Optional[UserSummary] = None
    receiver: Optional[UserSummary] = None


class CommunityMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    message: str
    client_ref: Optional[str] = None
    created_at: datetime
    user: Optional[UserSummary] = None


class CounterpartSummary(BaseModel):
    id: str
    name: Optional[str] = None
    role: Optional[UserRole] = None


class ConversationResponse(BaseModel):
    user: CounterpartSummary
    lastMessage: str
    lastMessageTime: datetime
    unread: bool


class CommunityMessageListEnvelope(BaseModel):
    messages: List[CommunityMessageResponse]


class CommunityMessageSentEnvelope(BaseModel):
    message: str
    data: CommunityMessageResponse


class PrivateMessageListEnvelope(BaseModel):
    messages: List[PrivateMessageResponse]


class PrivateMessageSentEnvelope(BaseModel):
    message: str
    data: PrivateMessageResponse


class MarkReadEnvelope(BaseModel):
    message: PrivateMessageRecord


class UnreadCountEnvelope(BaseModel):
    unreadCount: int


class ConversationListEnvelope(BaseModel):
    conversations: List[ConversationResponse]
