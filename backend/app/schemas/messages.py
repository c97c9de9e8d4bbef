"""Schemas related to direct messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr

from app.models.enums import MessageType
from app.schemas.users import PublicUser


class MessageCreate(BaseModel):
    """Payload for sending a direct message."""

    recipient_id: int = Field(..., ge=1)
    content: constr(min_length=1) = Field(..., description="Message body")
    message_type: MessageType = Field(default=MessageType.TEXT)
    file_url: str | None = Field(default=None, max_length=500)


class MessageRead(BaseModel):
    """Serialized representation of a direct message."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    recipient_id: int
    content: str
    message_type: MessageType
    file_url: str | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ConversationRead(BaseModel):
    """Latest message exchanged with one counterpart."""

    model_config = ConfigDict(from_attributes=True)

    other_user: PublicUser
    last_message: MessageRead
    unread_count: int = Field(0, ge=0)


class ReadReceipt(BaseModel):
    updated: int = Field(..., ge=0, description="Messages whose read flag changed")


class UnreadCount(BaseModel):
    unread_count: int = Field(..., ge=0, alias="unreadCount")

    model_config = ConfigDict(populate_by_name=True)
