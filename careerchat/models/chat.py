"""
Chat Models - Sessions, messages and paginated listings.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import Field

from .base import CamelModel

T = TypeVar("T")


class MessageRole(str, Enum):
    """Author of a chat message."""
    USER = "USER"
    ASSISTANT = "ASSISTANT"


class Message(CamelModel):
    """A persisted chat message. Never modified after creation."""
    id: str
    session_id: str
    role: MessageRole
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChatSession(CamelModel):
    """Chat session with the latest message as a preview projection."""
    id: str
    title: str
    user_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    deleted_at: Optional[datetime] = None
    message: List[Message] = Field(default_factory=list)  # zero or one element


class Page(CamelModel, Generic[T]):
    """One page of a cursor-paginated listing."""
    items: List[T]
    next_cursor: Optional[str] = None
    has_next_page: bool = False


class CreateSessionRequest(CamelModel):
    title: str = Field(..., min_length=1)


class SendMessageRequest(CamelModel):
    content: str = Field(..., min_length=1)


class SendMessageResponse(CamelModel):
    """Authoritative records produced by one message exchange."""
    user_message: Message
    ai_message: Message


class DeleteSessionResponse(CamelModel):
    success: bool = True
