"""
Session Models - Chat sessions and the messages exchanged in them.
"""

from datetime import datetime, timezone
from typing import Literal, Optional
from pydantic import BaseModel, Field

DEFAULT_SESSION_TITLE = "New conversation"

Role = Literal["user", "assistant", "system"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatSessionMeta(BaseModel):
    """Chat session metadata, persisted in sessions.json."""
    id: str
    title: str = DEFAULT_SESSION_TITLE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ChatMessage(BaseModel):
    """A single message in a conversation. Append-only."""
    role: Role
    content: str
    created_at: datetime = Field(default_factory=utcnow)


class SessionCreate(BaseModel):
    """Request body for creating a session."""
    title: Optional[str] = None


class SessionRename(BaseModel):
    """Request body for renaming a session."""
    title: str = ""


class MessageSend(BaseModel):
    """Request body for sending a message."""
    content: str = Field(..., min_length=1)
