"""Models module."""

from .session import (
    DEFAULT_SESSION_TITLE,
    ChatSessionMeta,
    ChatMessage,
    SessionCreate,
    SessionRename,
    MessageSend,
)
from .memory import MemoryRecord, FactUpsert, ProfileSummary
from .auth import GitHubUser, DbUser, AuthState

__all__ = [
    'DEFAULT_SESSION_TITLE', 'ChatSessionMeta', 'ChatMessage',
    'SessionCreate', 'SessionRename', 'MessageSend',
    'MemoryRecord', 'FactUpsert', 'ProfileSummary',
    'GitHubUser', 'DbUser', 'AuthState',
]
