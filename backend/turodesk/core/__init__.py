"""Core module - logging setup and the exception hierarchy."""

from .exceptions import (
    TurodeskError,
    ConfigurationError,
    AgentInitializationError,
    AgentNotInitializedError,
    SessionNotFoundError,
    ChatError,
    AuthError,
)

__all__ = [
    'TurodeskError',
    'ConfigurationError',
    'AgentInitializationError',
    'AgentNotInitializedError',
    'SessionNotFoundError',
    'ChatError',
    'AuthError',
]
