"""
Exceptions raised by the Turodesk backend.

The application fails fast: missing configuration or an unreachable database
stops startup instead of running in a degraded mode.
"""


class TurodeskError(Exception):
    """Base class for all backend errors."""


class ConfigurationError(TurodeskError):
    """A required setting (API key, OAuth credentials) is missing."""


class AgentInitializationError(TurodeskError):
    """The agent or one of its backing services could not be started."""


class AgentNotInitializedError(TurodeskError):
    """A chat operation was attempted before the agent was ready."""

    def __init__(self, message: str = "Agent not initialized - PostgreSQL connection required"):
        super().__init__(message)


class SessionNotFoundError(TurodeskError):
    """No chat session exists with the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class ChatError(TurodeskError):
    """Sending a message through the agent failed."""


class AuthError(TurodeskError):
    """The OAuth provider rejected the login."""
