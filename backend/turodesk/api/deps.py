"""
Shared dependencies of the API routers.
"""

from fastapi import HTTPException, Request, status

from ..auth import GitHubAuth
from ..chat import ChatManager
from ..core import (
    AgentNotInitializedError,
    AuthError,
    ChatError,
    ConfigurationError,
    SessionNotFoundError,
    TurodeskError,
)


def get_chat_manager(request: Request) -> ChatManager:
    """Chat manager created by the application lifespan."""
    manager = getattr(request.app.state, "chat_manager", None)
    if manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(AgentNotInitializedError()),
        )
    return manager


def get_auth(request: Request) -> GitHubAuth:
    auth = getattr(request.app.state, "auth", None)
    if auth is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Auth not initialized")
    return auth


_STATUS_BY_ERROR = [
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
    (AgentNotInitializedError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ChatError, status.HTTP_502_BAD_GATEWAY),
    (AuthError, status.HTTP_400_BAD_REQUEST),
]


def http_error(error: TurodeskError) -> HTTPException:
    """Translate a backend error into the HTTP error returned to the shell."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
