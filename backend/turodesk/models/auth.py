"""
Auth Models - GitHub identity and the persisted login state.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class GitHubUser(BaseModel):
    """Subset of the GitHub /user payload."""
    id: int
    login: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class DbUser(BaseModel):
    """Row of the users table."""
    id: str
    username: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AuthState(BaseModel):
    """Current login state."""
    is_authenticated: bool = False
    user: Optional[GitHubUser] = None
    db_user: Optional[DbUser] = None
