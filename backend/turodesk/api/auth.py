"""
Authentication API endpoints - GitHub login.
"""

import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..auth import GitHubAuth
from ..core import TurodeskError
from ..models import AuthState
from .deps import get_auth, http_error

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.get("/state", response_model=AuthState)
async def get_state(auth: GitHubAuth = Depends(get_auth)):
    return auth.get_auth_state()


@router.post("/login")
async def login(auth: GitHubAuth = Depends(get_auth)):
    """
    Start a GitHub login.

    Returns:
        The URL the shell should open in the browser and the OAuth state
        value GitHub will echo back to /auth/callback
    """
    state = secrets.token_urlsafe(16)
    try:
        return {"authorize_url": auth.authorize_url(state), "state": state}
    except TurodeskError as e:
        raise http_error(e)


@router.get("/callback", response_model=AuthState)
async def callback(
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    auth: GitHubAuth = Depends(get_auth),
):
    """Redirect target of the GitHub OAuth app."""
    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"GitHub auth error: {error}")
    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No authorization code received")
    try:
        return await auth.exchange_code_for_token(code)
    except TurodeskError as e:
        raise http_error(e)


@router.post("/logout", response_model=AuthState)
async def logout(auth: GitHubAuth = Depends(get_auth)):
    await auth.logout()
    return auth.get_auth_state()
