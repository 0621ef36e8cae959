"""
GitHub OAuth - code exchange and the persisted login state.

The browser half of the flow (opening the authorize URL, receiving the
redirect) belongs to the desktop shell; this module turns the returned code
into a GitHub identity and a row in the users table.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

import httpx

from ..config import Settings
from ..core import AuthError, ConfigurationError
from ..db import DatabaseQueries
from ..models import AuthState, DbUser, GitHubUser
from ..storage import StorageInterface

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
API_URL = "https://api.github.com"
USER_AGENT = "Turodesk-App"


class GitHubAuth:
    """
    Login with GitHub. The state survives restarts through auth.json.
    """

    AUTH_FILE = "auth.json"

    def __init__(
        self,
        settings: Settings,
        storage: StorageInterface,
        queries: Optional[DatabaseQueries] = None,
        timeout: float = 15.0,
    ):
        """
        Args:
            settings: Application settings (client id/secret, redirect uri)
            storage: Local file storage holding auth.json
            queries: Users table access; may be attached after the DB connects
            timeout: HTTP timeout for GitHub calls
        """
        self.settings = settings
        self.storage = storage
        self.queries = queries
        self.timeout = timeout
        self._state = AuthState()

    @property
    def configured(self) -> bool:
        return bool(self.settings.github_client_id and self.settings.github_client_secret)

    def _require_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError(
                "GitHub OAuth not configured. Set GITHUB_CLIENT_ID and GITHUB_CLIENT_SECRET."
            )

    def authorize_url(self, state: Optional[str] = None) -> str:
        """URL the shell opens in the browser to start the login."""
        self._require_configured()
        params = {
            "client_id": self.settings.github_client_id,
            "redirect_uri": self.settings.github_redirect_uri,
            "scope": "user:email",
        }
        if state:
            params["state"] = state
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code_for_token(self, code: str) -> AuthState:
        """
        Exchange an OAuth code for a token, fetch the GitHub user and create
        (or reuse) the matching database user.

        Raises:
            ConfigurationError: If the OAuth app is not configured
            AuthError: If GitHub rejects the code or cannot be reached
        """
        self._require_configured()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token_resp = await client.post(
                    TOKEN_URL,
                    json={
                        "client_id": self.settings.github_client_id,
                        "client_secret": self.settings.github_client_secret,
                        "code": code,
                        "redirect_uri": self.settings.github_redirect_uri,
                    },
                    headers={"Accept": "application/json"},
                )
                token_resp.raise_for_status()
                token_data = token_resp.json()

                if token_data.get("error"):
                    raise AuthError(f"Token exchange error: {token_data.get('error_description') or token_data['error']}")

                headers = {
                    "Authorization": f"token {token_data['access_token']}",
                    "User-Agent": USER_AGENT,
                    "Accept": "application/vnd.github+json",
                }
                user_resp = await client.get(f"{API_URL}/user", headers=headers)
                user_resp.raise_for_status()
                github_user = GitHubUser.model_validate(user_resp.json())

                # Private emails are only listed by /user/emails
                if not github_user.email:
                    emails_resp = await client.get(f"{API_URL}/user/emails", headers=headers)
                    emails_resp.raise_for_status()
                    primary = next((e for e in emails_resp.json() if e.get("primary")), None)
                    if primary:
                        github_user.email = primary.get("email")
        except httpx.HTTPError as e:
            logger.error(f"GitHub request failed: {e}")
            raise AuthError(f"GitHub request failed: {e}") from e

        db_user = None
        if self.queries is not None:
            db_user = await self.queries.ensure_user_exists(github_user.login, github_user.email)

        self._state = AuthState(is_authenticated=True, user=github_user, db_user=db_user)
        await self._save_auth_state()
        logger.info(f"GitHub authentication successful: {github_user.login}")
        return self._state

    def get_auth_state(self) -> AuthState:
        return self._state

    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    def get_current_user(self) -> Optional[GitHubUser]:
        return self._state.user

    def get_current_db_user(self) -> Optional[DbUser]:
        return self._state.db_user

    async def logout(self) -> None:
        self._state = AuthState()
        await self._clear_auth_state()
        logger.info("User logged out")

    async def _save_auth_state(self) -> None:
        payload = {**self._state.model_dump(mode="json"), "saved_at": datetime.now(timezone.utc).isoformat()}
        await self.storage.save(self.AUTH_FILE, json.dumps(payload, indent=2))

    async def _clear_auth_state(self) -> None:
        if await self.storage.delete(self.AUTH_FILE):
            logger.debug("Auth state cleared from disk")

    async def load_auth_state(self) -> AuthState:
        """
        Restore the login saved in auth.json. Saved state older than
        auth_max_age_days, or that cannot be parsed, is deleted.
        """
        content = await self.storage.load(self.AUTH_FILE)
        if content is None:
            return self._state

        try:
            data = json.loads(content.decode("utf-8"))
            saved_at = datetime.fromisoformat(data["saved_at"])
            if saved_at.tzinfo is None:
                saved_at = saved_at.replace(tzinfo=timezone.utc)
            state = AuthState.model_validate(data)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Malformed auth state, clearing: {e}")
            await self._clear_auth_state()
            return self._state

        if datetime.now(timezone.utc) - saved_at > timedelta(days=self.settings.auth_max_age_days):
            logger.info("Saved auth state expired, clearing")
            await self._clear_auth_state()
            return self._state

        if state.is_authenticated and state.user and state.db_user:
            self._state = state
            logger.info(f"Auth state loaded from disk: {state.user.login}")
        return self._state

    async def validate_and_refresh_auth_state(self) -> AuthState:
        """
        Check the logged-in user still exists in the database and pick up
        changes to its row. A user that vanished is logged out.
        """
        if not self._state.is_authenticated or self._state.db_user is None or self.queries is None:
            return self._state

        try:
            db_user = await self.queries.get_user_by_id(self._state.db_user.id)
        except Exception as e:
            logger.warning(f"Failed to validate auth state, logging out: {e}")
            await self.logout()
            return self._state

        if db_user is None:
            logger.info("User no longer exists in database, clearing auth state")
            await self.logout()
        elif db_user != self._state.db_user:
            self._state = self._state.model_copy(update={"db_user": db_user})
            await self._save_auth_state()
            logger.info("Auth state updated with latest user data")
        return self._state
