"""
User queries used by the GitHub login flow.
"""

from typing import Optional

from ..models import DbUser
from .postgres import Database


def _to_user(row) -> Optional[DbUser]:
    if row is None:
        return None
    return DbUser(
        id=str(row["id"]),
        username=row["username"],
        email=row["email"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class DatabaseQueries:
    """CRUD over the users table."""

    def __init__(self, db: Database):
        self.db = db

    async def create_user(self, username: Optional[str] = None, email: Optional[str] = None) -> DbUser:
        row = await self.db.fetchrow(
            "INSERT INTO users (username, email) VALUES ($1, $2) RETURNING *",
            username, email,
        )
        return _to_user(row)

    async def get_user_by_id(self, user_id: str) -> Optional[DbUser]:
        row = await self.db.fetchrow("SELECT * FROM users WHERE id = $1::uuid", user_id)
        return _to_user(row)

    async def get_user_by_username(self, username: str) -> Optional[DbUser]:
        row = await self.db.fetchrow("SELECT * FROM users WHERE username = $1", username)
        return _to_user(row)

    async def update_user_email(self, user_id: str, email: Optional[str]) -> Optional[DbUser]:
        row = await self.db.fetchrow(
            "UPDATE users SET email = $1, updated_at = NOW() WHERE id = $2::uuid RETURNING *",
            email, user_id,
        )
        return _to_user(row)

    async def ensure_user_exists(self, username: str, email: Optional[str] = None) -> DbUser:
        """Return the user with this username, creating it when missing."""
        user = await self.get_user_by_username(username)
        if user is None:
            user = await self.create_user(username, email)
        elif email and user.email != email:
            user = await self.update_user_email(user.id, email)
        return user
