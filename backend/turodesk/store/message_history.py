"""
Chat transcripts in the messages table, as LangChain messages.
"""

from typing import Iterable, List

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from ..db import Database, affected_rows


def message_from_role(role: str, content: str) -> BaseMessage:
    role = (role or "").lower()
    if role == "user":
        return HumanMessage(content=content)
    if role in ("assistant", "ai"):
        return AIMessage(content=content)
    return SystemMessage(content=content)


def role_from_message(message: BaseMessage) -> str:
    # LangChain message types -> stored role
    if message.type == "human":
        return "user"
    if message.type == "ai":
        return "assistant"
    return "system"


class PostgresChatMessageHistory:
    """Transcript of one session in the messages table."""

    def __init__(self, db: Database, session_id: str):
        self.db = db
        self.session_id = session_id

    async def get_messages(self) -> List[BaseMessage]:
        rows = await self.db.fetch(
            "SELECT role, content FROM messages WHERE session_id = $1 ORDER BY created_at ASC",
            self.session_id,
        )
        return [message_from_role(r["role"], r["content"]) for r in rows]

    async def get_rows(self) -> list:
        """Raw rows with timestamps, oldest first."""
        return await self.db.fetch(
            "SELECT role, content, created_at FROM messages WHERE session_id = $1 ORDER BY created_at ASC",
            self.session_id,
        )

    async def add_message(self, message: BaseMessage) -> None:
        content = message.content if isinstance(message.content, str) else str(message.content)
        await self.db.execute(
            "INSERT INTO messages (session_id, role, content) VALUES ($1, $2, $3)",
            self.session_id, role_from_message(message), content,
        )

    async def add_messages(self, messages: Iterable[BaseMessage]) -> None:
        for message in messages:
            await self.add_message(message)

    async def clear(self) -> int:
        status = await self.db.execute("DELETE FROM messages WHERE session_id = $1", self.session_id)
        return affected_rows(status)
