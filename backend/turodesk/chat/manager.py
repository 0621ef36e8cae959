"""
Chat Manager - sessions, transcripts and the agent behind them.

Session metadata lives in sessions.json, a local backup of every transcript in
history/{session_id}.json. The agent checkpoint and the Postgres messages
table are the primary copies of a conversation.
"""

import asyncio
import json
import logging
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Union

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from ..agent import TurodeskAgent
from ..agent.graph import text_of
from ..config import Settings
from ..core import (
    AgentInitializationError,
    AgentNotInitializedError,
    ChatError,
    ConfigurationError,
    SessionNotFoundError,
)
from ..core.logging_config import LoggerAdapter
from ..db import Database, init_schema
from ..llm import create_embeddings
from ..memory import DEFAULT_USER_ID, LongTermMemory
from ..models import DEFAULT_SESSION_TITLE, ChatMessage, ChatSessionMeta
from ..models.session import utcnow
from ..storage import StorageInterface
from ..store import (
    JSONEmbeddingStore,
    PostgresChatMessageHistory,
    PostgresEmbeddingStore,
    message_from_role,
    role_from_message,
)

logger = logging.getLogger(__name__)

SEND_FAILED = "Failed to send message - check PostgreSQL connection"

TokenCallback = Callable[[str], Union[None, Awaitable[None]]]


class ChatManager:
    """
    Owns the chat sessions of the local user and forwards messages to the agent.
    """

    SESSIONS_FILE = "sessions.json"
    USER_FILE = "user.json"
    HISTORY_DIR = "history"

    def __init__(
        self,
        settings: Settings,
        storage: StorageInterface,
        db: Optional[Database] = None,
        auth=None,
    ):
        """
        Args:
            settings: Application settings
            storage: Local file storage rooted at the data directory
            db: PostgreSQL pool wrapper; created from settings when omitted
            auth: GitHubAuth instance, used to resolve the current user
        """
        self.settings = settings
        self.storage = storage
        self.db = db
        self.auth = auth
        self.agent: Optional[TurodeskAgent] = None
        self.long_term: Optional[LongTermMemory] = None
        self._sessions: List[ChatSessionMeta] = []
        self._local_user_id: str = DEFAULT_USER_ID
        self._sessions_lock = asyncio.Lock()
        self._session_locks: Dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Startup / shutdown
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Read persisted sessions and the stable local user id."""
        self._sessions = await self._read_sessions()
        self._local_user_id = await self._read_or_create_user_id()
        logger.info(
            f"Loaded {len(self._sessions)} sessions",
            extra={"extra_fields": {"user_id": self._local_user_id}},
        )

    async def initialize(self) -> None:
        """
        Connect every dependency of the agent. There is no degraded mode:
        any failure here stops the application from starting.

        Raises:
            ConfigurationError: If OPENAI_API_KEY is missing
            AgentInitializationError: If PostgreSQL or the agent cannot be set up
        """
        await self.load()

        if not self.settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required")

        if self.db is None:
            self.db = Database(
                self.settings.database_uri,
                min_size=self.settings.db_pool_min_size,
                max_size=self.settings.db_pool_max_size,
                connect_timeout=self.settings.db_connect_timeout,
            )

        try:
            await self.db.connect()
            await init_schema(self.db, self.settings.embedding_dimensions)
        except Exception as e:
            logger.error(f"PostgreSQL unavailable: {e}")
            raise AgentInitializationError(f"Failed to connect to PostgreSQL: {e}") from e

        if self.settings.memory_enabled:
            embeddings = create_embeddings(
                api_key=self.settings.openai_api_key,
                model=self.settings.embedding_model,
                dimensions=self.settings.embedding_dimensions,
                base_url=self.settings.openai_base_url,
            )
            if self.settings.memory_backend == "json":
                store = JSONEmbeddingStore(self.storage)
            else:
                store = PostgresEmbeddingStore(self.db)
            self.long_term = LongTermMemory(store, embeddings)

        try:
            self.agent = await TurodeskAgent.create(self.settings, self.long_term, self.current_user_id)
        except Exception as e:
            logger.error(f"Agent initialization failed: {e}")
            raise AgentInitializationError(f"Failed to initialize agent: {e}") from e

        logger.info(
            "Chat manager initialized",
            extra={"extra_fields": {
                "memory_enabled": self.settings.memory_enabled,
                "memory_backend": self.settings.memory_backend,
            }},
        )

    async def cleanup(self) -> None:
        if self.agent is not None:
            await self.agent.cleanup()
            self.agent = None
        if self.db is not None:
            await self.db.close()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def current_user_id(self) -> str:
        """Id of the logged-in GitHub user's database row, else the local id."""
        if self.auth is not None and self.auth.is_authenticated():
            db_user = self.auth.get_current_db_user()
            if db_user is not None:
                return db_user.id
        return self._local_user_id

    async def _read_or_create_user_id(self) -> str:
        content = await self.storage.load(self.USER_FILE)
        if content is None:
            user_id = str(uuid.uuid4())
            await self.storage.save(self.USER_FILE, json.dumps({"userId": user_id}))
            logger.info(f"Created local user {user_id}")
            return user_id

        try:
            data = json.loads(content.decode("utf-8"))
            user_id = data.get("userId") or data.get("id")
        except (ValueError, AttributeError) as e:
            logger.warning(f"Unreadable {self.USER_FILE}, using {DEFAULT_USER_ID}: {e}")
            return DEFAULT_USER_ID
        return user_id or DEFAULT_USER_ID

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def _read_sessions(self) -> List[ChatSessionMeta]:
        content = await self.storage.load(self.SESSIONS_FILE)
        if content is None:
            return []
        try:
            return [ChatSessionMeta.model_validate(item) for item in json.loads(content.decode("utf-8"))]
        except ValueError as e:
            logger.warning(f"Unreadable {self.SESSIONS_FILE}, starting empty: {e}")
            return []

    async def _save_sessions(self) -> None:
        payload = [s.model_dump(mode="json") for s in self._sessions]
        await self.storage.save(self.SESSIONS_FILE, json.dumps(payload, indent=2, ensure_ascii=False))

    def get_session(self, session_id: str) -> ChatSessionMeta:
        for session in self._sessions:
            if session.id == session_id:
                return session
        raise SessionNotFoundError(session_id)

    def require_agent(self) -> TurodeskAgent:
        if self.agent is None:
            raise AgentNotInitializedError()
        return self.agent

    def _session_lock(self, session_id: str) -> asyncio.Lock:
        return self._session_locks.setdefault(session_id, asyncio.Lock())

    def list_sessions(self) -> List[ChatSessionMeta]:
        return sorted(self._sessions, key=lambda s: s.updated_at, reverse=True)

    async def create_session(self, title: Optional[str] = None) -> ChatSessionMeta:
        session = ChatSessionMeta(
            id=str(uuid.uuid4()),
            title=(title or "").strip() or DEFAULT_SESSION_TITLE,
        )
        async with self._sessions_lock:
            self._sessions.append(session)
            await self._save_sessions()
        logger.info(f"Session created: {session.id}")
        return session

    async def rename_session(self, session_id: str, title: str) -> ChatSessionMeta:
        """Rename a session. An empty title keeps the current one."""
        async with self._sessions_lock:
            session = self.get_session(session_id)
            session.title = (title or "").strip() or session.title
            session.updated_at = utcnow()
            await self._save_sessions()
        return session

    async def delete_session(self, session_id: str) -> None:
        """
        Remove a session everywhere: metadata, local history backup,
        Postgres transcript and agent checkpoint.
        """
        self.get_session(session_id)

        # Serialized with sends on the same session
        async with self._session_lock(session_id):
            self.get_session(session_id)
            if self._db_ready():
                removed = await PostgresChatMessageHistory(self.db, session_id).clear()
                logger.debug(f"Removed {removed} transcript rows for {session_id}")
            if self.agent is not None:
                await self.agent.delete_thread(session_id)
            await self.storage.delete(self._history_path(session_id))

            async with self._sessions_lock:
                self._sessions = [s for s in self._sessions if s.id != session_id]
                await self._save_sessions()
            self._session_locks.pop(session_id, None)
        logger.info(f"Session deleted: {session_id}")

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def _history_path(self, session_id: str) -> str:
        return f"{self.HISTORY_DIR}/{session_id}.json"

    def _db_ready(self) -> bool:
        return self.db is not None and self.db.connected

    async def _read_history_file(self, session_id: str) -> List[ChatMessage]:
        content = await self.storage.load(self._history_path(session_id))
        if content is None:
            return []
        try:
            return [ChatMessage.model_validate(m) for m in json.loads(content.decode("utf-8"))]
        except ValueError as e:
            logger.warning(f"Unreadable history backup for {session_id}: {e}")
            return []

    async def _append_history_file(self, session_id: str, messages: List[ChatMessage]) -> None:
        history = await self._read_history_file(session_id)
        history.extend(messages)
        payload = [m.model_dump(mode="json") for m in history]
        await self.storage.save(self._history_path(session_id), json.dumps(payload, indent=2, ensure_ascii=False))

    async def get_messages(self, session_id: str) -> List[ChatMessage]:
        """
        Messages of a session, from the first source that has any:
        agent checkpoint, Postgres transcript, local history backup.
        """
        self.get_session(session_id)
        agent = self.require_agent()

        try:
            checkpointed = await agent.get_messages(session_id)
        except Exception as e:
            logger.warning(f"Checkpoint read failed for {session_id}, using stored history: {e}")
            checkpointed = []
        if checkpointed:
            return [ChatMessage(role=role_from_message(m), content=text_of(m)) for m in checkpointed]

        if self._db_ready():
            rows = await PostgresChatMessageHistory(self.db, session_id).get_rows()
            if rows:
                return [
                    ChatMessage(role=role_from_message(message_from_role(r["role"], r["content"])),
                                content=r["content"], created_at=r["created_at"])
                    for r in rows
                ]

        return await self._read_history_file(session_id)

    async def _prior_messages(self, session_id: str) -> List[BaseMessage]:
        """Stored transcript used to seed a thread that has no checkpoint yet."""
        if self._db_ready():
            stored = await PostgresChatMessageHistory(self.db, session_id).get_messages()
            if stored:
                return stored
        return [message_from_role(m.role, m.content) for m in await self._read_history_file(session_id)]

    async def _record_exchange(self, session_id: str, text: str, answer: str) -> ChatMessage:
        user_message = ChatMessage(role="user", content=text)
        assistant_message = ChatMessage(role="assistant", content=answer)

        await self._append_history_file(session_id, [user_message, assistant_message])
        if self._db_ready():
            await PostgresChatMessageHistory(self.db, session_id).add_messages(
                [HumanMessage(content=text), AIMessage(content=answer)]
            )

        async with self._sessions_lock:
            session = self.get_session(session_id)
            session.updated_at = utcnow()
            await self._save_sessions()
        return assistant_message

    async def send_message(self, session_id: str, text: str) -> ChatMessage:
        """
        Send a user message and wait for the full answer.

        Raises:
            SessionNotFoundError: Unknown session
            AgentNotInitializedError: Called before initialize()
            ChatError: The agent or the transcript write failed
        """
        self.get_session(session_id)
        agent = self.require_agent()
        log = LoggerAdapter(logger, {"session_id": session_id, "user_id": self.current_user_id()})

        async with self._session_lock(session_id):
            self.get_session(session_id)
            try:
                answer = await agent.send_message(session_id, text)
                reply = await self._record_exchange(session_id, text, answer)
            except Exception as e:
                log.error(f"Send failed: {e}", exc_info=True)
                raise ChatError(SEND_FAILED) from e

        log.info(f"Message answered ({len(answer)} chars)")
        return reply

    async def send_message_stream(
        self,
        session_id: str,
        text: str,
        on_token: TokenCallback,
    ) -> ChatMessage:
        """
        Send a user message, forwarding answer tokens to on_token as they arrive.

        Returns:
            ChatMessage: The complete assistant message
        """
        self.get_session(session_id)
        agent = self.require_agent()
        log = LoggerAdapter(logger, {"session_id": session_id, "user_id": self.current_user_id()})

        async with self._session_lock(session_id):
            self.get_session(session_id)
            try:
                prior = await self._prior_messages(session_id)
                answer = await agent.send_message_stream(session_id, text, on_token, prior=prior)
                reply = await self._record_exchange(session_id, text, answer)
            except Exception as e:
                log.error(f"Streaming send failed: {e}", exc_info=True)
                raise ChatError(SEND_FAILED) from e

        log.info(f"Message streamed ({len(answer)} chars)")
        return reply
