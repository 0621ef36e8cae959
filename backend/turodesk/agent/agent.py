"""
Turodesk Agent - runs conversations through the agent graph.

Conversation state is checkpointed per thread (thread_id == session id) by
the LangGraph Postgres checkpointer.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from langchain_core.messages import AIMessageChunk, BaseMessage, HumanMessage
from langgraph.checkpoint.postgres.aio import AsyncPostgresSaver
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from ..config import Settings
from ..llm import create_chat_model
from ..memory import LongTermMemory
from ..tools import build_memory_tools
from .graph import build_agent_graph, text_of

logger = logging.getLogger(__name__)

TokenCallback = Callable[[str], Union[None, Awaitable[None]]]


def _config(thread_id: str) -> dict:
    return {"configurable": {"thread_id": thread_id}}


def conversation_messages(messages: Sequence[BaseMessage]) -> List[BaseMessage]:
    """User and assistant messages with text, without tool traffic."""
    return [
        m for m in messages
        if m.type == "human" or (m.type == "ai" and not getattr(m, "tool_calls", None) and text_of(m))
    ]


class TurodeskAgent:
    """
    Agent facade used by the chat manager.
    """

    def __init__(self, graph: Any, checkpointer: Any = None, pool: Optional[AsyncConnectionPool] = None):
        """
        Args:
            graph: Compiled agent graph
            checkpointer: The graph's checkpointer (for thread deletion)
            pool: psycopg pool owned by this agent, closed on cleanup
        """
        self.graph = graph
        self.checkpointer = checkpointer
        self._pool = pool

    @classmethod
    async def create(
        cls,
        settings: Settings,
        long_term: Optional[LongTermMemory],
        get_user_id: Callable[[], str],
    ) -> "TurodeskAgent":
        """
        Build the production agent: ChatOpenAI, memory tools and a Postgres
        checkpointer whose tables are created on first run.
        """
        model = create_chat_model(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            temperature=settings.llm_temperature,
        )

        pool = AsyncConnectionPool(
            conninfo=settings.database_uri,
            max_size=settings.db_pool_max_size,
            timeout=settings.db_connect_timeout,
            kwargs={"autocommit": True, "prepare_threshold": 0, "row_factory": dict_row},
            open=False,
        )
        await pool.open(wait=True)
        try:
            checkpointer = AsyncPostgresSaver(pool)
            await checkpointer.setup()
        except Exception:
            await pool.close()
            raise

        graph = build_agent_graph(
            model=model,
            tools=build_memory_tools(long_term, get_user_id),
            long_term=long_term,
            get_user_id=get_user_id,
            prompt_context={
                "time_zone": settings.time_zone,
                "country": settings.country,
                "locale": settings.locale,
            },
            checkpointer=checkpointer,
        )
        logger.info(f"Turodesk Agent initialized (model={settings.openai_model})")
        return cls(graph, checkpointer=checkpointer, pool=pool)

    async def get_messages(self, thread_id: str) -> List[BaseMessage]:
        state = await self.graph.aget_state(_config(thread_id))
        return conversation_messages(state.values.get("messages", []))

    async def send_message(self, thread_id: str, text: str) -> str:
        result = await self.graph.ainvoke({"messages": [HumanMessage(content=text)]}, _config(thread_id))
        return self._final_text(result["messages"])

    async def send_message_stream(
        self,
        thread_id: str,
        text: str,
        on_token: TokenCallback,
        prior: Optional[Sequence[BaseMessage]] = None,
    ) -> str:
        """
        Run one turn and forward model tokens as they arrive.

        Args:
            thread_id: Conversation thread
            text: User input
            on_token: Called with each token of the assistant's answer
            prior: History to seed the thread with when it has no checkpoint yet

        Returns:
            str: The final assistant answer
        """
        config = _config(thread_id)
        new_messages: List[BaseMessage] = [HumanMessage(content=text)]
        if prior:
            state = await self.graph.aget_state(config)
            if not state.values.get("messages"):
                new_messages = [*prior, *new_messages]

        streamed = ""
        async for chunk, metadata in self.graph.astream(
            {"messages": new_messages}, config, stream_mode="messages"
        ):
            if metadata.get("langgraph_node") != "agent" or not isinstance(chunk, AIMessageChunk):
                continue
            token = text_of(chunk)
            if not token:
                continue
            streamed += token
            result = on_token(token)
            if inspect.isawaitable(result):
                await result

        state = await self.graph.aget_state(config)
        return self._final_text(state.values.get("messages", [])) or streamed

    async def delete_thread(self, thread_id: str) -> None:
        if self.checkpointer is not None and hasattr(self.checkpointer, "adelete_thread"):
            await self.checkpointer.adelete_thread(thread_id)

    async def cleanup(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Checkpointer connection pool closed")

    @staticmethod
    def _final_text(messages: Sequence[BaseMessage]) -> str:
        for message in reversed(conversation_messages(messages)):
            if message.type == "ai":
                return text_of(message)
        return ""
