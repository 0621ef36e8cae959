"""
Agent graph - a tool-calling loop followed by a memory write.

    START -> agent -> (tools -> agent)* -> memory_write -> END
"""

import logging
from typing import Annotated, Any, Callable, Dict, Optional, Sequence

from typing_extensions import Literal, TypedDict
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, SystemMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
from langgraph.graph import END, START, StateGraph
from langgraph.graph.message import add_messages
from langgraph.prebuilt import ToolNode

from ..memory import LongTermMemory
from .system_prompt import get_system_prompt

logger = logging.getLogger(__name__)


class AgentState(TypedDict):
    messages: Annotated[Sequence[BaseMessage], add_messages]


def thread_id_from_config(config: Optional[RunnableConfig]) -> str:
    return (config or {}).get("configurable", {}).get("thread_id", "default")


def text_of(message: BaseMessage) -> str:
    """Plain text of a message whose content may be a list of blocks."""
    content = message.content
    if isinstance(content, str):
        return content
    return "".join(
        block.get("text", "") if isinstance(block, dict) else str(block)
        for block in content
    )


def last_exchange(messages: Sequence[BaseMessage]) -> Optional[tuple]:
    """Last user message and the final assistant answer that followed it."""
    human = ai = None
    for message in reversed(messages):
        if ai is None and message.type == "ai" and not getattr(message, "tool_calls", None) and text_of(message):
            ai = message
        elif ai is not None and message.type == "human":
            human = message
            break
    if human is None or ai is None:
        return None
    return human, ai


def build_agent_graph(
    model: BaseChatModel,
    tools: Sequence[BaseTool],
    long_term: Optional[LongTermMemory],
    get_user_id: Callable[[], str],
    prompt_context: Optional[Dict[str, Any]] = None,
    checkpointer: Any = None,
):
    """
    Compile the agent graph.

    Args:
        model: Chat model; tools are bound to it when there are any
        tools: Tools the model may call
        long_term: Long-term memory, or None when memory is disabled
        get_user_id: Resolves the current user id at run time
        prompt_context: time_zone / country / locale for the system prompt
        checkpointer: LangGraph checkpointer persisting state per thread
    """
    bound_model = model.bind_tools(tools) if tools else model
    prompt_context = prompt_context or {}

    async def call_model(state: AgentState, config: RunnableConfig) -> Dict[str, Any]:
        system = [SystemMessage(content=get_system_prompt(**prompt_context))]
        if long_term is not None:
            summary = await long_term.get_user_profile_summary(get_user_id())
            if summary:
                system.append(SystemMessage(content=f"Known facts about the user: {summary}"))
        ai_message = await bound_model.ainvoke([*system, *state["messages"]], config)
        return {"messages": [ai_message]}

    def should_continue(state: AgentState) -> Literal["tools", "memory_write"]:
        last_message = state["messages"][-1]
        if getattr(last_message, "tool_calls", None):
            return "tools"
        return "memory_write"

    async def write_memory(state: AgentState, config: RunnableConfig) -> Dict[str, Any]:
        if long_term is None:
            return {}
        exchange = last_exchange(state["messages"])
        if exchange is None:
            return {}
        human, ai = exchange
        try:
            await long_term.add_memory(
                thread_id=thread_id_from_config(config),
                user_id=get_user_id(),
                content=f"User: {text_of(human)}\nAssistant: {text_of(ai)}",
                category="conversation",
            )
        except Exception as e:
            # The answer is already produced; a failed memory write must not lose it
            logger.warning(f"Conversation memory write failed: {e}", exc_info=True)
        return {}

    graph = StateGraph(AgentState)
    graph.add_node("agent", call_model)
    graph.add_node("memory_write", write_memory)
    graph.add_edge(START, "agent")
    if tools:
        graph.add_node("tools", ToolNode(tools=list(tools)))
        graph.add_conditional_edges("agent", should_continue, {"tools": "tools", "memory_write": "memory_write"})
        graph.add_edge("tools", "agent")
    else:
        graph.add_edge("agent", "memory_write")
    graph.add_edge("memory_write", END)

    return graph.compile(checkpointer=checkpointer)
