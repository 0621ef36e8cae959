"""Agent module - LangGraph agent, its graph and system prompt."""

from .agent import TurodeskAgent, conversation_messages
from .graph import build_agent_graph, AgentState
from .system_prompt import get_system_prompt

__all__ = ['TurodeskAgent', 'conversation_messages', 'build_agent_graph', 'AgentState', 'get_system_prompt']
