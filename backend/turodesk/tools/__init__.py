"""Tools module - LangChain tools available to the agent."""

from .memory_tools import build_memory_tools, MEMORY_DISABLED

__all__ = ['build_memory_tools', 'MEMORY_DISABLED']
