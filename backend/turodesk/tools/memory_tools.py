"""
Memory tools exposed to the agent.
"""

import json
from typing import Callable, List, Literal, Optional

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field

from ..memory import LongTermMemory

MEMORY_DISABLED = "Memory disabled"


class UpsertUserFactInput(BaseModel):
    key: str = Field(..., description="Short key for the fact, e.g. name, language, theme")
    content: str = Field(..., description="The fact, ideally a full sentence")
    tags: Optional[List[str]] = Field(None, description="Optional labels")


class DeleteUserFactInput(BaseModel):
    key: str = Field(..., description="Key of the fact to remove, e.g. name, language")


class ListUserFactsInput(BaseModel):
    pass


class SearchUserMemoriesInput(BaseModel):
    query: str = Field(..., description="What to look for")
    top_k: int = Field(5, ge=1, le=20, description="How many memories to return")


class DeleteConversationMemoriesInput(BaseModel):
    category: Literal["conversation", "chat"] = "conversation"


def build_memory_tools(
    long_term: Optional[LongTermMemory],
    get_user_id: Callable[[], str],
) -> List[BaseTool]:
    """
    Build the agent's memory tools.

    Args:
        long_term: Long-term memory, or None when memory is disabled
        get_user_id: Resolves the user the tools act for at call time
    """

    async def upsert_user_fact(key: str, content: str, tags: Optional[List[str]] = None) -> str:
        if long_term is None:
            return MEMORY_DISABLED
        summary = await long_term.update_user_profile_summary_from_fact(get_user_id(), key, content, tags)
        return f"Summary updated. Profile: {summary}"

    async def delete_user_fact(key: str) -> str:
        if long_term is None:
            return MEMORY_DISABLED
        user_id = get_user_id()
        await long_term.remove_user_profile_fact(user_id, key)
        summary = await long_term.get_user_profile_summary(user_id)
        return f"Updated. Profile: {summary}" if summary else "Profile empty."

    async def list_user_facts() -> str:
        if long_term is None:
            return MEMORY_DISABLED
        user_id = get_user_id()
        summary = await long_term.get_user_profile_summary(user_id)
        keys = await long_term.get_user_profile_keys(user_id)
        return json.dumps({"summary": summary, "keys": keys}, ensure_ascii=False)

    async def search_user_memories(query: str, top_k: int = 5) -> str:
        if long_term is None:
            return MEMORY_DISABLED
        results = await long_term.search(query, top_k, {"user_id": get_user_id()})
        return json.dumps(results, ensure_ascii=False, default=str)

    async def delete_conversation_memories(category: str = "conversation") -> str:
        if long_term is None:
            return MEMORY_DISABLED
        removed = await long_term.delete_by_category(get_user_id(), category)
        return f"Removed {removed} items from category {category}"

    return [
        StructuredTool.from_function(
            coroutine=upsert_user_fact,
            name="upsert_user_fact",
            description=(
                "Update the user's single profile summary with a clear sentence "
                "(e.g. \"The user's name is Arthur.\"). Use a short key (e.g. name, language, theme)."
            ),
            args_schema=UpsertUserFactInput,
        ),
        StructuredTool.from_function(
            coroutine=delete_user_fact,
            name="delete_user_fact",
            description="Remove one piece of information from the user's profile summary by key (e.g. name, language).",
            args_schema=DeleteUserFactInput,
        ),
        StructuredTool.from_function(
            coroutine=list_user_facts,
            name="list_user_facts",
            description="List the key map and the text of the user's profile summary.",
            args_schema=ListUserFactsInput,
        ),
        StructuredTool.from_function(
            coroutine=search_user_memories,
            name="search_user_memories",
            description=(
                "Search the user's long-term memories by semantic similarity. Use only when needed "
                "to answer the current question and avoid bringing up unrequested personal information."
            ),
            args_schema=SearchUserMemoriesInput,
        ),
        StructuredTool.from_function(
            coroutine=delete_conversation_memories,
            name="delete_conversation_memories",
            description=(
                "Delete old memories of category conversation/chat to reduce noise. "
                "Use when the user asks to clean up their memory history."
            ),
            args_schema=DeleteConversationMemoriesInput,
        ),
    ]
