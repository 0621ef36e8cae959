"""
Memory API endpoints - the user's profile facts and memory search.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..chat import ChatManager
from ..memory import LongTermMemory
from ..models import FactUpsert, ProfileSummary
from .deps import get_chat_manager

router = APIRouter(prefix="/memory", tags=["memory"])


def _long_term(manager: ChatManager) -> LongTermMemory:
    if manager.long_term is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Memory disabled")
    return manager.long_term


@router.get("/facts")
async def list_facts(
    limit: int = Query(50, ge=1, le=200),
    manager: ChatManager = Depends(get_chat_manager),
) -> List[Dict[str, Any]]:
    """All memory documents of the current user."""
    return await _long_term(manager).list_user_facts(manager.current_user_id(), limit=limit)


@router.put("/facts", response_model=ProfileSummary)
async def upsert_fact(body: FactUpsert, manager: ChatManager = Depends(get_chat_manager)):
    """
    Add or replace one fact in the user's profile summary.

    Returns:
        ProfileSummary: The summary after the change
    """
    long_term = _long_term(manager)
    user_id = manager.current_user_id()
    try:
        summary = await long_term.update_user_profile_summary_from_fact(user_id, body.key, body.content, body.tags)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return ProfileSummary(summary=summary, keys=await long_term.get_user_profile_keys(user_id))


@router.delete("/facts/{key}", response_model=ProfileSummary)
async def delete_fact(key: str, manager: ChatManager = Depends(get_chat_manager)):
    long_term = _long_term(manager)
    user_id = manager.current_user_id()
    try:
        removed = await long_term.remove_user_profile_fact(user_id, key)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Fact not found: {key}")
    return ProfileSummary(
        summary=await long_term.get_user_profile_summary(user_id),
        keys=await long_term.get_user_profile_keys(user_id),
    )


@router.get("/profile", response_model=ProfileSummary)
async def get_profile(manager: ChatManager = Depends(get_chat_manager)):
    long_term = _long_term(manager)
    user_id = manager.current_user_id()
    return ProfileSummary(
        summary=await long_term.get_user_profile_summary(user_id),
        keys=await long_term.get_user_profile_keys(user_id),
    )


@router.get("/search")
async def search_memories(
    q: str = Query(..., min_length=1, description="Search query"),
    top_k: int = Query(5, ge=1, le=20),
    manager: ChatManager = Depends(get_chat_manager),
) -> List[Dict[str, Any]]:
    """Memories of the current user most similar to the query."""
    return await _long_term(manager).search(q, top_k=top_k, filters={"user_id": manager.current_user_id()})
