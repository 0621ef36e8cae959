"""
Chat API endpoints - sessions and messages.
"""

import asyncio
import json
import logging
from typing import List, Optional, Set

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse

from ..chat import ChatManager
from ..core import TurodeskError
from ..models import ChatMessage, ChatSessionMeta, MessageSend, SessionCreate, SessionRename
from .deps import get_chat_manager, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chats", tags=["chats"])

# Streams keep running after a client disconnects so the exchange is still recorded
_pending_streams: Set[asyncio.Task] = set()


async def drain_pending_streams() -> None:
    """Wait for streams whose client went away; called before the pools close."""
    if _pending_streams:
        logger.info(f"Waiting for {len(_pending_streams)} detached stream(s)")
        await asyncio.gather(*list(_pending_streams), return_exceptions=True)


def _sse(event: dict) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


@router.get("", response_model=List[ChatSessionMeta])
async def list_chats(manager: ChatManager = Depends(get_chat_manager)):
    """List sessions, most recently updated first."""
    return manager.list_sessions()


@router.post("", response_model=ChatSessionMeta, status_code=status.HTTP_201_CREATED)
async def create_chat(
    body: Optional[SessionCreate] = None,
    manager: ChatManager = Depends(get_chat_manager),
):
    return await manager.create_session(body.title if body else None)


@router.patch("/{chat_id}", response_model=ChatSessionMeta)
async def rename_chat(
    chat_id: str,
    body: SessionRename,
    manager: ChatManager = Depends(get_chat_manager),
):
    try:
        return await manager.rename_session(chat_id, body.title)
    except TurodeskError as e:
        raise http_error(e)


@router.delete("/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat(chat_id: str, manager: ChatManager = Depends(get_chat_manager)):
    try:
        await manager.delete_session(chat_id)
    except TurodeskError as e:
        raise http_error(e)


@router.get("/{chat_id}/messages", response_model=List[ChatMessage])
async def get_messages(chat_id: str, manager: ChatManager = Depends(get_chat_manager)):
    try:
        return await manager.get_messages(chat_id)
    except TurodeskError as e:
        raise http_error(e)


@router.post("/{chat_id}/messages")
async def send_message(
    chat_id: str,
    body: MessageSend,
    stream: bool = Query(False, description="Enable streaming output"),
    manager: ChatManager = Depends(get_chat_manager),
):
    """
    Send a message to the assistant.

    Args:
        chat_id: Session id
        body: The user's message
        stream: Enable Server-Sent Events streaming

    Returns:
        ChatMessage (stream=false) or StreamingResponse (stream=true) with
        events {"type": "token"|"done"|"error", "session_id": ...}
    """
    if not stream:
        try:
            return await manager.send_message(chat_id, body.content)
        except TurodeskError as e:
            raise http_error(e)

    # Unknown sessions and a missing agent are reported as HTTP errors, not events
    try:
        manager.get_session(chat_id)
        manager.require_agent()
    except TurodeskError as e:
        raise http_error(e)

    async def event_generator():
        queue: asyncio.Queue = asyncio.Queue()

        async def on_token(token: str) -> None:
            await queue.put({"type": "token", "session_id": chat_id, "token": token})

        async def run() -> None:
            try:
                reply = await manager.send_message_stream(chat_id, body.content, on_token)
                await queue.put({"type": "done", "session_id": chat_id, "message": reply.model_dump(mode="json")})
            except Exception as e:
                await queue.put({"type": "error", "session_id": chat_id, "error": str(e)})
            finally:
                await queue.put(None)

        task = asyncio.create_task(run())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield _sse(event)
        finally:
            if not task.done():
                logger.info(f"Client left stream of {chat_id}; finishing in background")
                _pending_streams.add(task)
                task.add_done_callback(_pending_streams.discard)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
