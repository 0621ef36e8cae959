"""API module."""

from .auth import router as auth_router
from .chats import drain_pending_streams, router as chats_router
from .memory import router as memory_router

__all__ = ['auth_router', 'chats_router', 'memory_router', 'drain_pending_streams']
