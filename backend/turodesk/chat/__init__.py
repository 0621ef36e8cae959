"""Chat module - session management."""

from .manager import ChatManager, SEND_FAILED

__all__ = ['ChatManager', 'SEND_FAILED']
