"""LLM module - chat and embedding model construction."""

from .factory import create_chat_model, create_embeddings

__all__ = ['create_chat_model', 'create_embeddings']
