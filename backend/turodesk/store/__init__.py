"""Store module - conversation transcripts and memory documents."""

from .message_history import PostgresChatMessageHistory, message_from_role, role_from_message
from .embedding_store import EmbeddingStore, JSONEmbeddingStore, cosine_similarity
from .pg_embedding_store import PostgresEmbeddingStore

__all__ = [
    'PostgresChatMessageHistory',
    'message_from_role',
    'role_from_message',
    'EmbeddingStore',
    'JSONEmbeddingStore',
    'PostgresEmbeddingStore',
    'cosine_similarity',
]
