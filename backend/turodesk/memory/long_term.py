"""
Long-term memory - semantic memories and the per-user profile summary.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from langchain_core.embeddings import Embeddings

from ..models import MemoryRecord
from ..store import EmbeddingStore
from .profile import canonicalize_key, merge_fact, remove_fact, render_fact_sentence, summary_text

logger = logging.getLogger(__name__)

PROFILE_CATEGORY = "user_profile_summary"
DEFAULT_USER_ID = "local_user"


class LongTermMemory:
    """
    Memory documents for a user, retrieved by embedding similarity.

    Besides free-form memories (one document per conversation turn, category
    ``conversation``), every user owns at most one profile summary document
    that accumulates the facts the assistant learned about them. The summary
    is re-embedded whenever a fact changes so it stays searchable. Changes to
    one user's summary run one at a time.
    """

    def __init__(self, store: EmbeddingStore, embeddings: Embeddings):
        """
        Args:
            store: Where memory documents live (Postgres or JSON file)
            embeddings: Embedding model used for documents and queries
        """
        self.store = store
        self.embeddings = embeddings
        self._profile_locks: Dict[str, asyncio.Lock] = {}

    async def add_memory(
        self,
        thread_id: str,
        content: str,
        category: str = "conversation",
        tags: Optional[List[str]] = None,
        importance_score: float = 0.5,
        user_id: str = DEFAULT_USER_ID,
    ) -> MemoryRecord:
        """
        Embed and store a memory document.

        Args:
            thread_id: Conversation the memory came from
            content: Text to remember
            category: Grouping used for bulk deletion ("conversation", "chat", ...)
            tags: Free-form labels
            importance_score: 0..1 weight stored with the document
            user_id: Owner of the memory

        Returns:
            MemoryRecord: The stored record
        """
        vector = await self.embeddings.aembed_query(content)
        record = MemoryRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            content=content,
            embedding=vector,
            metadata={
                "thread_id": thread_id,
                "user_id": user_id,
                "category": category,
                "tags": tags or [],
                "importance_score": importance_score,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "source_type": "conversation",
            },
        )
        await self.store.add([record])
        logger.debug(f"Stored {category} memory for user {user_id} ({len(content)} chars)")
        return record

    async def search(
        self,
        query: str,
        top_k: int = 5,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Find the memories most similar to a query.

        Returns:
            List of dicts with 'content' and 'metadata'
        """
        vector = await self.embeddings.aembed_query(query)
        records = await self.store.query(vector, top_k=top_k, filters=filters)
        return [{"content": r.content, "metadata": r.metadata} for r in records]

    async def list_user_facts(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """All memory documents of a user, most recently updated first."""
        records = await self.store.list({"user_id": user_id}, limit=limit)
        return [{"id": r.id, "content": r.content, "metadata": r.metadata} for r in records]

    async def delete_by_category(self, user_id: str, category: str) -> int:
        removed = await self.store.delete({"user_id": user_id, "category": category})
        logger.info(f"Removed {removed} {category} memories for user {user_id}")
        return removed

    def _profile_lock(self, user_id: str) -> asyncio.Lock:
        return self._profile_locks.setdefault(user_id, asyncio.Lock())

    async def _load_profile(self, user_id: str) -> Optional[MemoryRecord]:
        records = await self.store.list({"user_id": user_id, "category": PROFILE_CATEGORY}, limit=1)
        return records[0] if records else None

    async def update_user_profile_summary_from_fact(
        self,
        user_id: str,
        key: str,
        content: str,
        tags: Optional[List[str]] = None,
    ) -> str:
        """
        Fold one fact into the user's profile summary.

        The key is canonicalized, the content rendered into a sentence, and
        the sentence replaces any earlier one for the same key. The summary
        document is created on first use and re-embedded on every update.

        Returns:
            str: The updated summary text

        Raises:
            ValueError: If key or content is empty
        """
        canonical = canonicalize_key(key)
        sentence = render_fact_sentence(canonical, content)

        async with self._profile_lock(user_id):
            text = await self._merge_into_profile(user_id, canonical, sentence, tags)

        logger.info(f"Profile summary updated for user {user_id}: key={canonical}")
        return text

    async def _merge_into_profile(
        self,
        user_id: str,
        canonical: str,
        sentence: str,
        tags: Optional[List[str]],
    ) -> str:
        existing = await self._load_profile(user_id)
        facts = dict(existing.metadata.get("facts", {})) if existing else {}
        key_tags = dict(existing.metadata.get("tags", {})) if existing else {}

        facts = merge_fact(facts, canonical, sentence)
        key_tags[canonical] = list(tags) if tags else ["user_fact"]
        text = summary_text(facts)
        vector = await self.embeddings.aembed_query(text)

        metadata = {
            "user_id": user_id,
            "category": PROFILE_CATEGORY,
            "facts": facts,
            "tags": key_tags,
            "importance_score": 0.8,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source_type": "user_profile",
        }

        if existing:
            await self.store.update(existing.id, text, vector, metadata)
        else:
            await self.store.add([MemoryRecord(
                id=str(uuid.uuid4()),
                user_id=user_id,
                content=text,
                embedding=vector,
                metadata=metadata,
            )])
        return text

    async def remove_user_profile_fact(self, user_id: str, key: str) -> bool:
        """
        Drop one fact from the profile summary.

        Returns:
            bool: True if the key was present
        """
        canonical = canonicalize_key(key)
        async with self._profile_lock(user_id):
            return await self._drop_from_profile(user_id, canonical)

    async def _drop_from_profile(self, user_id: str, canonical: str) -> bool:
        existing = await self._load_profile(user_id)
        if existing is None or canonical not in existing.metadata.get("facts", {}):
            return False

        facts = remove_fact(existing.metadata["facts"], canonical)
        if not facts:
            await self.store.delete({"user_id": user_id, "category": PROFILE_CATEGORY})
            logger.info(f"Profile summary emptied for user {user_id}")
            return True

        key_tags = {k: v for k, v in existing.metadata.get("tags", {}).items() if k != canonical}
        text = summary_text(facts)
        vector = await self.embeddings.aembed_query(text)
        metadata = {
            **existing.metadata,
            "facts": facts,
            "tags": key_tags,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        await self.store.update(existing.id, text, vector, metadata)
        logger.info(f"Profile fact removed for user {user_id}: key={canonical}")
        return True

    async def get_user_profile_summary(self, user_id: str) -> str:
        existing = await self._load_profile(user_id)
        return existing.content if existing else ""

    async def get_user_profile_keys(self, user_id: str) -> Dict[str, str]:
        existing = await self._load_profile(user_id)
        return dict(existing.metadata.get("facts", {})) if existing else {}
