"""
Embedding stores - persistence for long-term memory documents.

Two implementations share one interface: PostgresEmbeddingStore (pgvector,
see pg_embedding_store.py) and JSONEmbeddingStore below, which keeps every
record in a single JSON file and ranks by cosine similarity.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..models import MemoryRecord
from ..storage import StorageInterface

logger = logging.getLogger(__name__)

Filters = Optional[Dict[str, Any]]


class EmbeddingStore(ABC):
    """
    Contract for memory document stores.

    Filters are equality matches; ``user_id`` matches the record's owner and
    every other key matches ``metadata[key]``.
    """

    @abstractmethod
    async def add(self, records: Sequence[MemoryRecord]) -> None:
        pass

    @abstractmethod
    async def query(self, embedding: Sequence[float], top_k: int = 5, filters: Filters = None) -> List[MemoryRecord]:
        """Most similar records first."""
        pass

    @abstractmethod
    async def list(self, filters: Filters = None, limit: int = 50) -> List[MemoryRecord]:
        """Most recently updated first."""
        pass

    @abstractmethod
    async def update(
        self,
        record_id: str,
        content: str,
        embedding: Sequence[float],
        metadata: Dict[str, Any],
    ) -> bool:
        pass

    @abstractmethod
    async def delete(self, filters: Filters = None) -> int:
        """Delete matching records and return how many were removed."""
        pass


def matches(record: MemoryRecord, filters: Filters) -> bool:
    if not filters:
        return True
    for key, value in filters.items():
        if key == "user_id":
            if record.user_id != value:
                return False
        elif record.metadata.get(key) != value:
            return False
    return True


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    length = min(len(a), len(b))
    va = np.asarray(a[:length], dtype=np.float64)
    vb = np.asarray(b[:length], dtype=np.float64)
    return float(va @ vb / (np.linalg.norm(va) * np.linalg.norm(vb) + 1e-12))


class JSONEmbeddingStore(EmbeddingStore):
    """File-backed store; the whole file is rewritten on every change, one writer at a time."""

    def __init__(self, storage: StorageInterface, path: str = "memory/embeddings.json"):
        self.storage = storage
        self.path = path
        self._cache: Optional[List[MemoryRecord]] = None
        self._write_lock = asyncio.Lock()

    async def _records(self) -> List[MemoryRecord]:
        if self._cache is None:
            raw = await self.storage.load(self.path)
            if raw is None:
                self._cache = []
            else:
                try:
                    self._cache = [MemoryRecord.from_dict(item) for item in json.loads(raw.decode("utf-8"))]
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning(f"Discarding unreadable embedding store {self.path}: {e}")
                    self._cache = []
        return self._cache

    async def _persist(self) -> None:
        records = await self._records()
        content = json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)
        await self.storage.save(self.path, content)

    async def add(self, records: Sequence[MemoryRecord]) -> None:
        async with self._write_lock:
            (await self._records()).extend(records)
            await self._persist()

    async def query(self, embedding: Sequence[float], top_k: int = 5, filters: Filters = None) -> List[MemoryRecord]:
        source = [r for r in await self._records() if matches(r, filters) and r.embedding]
        scored = sorted(source, key=lambda r: cosine_similarity(embedding, r.embedding), reverse=True)
        return scored[:top_k]

    async def list(self, filters: Filters = None, limit: int = 50) -> List[MemoryRecord]:
        source = [r for r in await self._records() if matches(r, filters)]
        return sorted(source, key=lambda r: r.updated_at, reverse=True)[:limit]

    async def update(
        self,
        record_id: str,
        content: str,
        embedding: Sequence[float],
        metadata: Dict[str, Any],
    ) -> bool:
        async with self._write_lock:
            for record in await self._records():
                if record.id == record_id:
                    record.content = content
                    record.embedding = list(embedding)
                    record.metadata = dict(metadata)
                    record.updated_at = datetime.now(timezone.utc)
                    await self._persist()
                    return True
        return False

    async def delete(self, filters: Filters = None) -> int:
        async with self._write_lock:
            records = await self._records()
            kept = [r for r in records if not matches(r, filters)]
            removed = len(records) - len(kept)
            if removed:
                self._cache = kept
                await self._persist()
        return removed
