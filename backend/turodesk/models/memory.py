"""
Memory Models - Long-term memory records and the user-fact API payloads.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


@dataclass
class MemoryRecord:
    """
    A stored memory document.

    ``embedding`` is empty when a record is read back from Postgres; only the
    JSON store keeps vectors in memory.
    """
    id: str
    user_id: str
    content: str
    embedding: List[float] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used by the JSON store."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "content": self.content,
            "embedding": self.embedding,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MemoryRecord":
        return MemoryRecord(
            id=data["id"],
            user_id=data.get("user_id", ""),
            content=data.get("content", ""),
            embedding=list(data.get("embedding") or []),
            metadata=dict(data.get("metadata") or {}),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data.get("updated_at") or data["created_at"]),
        )


class FactUpsert(BaseModel):
    """Request body for adding or replacing a user fact."""
    key: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    tags: Optional[List[str]] = None


class ProfileSummary(BaseModel):
    """The user's profile summary and its key map."""
    summary: str
    keys: Dict[str, str]
