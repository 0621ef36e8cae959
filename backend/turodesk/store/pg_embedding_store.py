"""
pgvector-backed memory store over the long_term_memories table.
Similarity ranking is done by Postgres (cosine distance operator ``<=>``).
"""

import json
from typing import Any, Dict, List, Sequence, Tuple

from ..db import Database, affected_rows, vector_literal
from ..models import MemoryRecord
from .embedding_store import EmbeddingStore, Filters

COLUMNS = "id, user_id, content, metadata, created_at, updated_at"


def build_where(filters: Filters, start: int = 1) -> Tuple[str, List[Any]]:
    """
    Translate equality filters into a WHERE clause.

    Metadata keys are passed as parameters (``metadata ->> $n``), never
    interpolated into the SQL text.
    """
    clauses: List[str] = []
    params: List[Any] = []
    index = start
    for key, value in (filters or {}).items():
        if key == "user_id":
            clauses.append(f"user_id = ${index}")
            params.append(str(value))
            index += 1
        else:
            clauses.append(f"metadata ->> ${index} = ${index + 1}")
            params.extend([key, str(value)])
            index += 2
    where = " WHERE " + " AND ".join(clauses) if clauses else ""
    return where, params


def _to_record(row) -> MemoryRecord:
    metadata = row["metadata"]
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return MemoryRecord(
        id=str(row["id"]),
        user_id=row["user_id"],
        content=row["content"],
        metadata=metadata or {},
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresEmbeddingStore(EmbeddingStore):

    def __init__(self, db: Database, table_name: str = "long_term_memories"):
        self.db = db
        self.table = table_name

    async def add(self, records: Sequence[MemoryRecord]) -> None:
        for record in records:
            await self.db.execute(
                f"INSERT INTO {self.table} "
                "(id, user_id, content, embedding, metadata, importance_score, created_at, updated_at) "
                "VALUES ($1::uuid, $2, $3, $4::vector, $5::jsonb, $6, $7, $8)",
                record.id,
                record.user_id,
                record.content,
                vector_literal(record.embedding),
                json.dumps(record.metadata, ensure_ascii=False),
                float(record.metadata.get("importance_score", 0.5)),
                record.created_at,
                record.updated_at,
            )

    async def query(self, embedding: Sequence[float], top_k: int = 5, filters: Filters = None) -> List[MemoryRecord]:
        where, params = build_where(filters, start=2)
        limit_index = len(params) + 2
        rows = await self.db.fetch(
            f"SELECT {COLUMNS} FROM {self.table}{where} "
            f"ORDER BY embedding <=> $1::vector LIMIT ${limit_index}",
            vector_literal(embedding), *params, top_k,
        )
        records = [_to_record(r) for r in rows]
        if records:
            await self.db.execute(
                f"UPDATE {self.table} SET access_count = access_count + 1, last_accessed = NOW() "
                "WHERE id = ANY($1::uuid[])",
                [r.id for r in records],
            )
        return records

    async def list(self, filters: Filters = None, limit: int = 50) -> List[MemoryRecord]:
        where, params = build_where(filters)
        rows = await self.db.fetch(
            f"SELECT {COLUMNS} FROM {self.table}{where} ORDER BY updated_at DESC LIMIT ${len(params) + 1}",
            *params, limit,
        )
        return [_to_record(r) for r in rows]

    async def update(
        self,
        record_id: str,
        content: str,
        embedding: Sequence[float],
        metadata: Dict[str, Any],
    ) -> bool:
        status = await self.db.execute(
            f"UPDATE {self.table} SET content = $2, embedding = $3::vector, metadata = $4::jsonb, "
            "updated_at = NOW() WHERE id = $1::uuid",
            record_id, content, vector_literal(embedding), json.dumps(metadata, ensure_ascii=False),
        )
        return affected_rows(status) > 0

    async def delete(self, filters: Filters = None) -> int:
        where, params = build_where(filters)
        status = await self.db.execute(f"DELETE FROM {self.table}{where}", *params)
        return affected_rows(status)
