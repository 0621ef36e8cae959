"""
PostgreSQL access - asyncpg pool wrapper and schema bootstrap.
"""

import logging
from typing import Any, List, Optional, Sequence

import asyncpg

logger = logging.getLogger(__name__)


class Database:
    """Thin wrapper around an asyncpg connection pool."""

    def __init__(
        self,
        dsn: str,
        min_size: int = 1,
        max_size: int = 10,
        connect_timeout: float = 2.0,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.connect_timeout = connect_timeout
        self.pool: Optional[asyncpg.Pool] = None

    @property
    def connected(self) -> bool:
        return self.pool is not None

    async def connect(self) -> None:
        """Open the pool and verify the server answers."""
        if self.pool is not None:
            return
        self.pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            timeout=self.connect_timeout,
        )
        await self.ping()
        logger.info("PostgreSQL connected successfully")

    async def close(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("PostgreSQL connection pool closed")

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.pool

    async def ping(self) -> None:
        await self.fetchval("SELECT 1")

    async def execute(self, query: str, *args: Any) -> str:
        async with self._require_pool().acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> List[asyncpg.Record]:
        async with self._require_pool().acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        async with self._require_pool().acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self._require_pool().acquire() as conn:
            return await conn.fetchval(query, *args)


def affected_rows(status: str) -> int:
    """Row count from an asyncpg command status such as ``DELETE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


def vector_literal(vec: Sequence[float]) -> str:
    """pgvector text literal: '[v1,v2,...]'."""
    return "[" + ",".join(str(float(v)) for v in vec) + "]"


SCHEMA_SQL = """
CREATE EXTENSION IF NOT EXISTS vector;
CREATE EXTENSION IF NOT EXISTS pgcrypto;

CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    username TEXT UNIQUE,
    email TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS messages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    session_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
);
CREATE INDEX IF NOT EXISTS idx_messages_session_created ON messages(session_id, created_at);

CREATE TABLE IF NOT EXISTS long_term_memories (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id TEXT NOT NULL,
    content TEXT NOT NULL,
    embedding vector({dimensions}),
    metadata JSONB DEFAULT '{{}}',
    importance_score FLOAT DEFAULT 0.5,
    access_count INTEGER DEFAULT 0,
    last_accessed TIMESTAMPTZ DEFAULT NOW(),
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_memories_user_id ON long_term_memories(user_id);
CREATE INDEX IF NOT EXISTS idx_memories_embedding
    ON long_term_memories USING hnsw (embedding vector_cosine_ops);
"""


async def init_schema(db: Database, dimensions: int = 1536) -> None:
    """Create tables and indexes if they don't exist yet."""
    await db.execute(SCHEMA_SQL.format(dimensions=int(dimensions)))
    logger.info("Database schema ready")
