"""
Unit tests for the memory stores and the SQL helpers behind them.
"""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock

from turodesk.db import Database, affected_rows, vector_literal
from turodesk.models import MemoryRecord
from turodesk.store import JSONEmbeddingStore, PostgresEmbeddingStore, cosine_similarity
from turodesk.store.pg_embedding_store import build_where


def _record(record_id, user_id="u1", embedding=None, **metadata):
    return MemoryRecord(
        id=record_id,
        user_id=user_id,
        content=f"content {record_id}",
        embedding=embedding or [1.0, 0.0],
        metadata=metadata,
    )


class TestHelpers:

    def test_cosine_similarity(self):
        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([0, 0], [1, 0]) == 0.0

    def test_vector_literal(self):
        assert vector_literal([1, 0.5, -2]) == "[1.0,0.5,-2.0]"

    def test_affected_rows(self):
        assert affected_rows("DELETE 3") == 3
        assert affected_rows("UPDATE 0") == 0
        assert affected_rows("") == 0

    def test_build_where_parameterizes_metadata_keys(self):
        where, params = build_where({"user_id": "u1", "category": "conversation"}, start=2)
        assert where == " WHERE user_id = $2 AND metadata ->> $3 = $4"
        assert params == ["u1", "category", "conversation"]

    def test_build_where_empty(self):
        assert build_where(None) == ("", [])


class TestJSONEmbeddingStore:

    @pytest.mark.asyncio
    async def test_query_ranks_by_similarity(self, storage):
        store = JSONEmbeddingStore(storage)
        await store.add([
            _record("a", embedding=[1.0, 0.0]),
            _record("b", embedding=[0.7, 0.7]),
            _record("c", embedding=[0.0, 1.0]),
        ])
        results = await store.query([0.0, 1.0], top_k=2)
        assert [r.id for r in results] == ["c", "b"]

    @pytest.mark.asyncio
    async def test_filters_on_user_and_metadata(self, storage):
        store = JSONEmbeddingStore(storage)
        await store.add([
            _record("a", user_id="u1", category="conversation"),
            _record("b", user_id="u1", category="user_profile_summary"),
            _record("c", user_id="u2", category="conversation"),
        ])
        results = await store.list({"user_id": "u1", "category": "conversation"})
        assert [r.id for r in results] == ["a"]

    @pytest.mark.asyncio
    async def test_persisted_across_instances(self, storage):
        await JSONEmbeddingStore(storage).add([_record("a", category="chat")])
        reloaded = await JSONEmbeddingStore(storage).list()
        assert reloaded[0].id == "a"
        assert reloaded[0].metadata == {"category": "chat"}
        raw = json.loads((await storage.load("memory/embeddings.json")).decode("utf-8"))
        assert raw[0]["embedding"] == [1.0, 0.0]

    @pytest.mark.asyncio
    async def test_concurrent_writes_all_persisted(self, storage):
        store = JSONEmbeddingStore(storage)
        await asyncio.gather(*(store.add([_record(f"r{i}")]) for i in range(4)))

        reloaded = await JSONEmbeddingStore(storage).list()
        assert sorted(r.id for r in reloaded) == ["r0", "r1", "r2", "r3"]

    @pytest.mark.asyncio
    async def test_update(self, storage):
        store = JSONEmbeddingStore(storage)
        await store.add([_record("a")])
        assert await store.update("a", "new", [0.0, 1.0], {"category": "x"}) is True
        assert await store.update("missing", "new", [0.0, 1.0], {}) is False
        record = (await store.list())[0]
        assert record.content == "new"
        assert record.metadata == {"category": "x"}

    @pytest.mark.asyncio
    async def test_delete_returns_count(self, storage):
        store = JSONEmbeddingStore(storage)
        await store.add([_record("a", category="chat"), _record("b", category="chat"), _record("c")])
        assert await store.delete({"category": "chat"}) == 2
        assert [r.id for r in await store.list()] == ["c"]

    @pytest.mark.asyncio
    async def test_unreadable_file_starts_empty(self, storage):
        await storage.save("memory/embeddings.json", "not json")
        assert await JSONEmbeddingStore(storage).list() == []


class TestPostgresEmbeddingStore:

    def _db(self):
        db = MagicMock(spec=Database)
        db.execute = AsyncMock(return_value="DELETE 2")
        db.fetch = AsyncMock(return_value=[])
        return db

    @pytest.mark.asyncio
    async def test_query_orders_by_cosine_distance(self):
        db = self._db()
        store = PostgresEmbeddingStore(db)
        await store.query([0.1, 0.2], top_k=3, filters={"user_id": "u1"})

        sql, *args = db.fetch.call_args.args
        assert "ORDER BY embedding <=> $1::vector LIMIT $3" in sql
        assert "WHERE user_id = $2" in sql
        assert args == ["[0.1,0.2]", "u1", 3]

    @pytest.mark.asyncio
    async def test_add_serializes_vector_and_metadata(self):
        db = self._db()
        store = PostgresEmbeddingStore(db)
        await store.add([_record("11111111-1111-1111-1111-111111111111", category="chat", importance_score=0.8)])

        args = db.execute.call_args.args
        assert "$4::vector" in args[0]
        assert args[4] == "[1.0,0.0]"
        assert json.loads(args[5]) == {"category": "chat", "importance_score": 0.8}
        assert args[6] == 0.8

    @pytest.mark.asyncio
    async def test_delete_returns_affected_rows(self):
        db = self._db()
        store = PostgresEmbeddingStore(db)
        assert await store.delete({"user_id": "u1", "category": "chat"}) == 2
        assert db.execute.call_args.args[1:] == ("u1", "category", "chat")
