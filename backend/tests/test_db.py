"""
Unit tests for the database wrapper, schema bootstrap and user queries.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from turodesk.db import Database, DatabaseQueries, init_schema

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _row(**overrides):
    row = {"id": "0b8f8e4c-5d5e-4c4e-9c52-6f0d3c1a2b3c", "username": "octocat",
           "email": None, "created_at": NOW, "updated_at": NOW}
    row.update(overrides)
    return row


class TestDatabase:

    @pytest.mark.asyncio
    async def test_requires_connection(self):
        db = Database("postgresql://localhost/x")
        assert not db.connected
        with pytest.raises(RuntimeError):
            await db.fetchval("SELECT 1")

    @pytest.mark.asyncio
    async def test_connect_pings_server(self):
        conn = AsyncMock()
        conn.fetchval.return_value = 1
        pool = MagicMock()
        pool.acquire.return_value.__aenter__ = AsyncMock(return_value=conn)
        pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)
        pool.close = AsyncMock()
        with patch("asyncpg.create_pool", AsyncMock(return_value=pool)) as create_pool:
            db = Database("postgresql://localhost/x", max_size=3, connect_timeout=2.0)
            await db.connect()

        assert db.connected
        assert create_pool.call_args.kwargs["max_size"] == 3
        conn.fetchval.assert_awaited_once_with("SELECT 1")

        await db.close()
        assert not db.connected

    @pytest.mark.asyncio
    async def test_init_schema_sets_dimensions(self):
        db = MagicMock(spec=Database)
        db.execute = AsyncMock()
        await init_schema(db, dimensions=768)

        sql = db.execute.call_args.args[0]
        assert "CREATE EXTENSION IF NOT EXISTS vector" in sql
        assert "vector(768)" in sql
        assert "USING hnsw (embedding vector_cosine_ops)" in sql


class TestDatabaseQueries:

    @pytest.fixture
    def db(self):
        db = MagicMock(spec=Database)
        db.fetchrow = AsyncMock()
        return db

    @pytest.mark.asyncio
    async def test_ensure_user_reuses_existing(self, db):
        db.fetchrow.return_value = _row()
        user = await DatabaseQueries(db).ensure_user_exists("octocat")
        assert user.username == "octocat"
        assert db.fetchrow.await_count == 1

    @pytest.mark.asyncio
    async def test_ensure_user_creates_missing(self, db):
        db.fetchrow.side_effect = [None, _row(email="o@example.com")]
        user = await DatabaseQueries(db).ensure_user_exists("octocat", "o@example.com")
        assert user.email == "o@example.com"
        assert db.fetchrow.call_args.args[0].startswith("INSERT INTO users")

    @pytest.mark.asyncio
    async def test_ensure_user_updates_email(self, db):
        db.fetchrow.side_effect = [_row(email="old@example.com"), _row(email="new@example.com")]
        user = await DatabaseQueries(db).ensure_user_exists("octocat", "new@example.com")
        assert user.email == "new@example.com"
        assert db.fetchrow.call_args.args[0].startswith("UPDATE users")

    @pytest.mark.asyncio
    async def test_get_user_by_id_missing(self, db):
        db.fetchrow.return_value = None
        assert await DatabaseQueries(db).get_user_by_id("0b8f8e4c-5d5e-4c4e-9c52-6f0d3c1a2b3c") is None
