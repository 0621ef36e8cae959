"""
Unit tests for the Postgres transcript store.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from turodesk.db import Database
from turodesk.store import PostgresChatMessageHistory, message_from_role, role_from_message


@pytest.fixture
def db():
    db = MagicMock(spec=Database)
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetch = AsyncMock(return_value=[])
    return db


class TestRoleMapping:

    def test_from_role(self):
        assert isinstance(message_from_role("user", "x"), HumanMessage)
        assert isinstance(message_from_role("assistant", "x"), AIMessage)
        assert isinstance(message_from_role("ai", "x"), AIMessage)
        assert isinstance(message_from_role("tool", "x"), SystemMessage)

    def test_to_role(self):
        assert role_from_message(HumanMessage(content="x")) == "user"
        assert role_from_message(AIMessage(content="x")) == "assistant"
        assert role_from_message(SystemMessage(content="x")) == "system"


class TestPostgresChatMessageHistory:

    @pytest.mark.asyncio
    async def test_get_messages_maps_rows(self, db):
        db.fetch.return_value = [
            {"role": "user", "content": "hi"},
            {"role": "ai", "content": "hello"},
        ]
        messages = await PostgresChatMessageHistory(db, "s1").get_messages()

        assert [(m.type, m.content) for m in messages] == [("human", "hi"), ("ai", "hello")]
        sql, session_id = db.fetch.call_args.args
        assert "ORDER BY created_at ASC" in sql
        assert session_id == "s1"

    @pytest.mark.asyncio
    async def test_add_messages_in_order(self, db):
        history = PostgresChatMessageHistory(db, "s1")
        await history.add_messages([HumanMessage(content="q"), AIMessage(content="a")])

        assert [c.args[1:] for c in db.execute.call_args_list] == [("s1", "user", "q"), ("s1", "assistant", "a")]

    @pytest.mark.asyncio
    async def test_clear_returns_count(self, db):
        db.execute.return_value = "DELETE 4"
        assert await PostgresChatMessageHistory(db, "s1").clear() == 4
