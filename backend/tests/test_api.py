"""
API tests for the local HTTP surface used by the desktop shell.
The chat manager runs for real on a temp data dir; the agent is mocked.
"""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient

from turodesk.agent import TurodeskAgent
from turodesk.api import chats as chats_api
from turodesk.auth import GitHubAuth
from turodesk.chat import ChatManager
from turodesk.main import app


@pytest.fixture
def mock_agent():
    agent = AsyncMock(spec=TurodeskAgent)
    agent.get_messages.return_value = []
    agent.send_message.return_value = "Hello!"

    async def fake_stream(session_id, text, on_token, prior=None):
        for token in ["Hel", "lo", "!"]:
            await on_token(token)
        return "Hello!"

    agent.send_message_stream.side_effect = fake_stream
    return agent


@pytest.fixture
def manager(test_settings, storage, mock_agent, long_term):
    manager = ChatManager(test_settings, storage)
    manager.agent = mock_agent
    manager.long_term = long_term
    return manager


@pytest.fixture
def client(manager, test_settings, storage):
    app.state.chat_manager = manager
    app.state.auth = GitHubAuth(test_settings, storage)
    yield TestClient(app)
    del app.state.chat_manager
    del app.state.auth


def _events(response):
    return [json.loads(line[len("data: "):]) for line in response.text.splitlines() if line.startswith("data: ")]


class TestChatsAPI:

    def test_create_and_list(self, client):
        created = client.post("/chats", json={"title": "Ideas"})
        assert created.status_code == 201
        assert created.json()["title"] == "Ideas"

        listed = client.get("/chats")
        assert listed.status_code == 200
        assert [s["id"] for s in listed.json()] == [created.json()["id"]]

    def test_create_without_body(self, client):
        response = client.post("/chats")
        assert response.status_code == 201
        assert response.json()["title"] == "New conversation"

    def test_rename(self, client):
        chat_id = client.post("/chats", json={}).json()["id"]
        response = client.patch(f"/chats/{chat_id}", json={"title": "Renamed"})
        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"

    def test_delete(self, client, mock_agent):
        chat_id = client.post("/chats", json={}).json()["id"]
        assert client.delete(f"/chats/{chat_id}").status_code == 204
        assert client.get("/chats").json() == []
        mock_agent.delete_thread.assert_awaited_once_with(chat_id)

    def test_unknown_chat_is_404(self, client):
        assert client.patch("/chats/missing", json={"title": "x"}).status_code == 404
        assert client.delete("/chats/missing").status_code == 404
        assert client.get("/chats/missing/messages").status_code == 404
        response = client.post("/chats/missing/messages", json={"content": "hi"})
        assert response.status_code == 404
        assert response.json()["detail"] == "Session not found: missing"

    def test_send_and_fetch_messages(self, client):
        chat_id = client.post("/chats", json={}).json()["id"]

        response = client.post(f"/chats/{chat_id}/messages", json={"content": "hi"})
        assert response.status_code == 200
        assert response.json()["role"] == "assistant"
        assert response.json()["content"] == "Hello!"

        messages = client.get(f"/chats/{chat_id}/messages").json()
        assert [(m["role"], m["content"]) for m in messages] == [("user", "hi"), ("assistant", "Hello!")]

    def test_empty_message_rejected(self, client):
        chat_id = client.post("/chats", json={}).json()["id"]
        assert client.post(f"/chats/{chat_id}/messages", json={"content": ""}).status_code == 422

    def test_send_failure_is_502(self, client, mock_agent):
        chat_id = client.post("/chats", json={}).json()["id"]
        mock_agent.send_message.side_effect = RuntimeError("db down")
        response = client.post(f"/chats/{chat_id}/messages", json={"content": "hi"})
        assert response.status_code == 502
        assert "check PostgreSQL connection" in response.json()["detail"]

    def test_agent_not_initialized_is_503(self, client, manager):
        chat_id = client.post("/chats", json={}).json()["id"]
        manager.agent = None
        response = client.post(f"/chats/{chat_id}/messages", json={"content": "hi"})
        assert response.status_code == 503

    def test_stream(self, client):
        chat_id = client.post("/chats", json={}).json()["id"]

        response = client.post(f"/chats/{chat_id}/messages", params={"stream": "true"}, json={"content": "hi"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _events(response)
        assert [e["type"] for e in events] == ["token", "token", "token", "done"]
        assert "".join(e["token"] for e in events if e["type"] == "token") == "Hello!"
        assert all(e["session_id"] == chat_id for e in events)
        assert events[-1]["message"]["content"] == "Hello!"

    def test_stream_error_event(self, client, mock_agent):
        chat_id = client.post("/chats", json={}).json()["id"]
        mock_agent.send_message_stream.side_effect = RuntimeError("boom")

        response = client.post(f"/chats/{chat_id}/messages", params={"stream": "true"}, json={"content": "hi"})

        events = _events(response)
        assert events == [{
            "type": "error",
            "session_id": chat_id,
            "error": "Failed to send message - check PostgreSQL connection",
        }]

    def test_stream_unknown_chat_is_404(self, client):
        response = client.post("/chats/missing/messages", params={"stream": "true"}, json={"content": "hi"})
        assert response.status_code == 404


class TestDetachedStreams:

    @pytest.mark.asyncio
    async def test_drain_waits_for_detached_streams(self):
        finished = []

        async def finish_later():
            await asyncio.sleep(0.01)
            finished.append(True)

        async def fail_later():
            await asyncio.sleep(0)
            raise RuntimeError("agent gone")

        tasks = [asyncio.create_task(finish_later()), asyncio.create_task(fail_later())]
        for task in tasks:
            chats_api._pending_streams.add(task)
            task.add_done_callback(chats_api._pending_streams.discard)

        await chats_api.drain_pending_streams()

        assert finished == [True]
        assert all(task.done() for task in tasks)
        assert not chats_api._pending_streams


class TestMemoryAPI:

    def test_upsert_profile_and_delete(self, client):
        response = client.put("/memory/facts", json={"key": "nome", "content": "Arthur"})
        assert response.status_code == 200
        assert response.json() == {
            "summary": "The user's name is Arthur.",
            "keys": {"name": "The user's name is Arthur."},
        }

        profile = client.get("/memory/profile").json()
        assert profile["summary"] == "The user's name is Arthur."

        facts = client.get("/memory/facts").json()
        assert len(facts) == 1

        deleted = client.delete("/memory/facts/name")
        assert deleted.status_code == 200
        assert deleted.json() == {"summary": "", "keys": {}}
        assert client.delete("/memory/facts/name").status_code == 404

    def test_invalid_key(self, client):
        response = client.put("/memory/facts", json={"key": "!!", "content": "x"})
        assert response.status_code == 422

    def test_search(self, client):
        client.put("/memory/facts", json={"key": "city", "content": "Recife"})
        response = client.get("/memory/search", params={"q": "The user lives in Recife.", "top_k": 3})
        assert response.status_code == 200
        assert response.json()[0]["content"] == "The user lives in Recife."

    def test_memory_disabled(self, client, manager):
        manager.long_term = None
        assert client.get("/memory/profile").status_code == 503


class TestAuthAPI:

    def test_state_logged_out(self, client):
        response = client.get("/auth/state")
        assert response.status_code == 200
        assert response.json()["is_authenticated"] is False

    def test_login_returns_authorize_url(self, client):
        response = client.post("/auth/login")
        assert response.status_code == 200
        data = response.json()
        assert data["authorize_url"].startswith("https://github.com/login/oauth/authorize?")
        assert f"state={data['state']}" in data["authorize_url"]

    def test_login_not_configured(self, client, test_settings):
        test_settings.github_client_secret = None
        assert client.post("/auth/login").status_code == 503

    def test_callback_error(self, client):
        assert client.get("/auth/callback", params={"error": "access_denied"}).status_code == 400
        assert client.get("/auth/callback").status_code == 400

    def test_callback_exchanges_code(self, client):
        http_client = AsyncMock()
        token = MagicMock()
        token.json.return_value = {"access_token": "t"}
        user = MagicMock()
        user.json.return_value = {"id": 1, "login": "octocat", "email": "o@example.com"}
        http_client.post.return_value = token
        http_client.get.return_value = user

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client_class.return_value.__aenter__ = AsyncMock(return_value=http_client)
            mock_client_class.return_value.__aexit__ = AsyncMock(return_value=False)
            response = client.get("/auth/callback", params={"code": "abc"})

        assert response.status_code == 200
        assert response.json()["is_authenticated"] is True
        assert response.json()["user"]["login"] == "octocat"
        assert client.get("/auth/state").json()["is_authenticated"] is True

        assert client.post("/auth/logout").json()["is_authenticated"] is False


class TestRootEndpoints:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["app"] == "Turodesk"
        assert response.json()["status"] == "running"

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["agent_ready"] is True
        assert data["database"] is False
