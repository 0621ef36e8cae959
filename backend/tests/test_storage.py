"""
Unit tests for the local file storage.
"""

import asyncio
import pytest

from turodesk.storage import LocalStorage


class TestLocalStorage:

    @pytest.mark.asyncio
    async def test_save_and_load_text(self, storage):
        await storage.save("sessions.json", "[]")
        assert await storage.load("sessions.json") == b"[]"
        assert await storage.exists("sessions.json")

    @pytest.mark.asyncio
    async def test_save_bytes_creates_directories(self, storage):
        await storage.save("history/abc.json", b"{}")
        assert await storage.load("history/abc.json") == b"{}"
        assert await storage.list("history") == ["history/abc.json"]

    @pytest.mark.asyncio
    async def test_overwrite_leaves_no_tmp_file(self, storage):
        await storage.save("user.json", "one")
        await storage.save("user.json", "two")
        assert await storage.load("user.json") == b"two"
        assert await storage.list(".") == ["user.json"]

    @pytest.mark.asyncio
    async def test_concurrent_saves_to_one_path(self, storage):
        payloads = [f"version {i}" * 1000 for i in range(5)]
        await asyncio.gather(*(storage.save("memory/embeddings.json", p) for p in payloads))

        assert (await storage.load("memory/embeddings.json")).decode("utf-8") in payloads
        assert await storage.list("memory") == ["memory/embeddings.json"]

    @pytest.mark.asyncio
    async def test_missing_file(self, storage):
        assert await storage.load("nope.json") is None
        assert not await storage.exists("nope.json")
        assert await storage.delete("nope.json") is False
        assert await storage.list("missing-dir") == []

    @pytest.mark.asyncio
    async def test_delete(self, storage):
        await storage.save("auth.json", "{}")
        assert await storage.delete("auth.json") is True
        assert await storage.load("auth.json") is None

    @pytest.mark.asyncio
    async def test_path_traversal_rejected(self, storage):
        with pytest.raises(ValueError):
            await storage.save("../outside.json", "x")

    def test_base_dir_created(self, tmp_path):
        LocalStorage(str(tmp_path / "nested" / "data"))
        assert (tmp_path / "nested" / "data").is_dir()
