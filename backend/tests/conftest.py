"""
Shared test fixtures and configuration.
"""

import pytest
import os

# Set test environment variables before importing turodesk modules
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("DATA_DIR", "/tmp/turodesk_test_data")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_API_REQUESTS", "false")

from langchain_core.embeddings import DeterministicFakeEmbedding

from turodesk.config import Settings
from turodesk.memory import LongTermMemory
from turodesk.storage import LocalStorage
from turodesk.store import JSONEmbeddingStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "data"))


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path / "data"),
        openai_api_key="test-openai-key",
        log_file_enabled=False,
        github_client_id="gh-client",
        github_client_secret="gh-secret",
    )


@pytest.fixture
def embeddings():
    return DeterministicFakeEmbedding(size=16)


@pytest.fixture
def long_term(storage, embeddings):
    """Long-term memory over the JSON store, no network or database."""
    return LongTermMemory(JSONEmbeddingStore(storage), embeddings)
