"""
Pytest configuration and shared fixtures.
"""

import logging
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from fakes import API_KEY, EMBED_URL, LLM_URL, QDRANT_URL, VOCABULARY, FakeOllama, FakeQdrant
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger


# ============================================================================
# Environment and config
# ============================================================================


@pytest.fixture(autouse=True)
def env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Provide a complete, isolated client configuration for every test."""
    for key in (
        "CHUNK_SIZE_WORDS", "CHUNK_OVERLAP_WORDS", "QUERY_TOP_K",
        "EMBED_MODEL", "EMBED_VECTOR_SIZE", "EMBED_DISTANCE", "EMBED_OPENAI_API_KEY", "EMBED_OPENAI_BASE_URL",
        "LLM_CHAT_MODEL", "LLM_SYSTEM_PROMPT", "LLM_OPENAI_API_KEY", "LLM_GEMINI_API_KEY",
        "RAG_QDRANT_API_KEY", "RAG_QDRANT_COLLECTION", "RAG_WRITE_TIMEOUT", "INGEST_JOB_HISTORY",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("APP_API_KEY", API_KEY)
    monkeypatch.setenv("EMBED_ENGINE", "ollama")
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", EMBED_URL)
    monkeypatch.setenv("LLM_ENGINE", "ollama")
    monkeypatch.setenv("LLM_OLLAMA_BASE_URL", LLM_URL)
    monkeypatch.setenv("RAG_ENGINE", "qdrant")
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", QDRANT_URL)


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("notes_ai_bridge.tests")))


# ============================================================================
# Clients wired to the fakes
# ============================================================================


@pytest.fixture
def fake_qdrant() -> FakeQdrant:
    return FakeQdrant()


@pytest.fixture
def fake_ollama() -> FakeOllama:
    return FakeOllama()


@pytest_asyncio.fixture
async def rag_client(helper_config: HelperConfig, fake_qdrant: FakeQdrant) -> AsyncGenerator[RAGClientQdrant, None]:
    client = RAGClientQdrant(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(fake_qdrant.handler))
    await client.do_ensure_collection(vector_size=len(VOCABULARY), distance="Cosine")
    yield client
    await client.close()


@pytest_asyncio.fixture
async def embed_client(helper_config: HelperConfig, fake_ollama: FakeOllama) -> AsyncGenerator[EmbedClientOllama, None]:
    client = EmbedClientOllama(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(fake_ollama.handler))
    yield client
    await client.close()


@pytest_asyncio.fixture
async def llm_client(helper_config: HelperConfig, fake_ollama: FakeOllama) -> AsyncGenerator[LLMClientOllama, None]:
    client = LLMClientOllama(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(fake_ollama.handler))
    yield client
    await client.close()
