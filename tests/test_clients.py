"""
Unit tests for the embedding and completion adapters and the engine managers.
"""

import json

import httpx
import pytest

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.llm.gemini.LLMClientGemini import LLMClientGemini
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.errors.pipeline_errors import CompletionFailure, EmbeddingFailure, ProviderError
from shared.helper.HelperConfig import HelperConfig


def recording_transport(status_code: int, body: dict, requests: list[httpx.Request]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=body)

    return httpx.MockTransport(handler)


# ============================================================================
# Managers
# ============================================================================


@pytest.mark.unit
class TestManagers:
    def test_engines_from_env(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig) -> None:
        monkeypatch.setenv("EMBED_ENGINE", "OpenAI")
        monkeypatch.setenv("LLM_ENGINE", " gemini ")

        assert isinstance(EmbedClientManager(helper_config).get_client(), EmbedClientOpenai)
        assert isinstance(LLMClientManager(helper_config).get_client(), LLMClientGemini)
        assert isinstance(RAGClientManager(helper_config).get_client(), RAGClientQdrant)

    def test_unsupported_engine(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig) -> None:
        monkeypatch.setenv("EMBED_ENGINE", "nonexistent")

        with pytest.raises(ValueError, match="Unsupported Embed engine"):
            EmbedClientManager(helper_config)

    def test_missing_required_base_url(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig) -> None:
        monkeypatch.delenv("RAG_QDRANT_BASE_URL")

        with pytest.raises(ValueError, match="RAG_QDRANT_BASE_URL"):
            RAGClientManager(helper_config)


# ============================================================================
# Embedding adapters
# ============================================================================


@pytest.mark.unit
class TestEmbedClients:
    @pytest.mark.asyncio
    async def test_openai_embedding(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig) -> None:
        monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-test")
        client = EmbedClientOpenai(helper_config)
        requests: list[httpx.Request] = []
        body = {"data": [{"index": 0, "embedding": [0.1, 0.2, 0.3]}], "model": "text-embedding-ada-002"}
        await client.boot(transport=recording_transport(200, body, requests))

        vector = await client.do_generate_embedding("budget meeting")

        assert vector == [0.1, 0.2, 0.3]
        assert str(requests[0].url) == "https://api.openai.com/v1/embeddings"
        assert requests[0].headers["Authorization"] == "Bearer sk-test"
        assert json.loads(requests[0].content) == {"model": "text-embedding-ada-002", "input": ["budget meeting"]}
        await client.close()

    def test_openai_orders_by_index(self, helper_config: HelperConfig) -> None:
        client = EmbedClientOpenai(helper_config)
        response = {"data": [{"index": 1, "embedding": [2.0]}, {"index": 0, "embedding": [1.0]}]}

        assert client.extract_embeddings_from_response(response) == [[1.0], [2.0]]

    @pytest.mark.asyncio
    async def test_openai_missing_key(self, helper_config: HelperConfig) -> None:
        client = EmbedClientOpenai(helper_config)
        requests: list[httpx.Request] = []
        await client.boot(transport=recording_transport(200, {}, requests))

        with pytest.raises(ProviderError, match="credentials"):
            await client.do_generate_embedding("budget")

        assert requests == []
        await client.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code,body",
        [(500, {"error": "boom"}), (200, {"data": []}), (200, {"data": [{"index": 0, "embedding": []}]})],
    )
    async def test_openai_failures(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig, status_code: int, body: dict) -> None:
        monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-test")
        client = EmbedClientOpenai(helper_config)
        await client.boot(transport=recording_transport(status_code, body, []))

        with pytest.raises(EmbeddingFailure) as exc_info:
            await client.do_generate_embedding("budget")

        assert exc_info.value.stage == "embed"
        await client.close()

    @pytest.mark.asyncio
    async def test_unreachable_backend(self, helper_config: HelperConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = EmbedClientOllama(helper_config)
        await client.boot(transport=httpx.MockTransport(handler))

        with pytest.raises(EmbeddingFailure, match="connection refused"):
            await client.do_generate_embedding("budget")
        await client.close()

    @pytest.mark.asyncio
    async def test_vector_size_from_config(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig) -> None:
        monkeypatch.setenv("EMBED_VECTOR_SIZE", "768")
        client = EmbedClientOllama(helper_config)

        assert await client.do_fetch_embedding_vector_size() == (768, "Cosine")

    @pytest.mark.asyncio
    async def test_vector_size_from_probe(self, helper_config: HelperConfig) -> None:
        client = EmbedClientOllama(helper_config)
        await client.boot(transport=recording_transport(200, {"embeddings": [[0.0] * 5]}, []))

        assert await client.do_fetch_embedding_vector_size() == (5, "Cosine")
        await client.close()

    @pytest.mark.asyncio
    async def test_request_before_boot(self, helper_config: HelperConfig) -> None:
        client = EmbedClientOllama(helper_config)

        assert client.is_booted() is False
        with pytest.raises(Exception, match="boot"):
            await client.do_request(endpoint="/api/embed")


# ============================================================================
# Completion adapters
# ============================================================================


@pytest.mark.unit
class TestLLMClients:
    @pytest.mark.asyncio
    async def test_openai_chat_payload(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig) -> None:
        monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-test")
        client = LLMClientOpenai(helper_config)
        requests: list[httpx.Request] = []
        body = {"choices": [{"message": {"role": "assistant", "content": "Yes."}}]}
        await client.boot(transport=recording_transport(200, body, requests))

        answer = await client.do_complete("Was it approved?")

        assert answer == "Yes."
        sent = json.loads(requests[0].content)
        assert sent["model"] == "gpt-3.5-turbo"
        assert sent["temperature"] == 0.7
        assert sent["max_tokens"] == 1000
        assert sent["messages"] == [
            {"role": "system", "content": "You are a helpful assistant that provides information based on the given context."},
            {"role": "user", "content": "Was it approved?"},
        ]
        await client.close()

    @pytest.mark.asyncio
    async def test_gemini_generate_content(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig) -> None:
        monkeypatch.setenv("LLM_GEMINI_API_KEY", "g-test")
        client = LLMClientGemini(helper_config)
        requests: list[httpx.Request] = []
        body = {"candidates": [{"content": {"role": "model", "parts": [{"text": "On Monday."}]}}]}
        await client.boot(transport=recording_transport(200, body, requests))

        answer = await client.do_complete("When?")

        assert answer == "On Monday."
        assert requests[0].url.path == "/v1beta/models/gemini-1.5-pro-latest:generateContent"
        assert requests[0].headers["x-goog-api-key"] == "g-test"
        sent = json.loads(requests[0].content)
        assert sent["contents"] == [{"role": "user", "parts": [{"text": "When?"}]}]
        assert "systemInstruction" not in sent
        await client.close()

    def test_gemini_configured_system_prompt(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig) -> None:
        monkeypatch.setenv("LLM_SYSTEM_PROMPT", "Answer in German.")
        client = LLMClientGemini(helper_config)

        payload = client.get_chat_payload(client.get_prompt_messages("When?"))

        assert payload["systemInstruction"] == {"parts": [{"text": "Answer in German."}]}
        assert payload["contents"] == [{"role": "user", "parts": [{"text": "When?"}]}]

    def test_gemini_without_candidates(self, helper_config: HelperConfig) -> None:
        client = LLMClientGemini(helper_config)

        with pytest.raises(ValueError):
            client.extract_chat_response({"candidates": []})

    @pytest.mark.asyncio
    async def test_missing_key(self, helper_config: HelperConfig) -> None:
        client = LLMClientGemini(helper_config)
        await client.boot(transport=recording_transport(200, {}, []))

        with pytest.raises(CompletionFailure):
            await client.do_complete("When?")
        await client.close()

    @pytest.mark.asyncio
    async def test_openai_empty_choices(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig) -> None:
        monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-test")
        client = LLMClientOpenai(helper_config)
        await client.boot(transport=recording_transport(200, {"choices": []}, []))

        with pytest.raises(CompletionFailure, match="No completion data"):
            await client.do_complete("Was it approved?")
        await client.close()

    def test_custom_system_prompt(self, monkeypatch: pytest.MonkeyPatch, helper_config: HelperConfig) -> None:
        monkeypatch.setenv("LLM_SYSTEM_PROMPT", "Answer in German.")
        client = LLMClientOpenai(helper_config)

        assert client.get_prompt_messages("Hi")[0] == {"role": "system", "content": "Answer in German."}
