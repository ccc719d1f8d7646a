"""
Unit tests for the model backends and the backend factory.

The completion client runs against httpx.MockTransport; the hosted chat and
local clients are only exercised up to the point where they would need a
network or a weights file.
"""

import json

import httpx
import pytest

from nl2sql.config import LLMConfig
from nl2sql.config_constants import DEFAULT_GGUF_MODEL_FILE, LLMProvider
from nl2sql.domain.errors import ConfigurationError, LLMError
from nl2sql.infrastructure.completion_client import CompletionLLMClient
from nl2sql.infrastructure.llm_client import HostedChatLLMClient
from nl2sql.infrastructure.llm_factory import create_llm_backend
from nl2sql.infrastructure.local_llm_client import LocalLLMClient, resolve_model_path


class TestFactory:
    @pytest.mark.parametrize(
        "provider,expected",
        [
            (LLMProvider.HOSTED_CHAT, HostedChatLLMClient),
            (LLMProvider.HOSTED_COMPLETION, CompletionLLMClient),
            (LLMProvider.LOCAL_WEIGHTS, LocalLLMClient),
        ],
    )
    def test_provider_selects_backend(self, provider, expected):
        backend = create_llm_backend(LLMConfig(provider=provider))
        assert isinstance(backend, expected)
        assert not backend.is_connected()


class TestHostedChatClient:
    async def test_missing_api_key(self):
        client = HostedChatLLMClient(LLMConfig(api_key=None))
        with pytest.raises(ConfigurationError, match="LLM__API_KEY"):
            await client.connect()

    async def test_generate_requires_connection(self):
        client = HostedChatLLMClient(LLMConfig(api_key="test-key"))
        with pytest.raises(LLMError, match="not connected"):
            await client.generate("prompt")

    async def test_connect_and_close(self):
        client = HostedChatLLMClient(LLMConfig(api_key="test-key"))
        await client.connect()
        assert client.is_connected()
        assert client.active_model_name == LLMConfig().default_model
        await client.close()
        assert not client.is_connected()


def completion_client(handler, **config) -> CompletionLLMClient:
    return CompletionLLMClient(
        LLMConfig(provider=LLMProvider.HOSTED_COMPLETION, **config),
        transport=httpx.MockTransport(handler),
    )


class TestCompletionClient:
    async def test_generate_posts_prompt(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "SELECT COUNT(*) FROM Orders;"})

        client = completion_client(handler)
        await client.connect()
        text = await client.generate("### Task\ncount orders", max_tokens=64)
        await client.close()

        assert text == "SELECT COUNT(*) FROM Orders;"
        assert seen["path"] == "/api/generate"
        assert seen["body"]["stream"] is False
        assert seen["body"]["prompt"] == "### Task\ncount orders"
        assert seen["body"]["options"]["num_predict"] == 64
        assert seen["body"]["model"] == LLMConfig().completion_model

    async def test_http_error(self):
        client = completion_client(lambda request: httpx.Response(500, text="boom"))
        await client.connect()
        with pytest.raises(LLMError) as exc_info:
            await client.generate("prompt")
        assert exc_info.value.details["status_code"] == 500

    async def test_empty_response(self):
        client = completion_client(lambda request: httpx.Response(200, json={"response": ""}))
        await client.connect()
        with pytest.raises(LLMError, match="empty response"):
            await client.generate("prompt")

    async def test_prompt_over_limit(self):
        client = completion_client(lambda request: httpx.Response(200, json={"response": "x"}), max_input_chars=10)
        await client.connect()
        with pytest.raises(LLMError, match="Total input too large"):
            await client.generate("a" * 50)

    async def test_generate_requires_connection(self):
        client = completion_client(lambda request: httpx.Response(200, json={"response": "x"}))
        with pytest.raises(LLMError, match="not connected"):
            await client.generate("prompt")


class TestLocalClient:
    def test_missing_model_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_model_path(str(tmp_path / "missing.gguf"))
        assert exc_info.value.details["searched"] == [str(tmp_path / "missing.gguf")]

    def test_existing_model_file(self, tmp_path):
        weights = tmp_path / "model.gguf"
        weights.write_bytes(b"")
        assert resolve_model_path(str(weights)) == weights

    async def test_connect_without_weights(self, tmp_path):
        client = LocalLLMClient(LLMConfig(provider=LLMProvider.LOCAL_WEIGHTS, model_path=str(tmp_path / "none.gguf")))
        with pytest.raises(ConfigurationError):
            await client.connect()

    def test_active_model_name(self):
        assert LocalLLMClient(LLMConfig(model_path="/models/sql.gguf")).active_model_name == "sql.gguf"
        assert LocalLLMClient(LLMConfig()).active_model_name == DEFAULT_GGUF_MODEL_FILE

    def test_reset_without_model_is_a_no_op(self):
        LocalLLMClient(LLMConfig()).reset_context()
