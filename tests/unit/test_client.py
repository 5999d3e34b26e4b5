"""
tests/unit/test_client.py — Unit tests for llm/client.py

The SDK classes are patched out; nothing touches the network.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from llm.client import LLMClient


def make_settings(**overrides) -> MagicMock:
    s = MagicMock()
    s.foundry_endpoint = "https://example.cognitiveservices.azure.com/"
    s.foundry_api_key = "key-123"
    s.api_version = "2025-04-01-preview"
    s.judge_model = "gpt-5.2-chat"
    s.judge_timeout_seconds = 120.0
    s.judge_transport_retries = 2
    for k, v in overrides.items():
        setattr(s, k, v)
    return s


def make_response(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices[0].message.content = content
    return response


class TestLLMClientInit:
    def test_missing_endpoint_raises(self):
        with patch("llm.client.settings", make_settings(foundry_endpoint="")):
            with pytest.raises(ValueError, match="FOUNDRY_ENDPOINT"):
                LLMClient()

    def test_api_key_auth(self):
        with patch("llm.client.settings", make_settings()), \
             patch("llm.client.AsyncAzureOpenAI") as async_cls:
            LLMClient()
        kwargs = async_cls.call_args.kwargs
        assert kwargs["api_key"] == "key-123"
        assert kwargs["timeout"] == 120.0
        assert kwargs["max_retries"] == 2

    def test_token_auth_when_no_key(self):
        with patch("llm.client.settings", make_settings(foundry_api_key="")), \
             patch("llm.client.DefaultAzureCredential") as cred_cls, \
             patch("llm.client.get_bearer_token_provider", return_value="provider") as provider, \
             patch("llm.client.AsyncAzureOpenAI") as async_cls:
            LLMClient()
        provider.assert_called_once_with(
            cred_cls.return_value, "https://cognitiveservices.azure.com/.default"
        )
        assert async_cls.call_args.kwargs["azure_ad_token_provider"] == "provider"
        assert "api_key" not in async_cls.call_args.kwargs

    def test_model_defaults_to_judge_model(self):
        with patch("llm.client.settings", make_settings()), \
             patch("llm.client.AsyncAzureOpenAI"):
            assert LLMClient().model == "gpt-5.2-chat"
            assert LLMClient(model="other").model == "other"


class TestLLMClientCompleteAsync:
    def _client(self):
        with patch("llm.client.settings", make_settings()), \
             patch("llm.client.AsyncAzureOpenAI") as async_cls:
            client = LLMClient()
        sdk = async_cls.return_value
        sdk.chat.completions.create = AsyncMock()
        return client, sdk

    def test_sends_messages(self):
        client, sdk = self._client()
        sdk.chat.completions.create.return_value = make_response('{"score": 1}')
        assert asyncio.run(client.complete_async(system="SYS", user="USER")) == '{"score": 1}'
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-5.2-chat"
        assert kwargs["messages"] == [
            {"role": "system", "content": "SYS"},
            {"role": "user", "content": "USER"},
        ]
        assert "temperature" not in kwargs

    def test_temperature_passed_when_set(self):
        client, sdk = self._client()
        sdk.chat.completions.create.return_value = make_response("x")
        asyncio.run(client.complete_async(system="s", user="u", temperature=0.0))
        assert sdk.chat.completions.create.call_args.kwargs["temperature"] == 0.0

    def test_none_content_is_empty_string(self):
        client, sdk = self._client()
        sdk.chat.completions.create.return_value = make_response(None)
        assert asyncio.run(client.complete_async(system="s", user="u")) == ""

    def test_api_error_propagates(self):
        client, sdk = self._client()
        sdk.chat.completions.create.side_effect = TimeoutError("slow")
        with pytest.raises(TimeoutError):
            asyncio.run(client.complete_async(system="s", user="u"))

    def test_async_only(self):
        assert not hasattr(LLMClient, "complete")
