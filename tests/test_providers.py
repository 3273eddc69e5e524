"""Tests for the Ollama and OpenAI-compatible providers and the factory."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, Mock, patch

import openai
import pytest
import requests

from tagrunner.errors import ConfigError
from tagrunner.llm.provider_factory import get_provider
from tagrunner.llm.providers.ollama import OllamaProvider
from tagrunner.llm.providers.openai_provider import OpenAIProvider


def _response(payload=None, lines=None, status=200):
    response = Mock()
    response.status_code = status
    response.json.return_value = payload or {}
    response.iter_lines.return_value = [json.dumps(line).encode() for line in (lines or [])]
    response.raise_for_status.return_value = None
    return response


# ---------------------------------------------------------------------------
# Ollama
# ---------------------------------------------------------------------------

def test_ollama_chat_returns_message_and_usage():
    provider = OllamaProvider(base_url="http://ollama:11434/")
    payload = {"message": {"content": "hi"}, "prompt_eval_count": 3, "eval_count": 2}

    with patch("tagrunner.llm.providers.ollama.requests.post", return_value=_response(payload)) as post:
        result = provider.chat([{"role": "user", "content": "hello"}], model="llama3")

    assert result["message"]["content"] == "hi"
    assert result["usage"] == {"prompt": 3, "completion": 2, "total": 5}
    url = post.call_args[0][0]
    assert url == "http://ollama:11434/api/chat"
    assert post.call_args[1]["timeout"] is None


def test_ollama_stream_forwards_chunks():
    provider = OllamaProvider(base_url="http://ollama:11434")
    lines = [
        {"message": {"content": "<end_"}},
        {"message": {"content": "task>ok</end_task>"}},
        {"done": True},
    ]
    chunks = []

    with patch("tagrunner.llm.providers.ollama.requests.post", return_value=_response(lines=lines)):
        result = provider.chat_stream([], model="llama3", on_chunk=chunks.append)

    assert chunks == ["<end_", "task>ok</end_task>"]
    assert result["message"]["content"] == "<end_task>ok</end_task>"
    assert "error" not in result


def test_ollama_stream_error_chunk_keeps_partial():
    provider = OllamaProvider(base_url="http://ollama:11434")
    lines = [{"message": {"content": "partial"}}, {"error": "model overloaded"}]

    with patch("tagrunner.llm.providers.ollama.requests.post", return_value=_response(lines=lines)):
        result = provider.chat_stream([], model="llama3")

    assert result["message"]["content"] == "partial"
    assert result["error"] == "model overloaded"


def test_ollama_transport_failure_is_returned_not_raised():
    provider = OllamaProvider(base_url="http://ollama:11434")

    with patch("tagrunner.llm.providers.ollama.requests.post",
               side_effect=requests.exceptions.ConnectionError("refused")):
        result = provider.chat([], model="llama3")

    assert "refused" in result["error"]["message"]


def test_ollama_context_length_from_model_info():
    provider = OllamaProvider(base_url="http://ollama:11434")
    payload = {"model_info": {"general.architecture": "llama", "llama.context_length": 8192}}

    with patch("tagrunner.llm.providers.ollama.requests.post", return_value=_response(payload)):
        assert provider.get_model_context_length("llama3") == 8192


def test_ollama_validate_model_accepts_latest_tag():
    provider = OllamaProvider(base_url="http://ollama:11434")
    payload = {"models": [{"name": "llama3:latest"}]}

    with patch("tagrunner.llm.providers.ollama.requests.get", return_value=_response(payload)):
        assert provider.validate_model("llama3")
        assert not provider.validate_model("mistral")


# ---------------------------------------------------------------------------
# OpenAI-compatible
# ---------------------------------------------------------------------------

def _delta_chunk(text):
    return SimpleNamespace(error=None, choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


def test_openai_chat_success():
    provider = OpenAIProvider(api_key="k", base_url="https://openrouter.ai/api/v1", name="openrouter")
    client = MagicMock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="answer"))],
        usage=SimpleNamespace(prompt_tokens=4, completion_tokens=1, total_tokens=5),
    )
    provider._client = client

    result = provider.chat([{"role": "user", "content": "q"}], model="some/model")

    assert result["message"] == {"role": "assistant", "content": "answer"}
    assert result["usage"]["total"] == 5


def test_openai_stream_collects_deltas_and_mid_stream_errors():
    provider = OpenAIProvider(api_key="k")
    client = MagicMock()
    client.chat.completions.create.return_value = iter([
        _delta_chunk("Hel"),
        _delta_chunk("lo"),
        SimpleNamespace(error={"message": "upstream rate limit", "code": 429}, choices=[]),
    ])
    provider._client = client
    chunks = []

    result = provider.chat_stream([], model="m", on_chunk=chunks.append)

    assert chunks == ["Hel", "lo"]
    assert result["message"]["content"] == "Hello"
    assert result["error"]["code"] == 429


def test_openai_client_errors_become_payloads():
    provider = OpenAIProvider(api_key="k")
    client = MagicMock()
    client.chat.completions.create.side_effect = openai.OpenAIError("boom")
    provider._client = client

    assert provider.chat([], model="m")["error"]["message"] == "boom"
    assert provider.chat_stream([], model="m")["error"]["message"] == "boom"


def test_openai_model_catalog_lookup():
    provider = OpenAIProvider(api_key="k", base_url="https://openrouter.ai/api/v1")
    payload = {"data": [
        {"id": "a/model", "context_length": 32000},
        {"id": "b/model", "top_provider": {"context_length": 16000}},
    ]}

    with patch("tagrunner.llm.providers.openai_provider.requests.get", return_value=_response(payload)) as get:
        assert provider.get_model_context_length("a/model") == 32000
        assert provider.get_model_context_length("b/model") == 16000
        assert provider.get_model_context_length("missing") is None
        assert provider.validate_model("a/model")

    get.assert_called_once()
    assert get.call_args[0][0] == "https://openrouter.ai/api/v1/models"


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def test_factory_builds_and_caches_providers(monkeypatch):
    from tagrunner import config
    monkeypatch.setattr(config, "OPENROUTER_API_KEY", "or-key")

    provider = get_provider("openrouter")

    assert isinstance(provider, OpenAIProvider)
    assert provider.name == "openrouter"
    assert provider.api_key == "or-key"
    assert get_provider("OpenRouter") is provider
    assert get_provider("openrouter", force_new=True) is not provider
    assert isinstance(get_provider("ollama"), OllamaProvider)


def test_factory_uses_configured_provider(monkeypatch):
    from tagrunner import config
    monkeypatch.setattr(config, "LLM_PROVIDER", "ollama")

    assert isinstance(get_provider(), OllamaProvider)


def test_factory_rejects_unknown_provider():
    with pytest.raises(ConfigError):
        get_provider("gemini")
