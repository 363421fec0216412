"""Tests for the LiteLLM client wrapper and EmbeddingBackend."""

from __future__ import annotations

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from holorag.rag.llm_client import (
    EmbeddingBackend,
    complete,
    embed,
    embed_many,
    provider_of,
    validate_api_key,
)


# ------------------------------------------------------------------
# validate_api_key
# ------------------------------------------------------------------


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="GROQ_API_KEY"):
        validate_api_key("groq/llama-3.3-70b-versatile")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/gpt-4o")  # should not raise


def test_validate_api_key_ollama_no_key_required():
    validate_api_key("ollama/nomic-embed-text")


def test_provider_defaults_to_openai():
    assert provider_of("text-embedding-3-small") == "openai"
    assert provider_of("Ollama/nomic-embed-text") == "ollama"


# ------------------------------------------------------------------
# complete()
# ------------------------------------------------------------------


def test_complete_returns_content():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "Hello, world!"

    with patch("holorag.rag.llm_client.litellm.completion", return_value=mock_response):
        result = complete("groq/llama-3.3-70b-versatile", [{"role": "user", "content": "Hi"}])

    assert result == "Hello, world!"


def test_complete_returns_empty_string_on_none_content():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = None

    with patch("holorag.rag.llm_client.litellm.completion", return_value=mock_response):
        assert complete("openai/gpt-4o", [{"role": "user", "content": "Hi"}]) == ""


def test_complete_timeout_only_passed_when_set():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "ok"

    with patch("holorag.rag.llm_client.litellm.completion", return_value=mock_response) as mock_c:
        complete("openai/gpt-4o", [], max_tokens=60, temperature=0.1)
        assert "timeout" not in mock_c.call_args.kwargs
        complete("openai/gpt-4o", [], timeout=5.0)
        assert mock_c.call_args.kwargs["timeout"] == 5.0


# ------------------------------------------------------------------
# embed() / embed_many()
# ------------------------------------------------------------------


def test_embed_returns_vector():
    mock_response = MagicMock()
    mock_response.data = [{"embedding": [0.1, 0.2, 0.3]}]

    with patch("holorag.rag.llm_client.litellm.embedding", return_value=mock_response) as mock_e:
        result = embed("ollama/nomic-embed-text", "hello", api_base="http://localhost:11434")

    assert result == [0.1, 0.2, 0.3]
    assert mock_e.call_args.kwargs["input"] == ["hello"]
    assert mock_e.call_args.kwargs["api_base"] == "http://localhost:11434"


def test_embed_many_empty_input_skips_call():
    with patch("holorag.rag.llm_client.litellm.embedding") as mock_e:
        assert embed_many("openai/text-embedding-3-small", []) == []
    mock_e.assert_not_called()


def test_embed_many_count_mismatch_raises():
    mock_response = MagicMock()
    mock_response.data = [{"embedding": [0.1]}]

    with patch("holorag.rag.llm_client.litellm.embedding", return_value=mock_response):
        with pytest.raises(ValueError, match="1 vectors for 2 inputs"):
            embed_many("openai/text-embedding-3-small", ["a", "b"])


# ------------------------------------------------------------------
# EmbeddingBackend.probe()
# ------------------------------------------------------------------


def _tags_response(names: list[str]):
    body = json.dumps({"models": [{"name": n} for n in names]}).encode("utf-8")
    resp = io.BytesIO(body)
    ctx = MagicMock()
    ctx.__enter__.return_value = resp
    ctx.__exit__.return_value = False
    return ctx


def test_probe_ollama_model_present():
    backend = EmbeddingBackend("ollama/nomic-embed-text", "http://ollama:11434/")
    with patch(
        "holorag.rag.llm_client.urllib.request.urlopen",
        return_value=_tags_response(["nomic-embed-text:latest", "llama3:8b"]),
    ) as mock_open:
        result = backend.probe()

    assert result.ok
    assert backend.connected
    assert mock_open.call_args.args[0] == "http://ollama:11434/api/tags"
    assert mock_open.call_args.kwargs["timeout"] == 3.0


def test_probe_ollama_model_missing():
    backend = EmbeddingBackend("ollama/nomic-embed-text")
    with patch(
        "holorag.rag.llm_client.urllib.request.urlopen",
        return_value=_tags_response(["llama3:8b"]),
    ):
        result = backend.probe()

    assert result.available and not result.model_present
    assert not backend.connected


def test_probe_ollama_unreachable():
    backend = EmbeddingBackend("ollama/nomic-embed-text")
    backend.connected = True
    with patch(
        "holorag.rag.llm_client.urllib.request.urlopen",
        side_effect=urllib.error.URLError("connection refused"),
    ):
        result = backend.probe()

    assert not result.available
    assert not backend.connected


def test_probe_hosted_provider_uses_api_key(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    backend = EmbeddingBackend("openai/text-embedding-3-small", api_base=None)
    with patch("holorag.rag.llm_client.urllib.request.urlopen") as mock_open:
        assert backend.probe().ok
    mock_open.assert_not_called()


def test_probe_hosted_provider_without_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    backend = EmbeddingBackend("openai/text-embedding-3-small", api_base=None)
    assert not backend.probe().ok


def test_hosted_backend_does_not_send_api_base():
    backend = EmbeddingBackend("openai/text-embedding-3-small", api_base="http://localhost:11434")
    mock_response = MagicMock()
    mock_response.data = [{"embedding": [1.0]}]
    with patch("holorag.rag.llm_client.litellm.embedding", return_value=mock_response) as mock_e:
        backend.embed_one("x")
    assert "api_base" not in mock_e.call_args.kwargs
