"""Tests for LLMClient provider abstraction."""

import logging

import pytest

from docqa.common.config import LLMConfig
from docqa.common.errors import GeneratorUnavailable, RateLimited, UpstreamFailure
from docqa.common.llm_client import LLMClient, create_llm_client


class FakeProviderError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


def _bound_client(call):
    """An unavailable client with a fake provider call bound in."""
    client = LLMClient(provider="openai")
    client._client = object()
    client._call = call
    return client


class TestLLMClientInit:
    @pytest.mark.parametrize("provider", ["anthropic", "openai", "google", "huggingface"])
    def test_missing_key_logs_info(self, provider, caplog):
        with caplog.at_level(logging.INFO, logger="docqa.common.llm_client"):
            client = LLMClient(provider=provider)
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="docqa.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_create_llm_client_selects_provider_settings(self):
        cfg = LLMConfig(provider="huggingface", huggingface_model="org/model")
        client = create_llm_client(cfg)
        assert client.provider == "huggingface"
        assert client.model == "org/model"
        assert not client.is_available


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(GeneratorUnavailable, match="not available"):
            client.generate("test")

    def test_generate_passes_arguments(self):
        seen = {}

        def call(prompt, system, max_tokens, timeout):
            seen.update(prompt=prompt, system=system, max_tokens=max_tokens, timeout=timeout)
            return "answer"

        client = _bound_client(call)
        assert client.generate("question", system="rules") == "answer"
        assert seen == {"prompt": "question", "system": "rules", "max_tokens": 1024, "timeout": 60.0}

    def test_rate_limit_translated(self):
        def call(*args):
            raise FakeProviderError("Too many requests", status_code=429)

        with pytest.raises(RateLimited):
            _bound_client(call).generate("q")

    def test_provider_error_message_kept(self):
        def call(*args):
            raise FakeProviderError("The model `gpt-x` does not exist", status_code=404)

        with pytest.raises(UpstreamFailure, match="does not exist") as exc_info:
            _bound_client(call).generate("q")
        assert exc_info.value.provider == "openai"
