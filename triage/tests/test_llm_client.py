"""Tests for LLMClient provider abstraction."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from triage.common.llm_client import LLMClient, LLMResponse


class TestLLMClientInit:
    def test_missing_anthropic_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="triage.common.llm_client"):
            client = LLMClient(provider="anthropic")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_openai_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="triage.common.llm_client"):
            client = LLMClient(provider="openai")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_google_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="triage.common.llm_client"):
            client = LLMClient(provider="google")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="triage.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_from_config_picks_provider_model(self):
        from triage.common.config import LLMConfig
        cfg = LLMConfig(provider="openai", openai_model="gpt-test")
        client = LLMClient.from_config(cfg)
        assert client.provider == "openai"
        assert client.model == "gpt-test"
        assert not client.is_available


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            client.generate("test")

    def test_anthropic_response_and_usage(self):
        client = LLMClient(provider="anthropic")
        client._client = MagicMock()
        client._client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(text='  {"angerScore": 10}  ')],
            usage=SimpleNamespace(input_tokens=120, output_tokens=30),
        )

        response = client.generate("hi", system="be terse", max_tokens=50, timeout=5)

        assert response == LLMResponse(text='{"angerScore": 10}', input_tokens=120, output_tokens=30)
        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "be terse"
        assert kwargs["max_tokens"] == 50

    def test_openai_system_message(self):
        client = LLMClient(provider="openai")
        client._client = MagicMock()
        client._client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="ok"))],
            usage=SimpleNamespace(prompt_tokens=7, completion_tokens=2),
        )

        response = client.generate("hi", system="sys")

        messages = client._client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "sys"}
        assert response.input_tokens == 7
        assert response.output_tokens == 2

    def test_missing_usage_counts_zero(self):
        client = LLMClient(provider="anthropic")
        client._client = MagicMock()
        client._client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(text="ok")],
        )
        response = client.generate("hi")
        assert (response.input_tokens, response.output_tokens) == (0, 0)
