# =============================================================================
# Unit Tests: LLM Providers and Factories
# =============================================================================
#
# SDK clients are constructed with dummy keys; network calls are replaced
# with AsyncMock so nothing leaves the process.
# =============================================================================

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from command_center.config import Settings
from command_center.errors import BackendError
from command_center.services.llm import (
    AnthropicProvider,
    OpenAICompatibleProvider,
    _parse_provider_id,
    create_llm_provider,
    create_provider_from_id,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


# ---------------------------------------------------------------------------
# Test: Provider ID Parsing
# ---------------------------------------------------------------------------


class TestParseProviderId:
    def test_anthropic(self):
        assert _parse_provider_id("anthropic/claude-sonnet-4-6") == (
            "anthropic", "claude-sonnet-4-6", None,
        )

    def test_openai_compatible_with_base_url(self):
        assert _parse_provider_id(
            "openai_compatible/deepseek-chat@https://api.deepseek.com/v1"
        ) == ("openai_compatible", "deepseek-chat", "https://api.deepseek.com/v1")

    def test_missing_slash(self):
        with pytest.raises(ValueError, match="Invalid provider_id"):
            _parse_provider_id("claude")

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown provider type"):
            _parse_provider_id("cohere/command-r")

    def test_missing_model(self):
        with pytest.raises(ValueError, match="Missing model"):
            _parse_provider_id("anthropic/")


# ---------------------------------------------------------------------------
# Test: Factories
# ---------------------------------------------------------------------------


class TestFactories:
    def test_missing_anthropic_key(self):
        with pytest.raises(ValueError, match="No Anthropic API key"):
            create_llm_provider(_settings(anthropic_api_key="", llm_api_key=None))

    def test_default_is_anthropic(self):
        provider = create_llm_provider(_settings(anthropic_api_key="k"))
        assert isinstance(provider, AnthropicProvider)

    def test_openai_compatible_selected(self):
        provider = create_llm_provider(_settings(
            llm_provider="openai_compatible", openai_api_key="k",
        ))
        assert isinstance(provider, OpenAICompatibleProvider)

    def test_provider_id_overrides_provider(self):
        provider = create_llm_provider(_settings(
            llm_provider="anthropic",
            llm_provider_id="openai_compatible/llama-3@https://example.test/v1",
            llm_api_key="k",
        ))
        assert isinstance(provider, OpenAICompatibleProvider)

    def test_create_from_id_with_explicit_key(self):
        provider = create_provider_from_id(
            "anthropic/claude-haiku", api_key="k", settings=_settings(),
        )
        assert isinstance(provider, AnthropicProvider)


# ---------------------------------------------------------------------------
# Test: Provider Calls
# ---------------------------------------------------------------------------


class TestAnthropicProvider:
    def test_system_prompt_passed_as_kwarg(self):
        provider = AnthropicProvider(api_key="k", settings=_settings())
        provider._client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Hi there")],
            model="claude-test",
            usage=SimpleNamespace(input_tokens=7, output_tokens=3),
        ))

        response = _run(provider.complete(
            [{"role": "user", "content": "hello"}], system="Be brief",
        ))

        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Be brief"
        assert response.content == "Hi there"
        assert response.provider == "anthropic"
        assert (response.input_tokens, response.output_tokens) == (7, 3)

    def test_sdk_error_wrapped(self):
        import anthropic

        provider = AnthropicProvider(api_key="k", settings=_settings())
        provider._client.messages.create = AsyncMock(
            side_effect=anthropic.APIConnectionError(
                request=httpx.Request("POST", "https://api.anthropic.com"),
            ),
        )

        with pytest.raises(BackendError) as exc_info:
            _run(provider.complete([{"role": "user", "content": "hello"}]))
        assert exc_info.value.provider == "anthropic"


class TestOpenAICompatibleProvider:
    def test_system_prompt_prepended(self):
        provider = OpenAICompatibleProvider(api_key="k", settings=_settings())
        provider._client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content="Yo"))],
                model="gpt-test",
                usage=SimpleNamespace(prompt_tokens=4, completion_tokens=1),
            ),
        )

        response = _run(provider.complete(
            [{"role": "user", "content": "hello"}], system="Be brief",
        ))

        messages = provider._client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "Be brief"}
        assert response.content == "Yo"

    def test_empty_choices_is_backend_error(self):
        provider = OpenAICompatibleProvider(api_key="k", settings=_settings())
        provider._client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[], model="gpt-test", usage=None),
        )
        with pytest.raises(BackendError):
            _run(provider.complete([{"role": "user", "content": "hello"}]))
