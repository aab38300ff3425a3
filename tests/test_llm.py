# =============================================================================
# Unit Tests — Generation Backends
# =============================================================================
#
# Every backend must map its failures onto the same error classes (and so
# the same HTTP status). SDK clients are replaced with mocks raising real
# SDK exception types; the Hugging Face backend runs over
# httpx.MockTransport. No API keys or network needed.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from pdfchat.config import settings
from pdfchat.errors import (
    AuthError,
    ModelLoadingError,
    ModelNotFoundError,
    RateLimitError,
    UnavailableError,
    UnknownError,
)
from pdfchat.models.domain import ChatTurn
from pdfchat.services import llm
from pdfchat.services.llm import (
    AnthropicProvider,
    HuggingFaceProvider,
    LLMResponse,
    OllamaProvider,
    OpenAICompatibleProvider,
    _flatten_prompt,
    configured_model,
    create_provider,
    strip_prompt_echo,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


_REQUEST = httpx.Request("POST", "https://api.example.test/v1/chat")


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=_REQUEST)


# ---------------------------------------------------------------------------
# Test: OpenAI-compatible backend
# ---------------------------------------------------------------------------


def _openai_provider(side_effect=None, return_value=None) -> OpenAICompatibleProvider:
    provider = OpenAICompatibleProvider(api_key="test-key", model="gpt-4o-mini")
    provider._client = MagicMock()
    provider._client.chat.completions.create = AsyncMock(
        side_effect=side_effect, return_value=return_value,
    )
    return provider


class TestOpenAICompatibleProvider:
    def test_system_prompt_and_history_become_messages(self):
        completion = MagicMock()
        completion.choices[0].message.content = "An answer."
        completion.model = "gpt-4o-mini"
        provider = _openai_provider(return_value=completion)

        result = _run(provider.complete(
            "What is it about?",
            history=[
                ChatTurn(role="user", content="Hi"),
                ChatTurn(role="assistant", content="Hello"),
            ],
            system="Use the context.",
        ))

        assert result == LLMResponse(content="An answer.", model="gpt-4o-mini")
        messages = provider._client.chat.completions.create.call_args.kwargs["messages"]
        assert messages == [
            {"role": "system", "content": "Use the context."},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "What is it about?"},
        ]

    @pytest.mark.parametrize(
        ("exc", "expected", "status"),
        [
            (openai.RateLimitError("quota", response=_response(429), body=None), RateLimitError, 429),
            (openai.AuthenticationError("bad key", response=_response(401), body=None), AuthError, 401),
            (openai.PermissionDeniedError("denied", response=_response(403), body=None), AuthError, 401),
            (openai.APIConnectionError(request=_REQUEST), UnavailableError, 503),
            (openai.InternalServerError("boom", response=_response(500), body=None), UnavailableError, 503),
            (openai.BadRequestError("bad", response=_response(400), body=None), UnknownError, 500),
        ],
    )
    def test_error_mapping(self, exc, expected, status):
        provider = _openai_provider(side_effect=exc)

        with pytest.raises(expected) as excinfo:
            _run(provider.complete("hi"))

        assert excinfo.value.status_code == status
        assert excinfo.value.provider == "openai_compatible"

    def test_missing_key_raises_auth_error(self):
        with patch.object(settings, "llm_api_key", None), \
                patch.object(settings, "openai_api_key", ""):
            with pytest.raises(AuthError):
                OpenAICompatibleProvider()


# ---------------------------------------------------------------------------
# Test: Ollama backend
# ---------------------------------------------------------------------------


class TestOllamaProvider:
    def _provider(self, side_effect) -> OllamaProvider:
        provider = OllamaProvider(model="llama3.1", base_url="http://ollama.local:11434/")
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(side_effect=side_effect)
        return provider

    def test_needs_no_api_key_and_targets_v1(self):
        with patch.object(settings, "llm_api_key", None), \
                patch.object(settings, "openai_api_key", ""):
            provider = OllamaProvider(model="llama3.1", base_url="http://ollama.local:11434/")

        assert str(provider._client.base_url).rstrip("/") == "http://ollama.local:11434/v1"
        assert provider.name == "ollama"

    def test_server_down_is_unavailable_with_hint(self):
        provider = self._provider(openai.APIConnectionError(request=_REQUEST))

        with pytest.raises(UnavailableError) as excinfo:
            _run(provider.complete("hi"))

        assert excinfo.value.status_code == 503
        assert "ollama serve" in excinfo.value.hint

    def test_missing_model_is_not_found_with_pull_hint(self):
        provider = self._provider(
            openai.NotFoundError("model not found", response=_response(404), body=None),
        )

        with pytest.raises(ModelNotFoundError) as excinfo:
            _run(provider.complete("hi"))

        assert excinfo.value.status_code == 404
        assert excinfo.value.hint == "Run 'ollama pull llama3.1' in your terminal"

    def test_other_errors_fall_back_to_generic_mapping(self):
        provider = self._provider(
            openai.RateLimitError("busy", response=_response(429), body=None),
        )
        with pytest.raises(RateLimitError):
            _run(provider.complete("hi"))


# ---------------------------------------------------------------------------
# Test: Anthropic backend
# ---------------------------------------------------------------------------


class TestAnthropicProvider:
    def _provider(self, side_effect=None, return_value=None) -> AnthropicProvider:
        provider = AnthropicProvider(api_key="test-key", model="claude-sonnet-4-6")
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(
            side_effect=side_effect, return_value=return_value,
        )
        return provider

    def test_system_prompt_is_a_top_level_kwarg(self):
        block = MagicMock(type="text", text="Grounded answer.")
        message = MagicMock(content=[block], model="claude-sonnet-4-6")
        provider = self._provider(return_value=message)

        result = _run(provider.complete("Question?", system="Context here."))

        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Context here."
        assert kwargs["messages"] == [{"role": "user", "content": "Question?"}]
        assert result.content == "Grounded answer."

    @pytest.mark.parametrize(
        ("exc", "expected", "status"),
        [
            (anthropic.RateLimitError("slow down", response=_response(429), body=None), RateLimitError, 429),
            (anthropic.AuthenticationError("bad key", response=_response(401), body=None), AuthError, 401),
            (anthropic.APIConnectionError(request=_REQUEST), UnavailableError, 503),
            (anthropic.APIStatusError("overloaded", response=_response(529), body=None), UnavailableError, 503),
            (anthropic.NotFoundError("no model", response=_response(404), body=None), UnknownError, 500),
        ],
    )
    def test_error_mapping(self, exc, expected, status):
        provider = self._provider(side_effect=exc)

        with pytest.raises(expected) as excinfo:
            _run(provider.complete("hi"))

        assert excinfo.value.status_code == status

    def test_missing_key_raises_auth_error(self):
        with patch.object(settings, "llm_api_key", None), \
                patch.object(settings, "anthropic_api_key", ""):
            with pytest.raises(AuthError):
                AnthropicProvider()


# ---------------------------------------------------------------------------
# Test: Hugging Face backend (httpx.MockTransport)
# ---------------------------------------------------------------------------


def _hf_provider(handler) -> HuggingFaceProvider:
    return HuggingFaceProvider(
        api_key="hf_test",
        model="org/model",
        base_url="https://hf.example.test/models",
        transport=httpx.MockTransport(handler),
    )


class TestHuggingFaceProvider:
    def test_sends_flattened_prompt_and_strips_echo(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json=[{"generated_text": "Context.\n\nQuestion: What?\n\nAnswer: It is about cats."}],
            )

        result = _run(_hf_provider(handler).complete("What?", system="Context."))

        assert result.content == "It is about cats."
        assert result.model == "org/model"
        assert seen["url"] == "https://hf.example.test/models/org/model"
        assert seen["auth"] == "Bearer hf_test"
        assert seen["body"]["inputs"].endswith("Question: What?\n\nAnswer:")
        assert seen["body"]["inputs"].startswith("Context.")
        assert seen["body"]["parameters"]["return_full_text"] is False

    @pytest.mark.parametrize(
        ("status", "body", "expected", "code"),
        [
            (429, {"error": "rate limited"}, RateLimitError, 429),
            (401, {"error": "unauthorized"}, AuthError, 401),
            (403, {"error": "forbidden"}, AuthError, 401),
            (503, {"error": "loading", "estimated_time": 20.0}, ModelLoadingError, 503),
            (503, {"error": "overloaded"}, UnavailableError, 503),
            (500, {"error": "internal"}, UnavailableError, 503),
            (422, {"error": "bad input"}, UnknownError, 500),
        ],
    )
    def test_error_mapping(self, status, body, expected, code):
        provider = _hf_provider(lambda request: httpx.Response(status, json=body))

        with pytest.raises(expected) as excinfo:
            _run(provider.complete("hi"))

        assert excinfo.value.status_code == code
        assert excinfo.value.provider == "huggingface"

    def test_loading_hint_includes_estimate(self):
        provider = _hf_provider(
            lambda request: httpx.Response(503, json={"error": "loading", "estimated_time": 20.0}),
        )
        with pytest.raises(ModelLoadingError) as excinfo:
            _run(provider.complete("hi"))
        assert "estimated 20.0s" in excinfo.value.hint

    def test_transport_failure_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(UnavailableError):
            _run(_hf_provider(handler).complete("hi"))

    def test_missing_key_raises_auth_error(self):
        with patch.object(settings, "llm_api_key", None), \
                patch.object(settings, "huggingface_api_key", ""):
            with pytest.raises(AuthError):
                HuggingFaceProvider(model="org/model")


class TestPromptHelpers:
    def test_strip_prompt_echo_removes_leading_prompt(self):
        prompt = "SYS\n\nQuestion: Q?\n\nAnswer:"
        assert strip_prompt_echo(prompt + " final ", prompt) == "final"

    def test_strip_prompt_echo_keeps_answer_marker_inside_reply(self):
        prompt = "Question: Q?\n\nAnswer:"
        reply = "The form asks for an answer: yes or no."
        assert strip_prompt_echo(reply, prompt) == reply

    def test_strip_prompt_echo_without_echo(self):
        assert strip_prompt_echo("  plain reply ", "Question: Q?") == "plain reply"

    def test_flatten_prompt_orders_system_history_question(self):
        flattened = _flatten_prompt(
            "Q?",
            [ChatTurn(role="user", content="Hi"), ChatTurn(role="assistant", content="Yo")],
            "SYS",
        )
        assert flattened == "SYS\n\nUser: Hi\n\nAssistant: Yo\n\nQuestion: Q?\n\nAnswer:"


# ---------------------------------------------------------------------------
# Test: Factory
# ---------------------------------------------------------------------------


class TestCreateProvider:
    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            create_provider("nope")

    def test_named_provider_is_built(self):
        assert isinstance(create_provider("ollama"), OllamaProvider)

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("anthropic", "claude-sonnet-4-6"),
            ("openai_compatible", "gpt-4o-mini"),
            ("ollama", "llama3.1"),
            ("huggingface", "mistralai/Mistral-7B-Instruct-v0.3"),
        ],
    )
    def test_each_provider_has_its_own_default_model(self, name, expected):
        with patch.object(settings, "llm_model", None), \
                patch.object(settings, "llm_api_key", "test-key"):
            provider = create_provider(name)
            assert provider.model == expected
            assert configured_model(name) == expected

    def test_llm_model_overrides_provider_default(self):
        with patch.object(settings, "llm_model", "qwen2"):
            assert create_provider("ollama").model == "qwen2"
            assert configured_model("ollama") == "qwen2"

    def test_get_llm_provider_is_cached(self):
        with patch.object(llm, "_provider", None), \
                patch.object(settings, "llm_provider", "ollama"):
            first = llm.get_llm_provider()
            second = llm.get_llm_provider()
        assert first is second
