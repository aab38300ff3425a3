# =============================================================================
# Generation Backends — Interchangeable LLM Providers
# =============================================================================
#
# One interface, four implementations. The responder only ever calls
# `complete()`; which backend answers is decided by LLM_PROVIDER at startup.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        — Claude via native Anthropic SDK
#   │                              (system prompt as top-level `system=` kwarg)
#   ├── OpenAICompatibleProvider — OpenAI, Gemini (OpenAI endpoint), DeepSeek...
#   │   │                          (system prompt as first message)
#   │   └── OllamaProvider       — local Ollama server, OpenAI-compatible /v1
#   └── HuggingFaceProvider      — HF Inference API over httpx
#                                  (flattened prompt, echo stripped)
#
#   get_llm_provider()           — lazy singleton from settings
#   create_provider()            — fresh instance by name
#
# ERROR MAPPING (by exception type / HTTP status, never by message text):
#   rate limit / quota          → RateLimitError     (429)
#   401 / 403                   → AuthError          (401)
#   connect error, timeout, 5xx → UnavailableError   (503)
#   HF 503 "loading"            → ModelLoadingError  (503)
#   Ollama 404                  → ModelNotFoundError (404)
#   anything else from the SDK  → UnknownError       (500)
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import anthropic
import httpx
import openai

from pdfchat.config import settings
from pdfchat.errors import (
    AuthError,
    ModelLoadingError,
    ModelNotFoundError,
    RateLimitError,
    UnavailableError,
    UnknownError,
    UpstreamModelError,
)

if TYPE_CHECKING:
    from pdfchat.models.domain import ChatTurn

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """Standardised response from any provider."""

    content: str  # The generated text
    model: str    # Model identifier reported by the backend


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """Interface every generation backend provides."""

    name: str
    model: str

    async def complete(
        self,
        prompt: str,
        history: list[ChatTurn] | None = None,
        system: str | None = None,
    ) -> LLMResponse:
        """
        Generate a completion.

        Args:
            prompt: The user's message for this turn.
            history: Earlier turns, oldest first.
            system: Instructions plus grounding context.

        Raises:
            UpstreamModelError: Classified backend failure.
        """
        ...


def _history_messages(history: list[ChatTurn] | None) -> list[dict[str, str]]:
    return [{"role": turn.role, "content": turn.content} for turn in history or []]


# ---------------------------------------------------------------------------
# Implementation 1: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native async SDK.

    Anthropic takes the system prompt as a top-level `system=` kwarg, NOT as
    a message with role "system".
    """

    name = "anthropic"
    default_model = "claude-sonnet-4-6"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise AuthError(
                "No Anthropic API key configured.",
                hint="Set LLM_API_KEY or ANTHROPIC_API_KEY in .env",
                provider=self.name,
            )

        self._client = anthropic.AsyncAnthropic(
            api_key=resolved_key,
            timeout=settings.llm_timeout_seconds,
        )
        self.model = model or settings.llm_model or self.default_model

        logger.info("Initialized AnthropicProvider (model=%s)", self.model)

    async def complete(
        self,
        prompt: str,
        history: list[ChatTurn] | None = None,
        system: str | None = None,
    ) -> LLMResponse:
        kwargs: dict = {
            "model": self.model,
            "messages": [
                *_history_messages(history),
                {"role": "user", "content": prompt},
            ],
            "max_tokens": settings.llm_max_tokens,
            "temperature": settings.llm_temperature,
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise _classify_anthropic_error(exc) from exc

        content = ""
        for block in response.content:
            if block.type == "text":
                content = block.text
                break

        return LLMResponse(content=content, model=response.model)


def _classify_anthropic_error(exc: anthropic.APIError) -> UpstreamModelError:
    provider = AnthropicProvider.name
    if isinstance(exc, anthropic.RateLimitError):
        return RateLimitError(
            "Anthropic API rate limit exceeded. Please try again later.",
            provider=provider,
        )
    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return AuthError(
            "Invalid Anthropic API key. Please check your configuration.",
            hint="Set ANTHROPIC_API_KEY (or LLM_API_KEY) in .env",
            provider=provider,
        )
    if isinstance(exc, anthropic.APIConnectionError):
        return UnavailableError(
            "Anthropic API is unreachable.", hint=str(exc), provider=provider,
        )
    if isinstance(exc, anthropic.APIStatusError) and exc.status_code >= 500:
        # 529 overloaded lands here too
        return UnavailableError(
            "Anthropic API is temporarily unavailable.",
            hint=str(exc),
            provider=provider,
        )
    return UnknownError(
        "Failed to process chat request", hint=str(exc), provider=provider,
    )


# ---------------------------------------------------------------------------
# Implementation 2: OpenAI-Compatible (OpenAI, Gemini, DeepSeek, ...)
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Provider for any API that follows the OpenAI chat completions spec.

    Switching hosted providers is a config change:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://generativelanguage.googleapis.com/v1beta/openai/
        LLM_API_KEY=your-key
        LLM_MODEL=gemini-1.5-flash
    """

    name = "openai_compatible"
    default_model = "gpt-4o-mini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise AuthError(
                "No API key configured for OpenAI-compatible provider.",
                hint="Set LLM_API_KEY in .env",
                provider=self.name,
            )

        client_kwargs: dict = {
            "api_key": resolved_key,
            "timeout": settings.llm_timeout_seconds,
        }
        resolved_base_url = base_url or settings.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self.model = model or settings.llm_model or self.default_model

        logger.info(
            "Initialized %s (model=%s, base_url=%s)",
            type(self).__name__,
            self.model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        prompt: str,
        history: list[ChatTurn] | None = None,
        system: str | None = None,
    ) -> LLMResponse:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(_history_messages(history))
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=settings.llm_max_tokens,
                temperature=settings.llm_temperature,
            )
        except openai.APIError as exc:
            raise self._classify_error(exc) from exc

        content = response.choices[0].message.content or ""
        return LLMResponse(content=content, model=response.model or self.model)

    def _classify_error(self, exc: openai.APIError) -> UpstreamModelError:
        if isinstance(exc, openai.RateLimitError):
            return RateLimitError(
                "API quota exceeded. Please try again later.",
                provider=self.name,
            )
        if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return AuthError(
                "Invalid API key. Please check your configuration.",
                hint="Set LLM_API_KEY in .env",
                provider=self.name,
            )
        if isinstance(exc, openai.APIConnectionError):
            return UnavailableError(
                "Generation service is unreachable.",
                hint=str(exc),
                provider=self.name,
            )
        if isinstance(exc, openai.APIStatusError) and exc.status_code >= 500:
            return UnavailableError(
                "Generation service is temporarily unavailable.",
                hint=str(exc),
                provider=self.name,
            )
        return UnknownError(
            "Failed to process chat request", hint=str(exc), provider=self.name,
        )


# ---------------------------------------------------------------------------
# Implementation 3: Ollama (local model server)
# ---------------------------------------------------------------------------


class OllamaProvider(OpenAICompatibleProvider):
    """
    Local Ollama server through its OpenAI-compatible /v1 endpoint.

    Setup: install Ollama, `ollama serve`, `ollama pull llama3.1`.
    No API key is needed; the SDK just requires a non-empty one.
    """

    name = "ollama"
    default_model = "llama3.1"

    def __init__(
        self,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        root = (base_url or settings.ollama_base_url).rstrip("/")
        super().__init__(
            api_key="ollama",
            model=model,
            base_url=f"{root}/v1",
        )

    def _classify_error(self, exc: openai.APIError) -> UpstreamModelError:
        if isinstance(exc, openai.APIConnectionError):
            return UnavailableError(
                "Ollama service is not running. Please start Ollama first.",
                hint="Run 'ollama serve' in your terminal",
                provider=self.name,
            )
        if isinstance(exc, openai.NotFoundError):
            return ModelNotFoundError(
                "Model not found. Please pull the model first.",
                hint=f"Run 'ollama pull {self.model}' in your terminal",
                provider=self.name,
            )
        return super()._classify_error(exc)


# ---------------------------------------------------------------------------
# Implementation 4: Hugging Face Inference API
# ---------------------------------------------------------------------------


class HuggingFaceProvider:
    """
    Hugging Face text-generation models over the Inference API.

    Text-generation endpoints take one prompt string, so system prompt,
    history and question are flattened into a single text ending in
    "Answer:". The request asks for return_full_text=False; an output that
    still starts with the prompt has it removed.

    A cold model answers 503 with an `estimated_time` field → ModelLoadingError.
    """

    name = "huggingface"
    default_model = "mistralai/Mistral-7B-Instruct-v0.3"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_key = api_key or settings.huggingface_api_key or settings.llm_api_key
        if not resolved_key:
            raise AuthError(
                "No Hugging Face API key configured.",
                hint="Get your API key from https://huggingface.co/settings/tokens",
                provider=self.name,
            )

        self.model = model or settings.llm_model or self.default_model
        self._url = f"{(base_url or settings.huggingface_base_url).rstrip('/')}/{self.model}"
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {resolved_key}"},
            timeout=settings.llm_timeout_seconds,
            transport=transport,
        )

        logger.info("Initialized HuggingFaceProvider (model=%s)", self.model)

    async def complete(
        self,
        prompt: str,
        history: list[ChatTurn] | None = None,
        system: str | None = None,
    ) -> LLMResponse:
        inputs = _flatten_prompt(prompt, history, system)
        payload = {
            "inputs": inputs,
            "parameters": {
                "max_new_tokens": settings.llm_max_tokens,
                "temperature": settings.llm_temperature,
                "return_full_text": False,
            },
        }

        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.TransportError as exc:
            raise UnavailableError(
                "Hugging Face API is unreachable.",
                hint=str(exc),
                provider=self.name,
            ) from exc

        if response.is_error:
            raise self._classify_status(response)

        return LLMResponse(
            content=strip_prompt_echo(_generated_text(response.json()), inputs),
            model=self.model,
        )

    def _classify_status(self, response: httpx.Response) -> UpstreamModelError:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        detail = str(body.get("error") or response.text)

        if status == 429:
            return RateLimitError(
                "Hugging Face API rate limit exceeded. Please try again later.",
                hint="Free tier has limited requests per hour",
                provider=self.name,
            )
        if status in (401, 403):
            return AuthError(
                "Invalid Hugging Face API key. Please check your configuration.",
                hint="Get your API key from https://huggingface.co/settings/tokens",
                provider=self.name,
            )
        if status == 503 and "estimated_time" in body:
            return ModelLoadingError(
                "Model is loading. Please try again in a few moments.",
                hint=(
                    "Hugging Face models may take time to load on first request "
                    f"(estimated {body['estimated_time']}s)"
                ),
                provider=self.name,
            )
        if status >= 500:
            return UnavailableError(
                "Hugging Face API is temporarily unavailable.",
                hint=detail,
                provider=self.name,
            )
        return UnknownError(
            "Failed to process chat request", hint=detail, provider=self.name,
        )


def _flatten_prompt(
    prompt: str,
    history: list[ChatTurn] | None,
    system: str | None,
) -> str:
    parts: list[str] = []
    if system:
        parts.append(system)
    for turn in history or []:
        speaker = "User" if turn.role == "user" else "Assistant"
        parts.append(f"{speaker}: {turn.content}")
    parts.append(f"Question: {prompt}")
    parts.append("Answer:")
    return "\n\n".join(parts)


def _generated_text(body: object) -> str:
    # [{"generated_text": "..."}] or {"generated_text": "..."}
    if isinstance(body, list) and body:
        body = body[0]
    if isinstance(body, dict):
        return str(body.get("generated_text", ""))
    return str(body)


def strip_prompt_echo(text: str, prompt: str) -> str:
    """
    Drop the prompt if the model echoed it back.

    Endpoints that ignore return_full_text prepend the prompt verbatim; any
    other output is returned as is.
    """
    if text.startswith(prompt):
        text = text[len(prompt):]
    return text.strip()


# ---------------------------------------------------------------------------
# Factory Functions
# ---------------------------------------------------------------------------

_PROVIDERS = {
    "anthropic": AnthropicProvider,
    "openai_compatible": OpenAICompatibleProvider,
    "ollama": OllamaProvider,
    "huggingface": HuggingFaceProvider,
}

_provider: LLMProvider | None = None


def create_provider(name: str | None = None) -> LLMProvider:
    """
    Build a fresh provider instance.

    Raises:
        ValueError: If the provider name is unknown.
        AuthError: If the provider needs a key that is not configured.
    """
    provider_name = name or settings.llm_provider
    try:
        provider_cls = _PROVIDERS[provider_name]
    except KeyError:
        raise ValueError(
            f"Unknown LLM provider '{provider_name}'. "
            f"Supported: {sorted(_PROVIDERS)}"
        ) from None
    return provider_cls()


def configured_model(name: str | None = None) -> str:
    """LLM_MODEL if set, else the default model of the named provider."""
    provider_name = name or settings.llm_provider
    if settings.llm_model:
        return settings.llm_model
    provider_cls = _PROVIDERS.get(provider_name)
    return provider_cls.default_model if provider_cls else ""


def get_llm_provider() -> LLMProvider:
    """Return the configured provider, created once per process."""
    global _provider
    if _provider is None:
        _provider = create_provider()
    return _provider
