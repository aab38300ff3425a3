# =============================================================================
# Embedding Service — Batch Vector Generation (Provider-Agnostic)
# =============================================================================
#
# Generates embeddings through any OpenAI-compatible embeddings endpoint
# (OpenAI, Gemini's OpenAI endpoint, DashScope, ...). Ingestion and queries
# both go through this module, so they always use the same model.
#
# No retry logic here. SDK failures are classified by exception type and
# re-raised as:
#   RetryableError — rate limit / quota, connection, timeout, 5xx
#   FatalError     — authentication, permission, bad request, other 4xx
# The Celery task retries RetryableError (autoretry_for); everything else
# fails the job.
# On the chat path, as_upstream_error() maps the same failures onto the
# generation-backend classes (429 / 401 / 503 / 500).
#
# TOKEN LIMITS:
# - Each text: max 8,191 tokens
# - 100 texts per API call by default (EMBEDDING_BATCH_SIZE)
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence

import openai
from openai import OpenAI

from pdfchat.config import settings
from pdfchat.errors import (
    AuthError,
    EmbeddingError,
    FatalError,
    RateLimitError,
    RetryableError,
    UnavailableError,
    UnknownError,
    UpstreamModelError,
)

logger = logging.getLogger(__name__)

_RETRYABLE = (
    openai.RateLimitError,
    openai.APIConnectionError,  # includes APITimeoutError
    openai.InternalServerError,
)
_FATAL = (
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    openai.BadRequestError,
    openai.NotFoundError,
)


# ---------------------------------------------------------------------------
# Embedding Client — Lazy Singleton
# ---------------------------------------------------------------------------
# API key resolution order:
#   1. OPENAI_API_KEY (explicit embedding key)
#   2. LLM_API_KEY (shared key for LLM + embeddings)
# ---------------------------------------------------------------------------

_client: OpenAI | None = None


def _get_client() -> OpenAI:
    """Lazily initialize and cache the embedding client."""
    global _client
    if _client is None:
        resolved_key = settings.openai_api_key or settings.llm_api_key
        if not resolved_key:
            raise FatalError(
                "No API key configured for embeddings.",
                hint="Set OPENAI_API_KEY or LLM_API_KEY in .env",
                provider="embeddings",
            )

        client_kwargs: dict = {"api_key": resolved_key}
        if settings.embedding_base_url:
            client_kwargs["base_url"] = settings.embedding_base_url

        _client = OpenAI(**client_kwargs)

        logger.info(
            "Initialized embedding client (model=%s, base_url=%s)",
            settings.embedding_model,
            settings.embedding_base_url or "https://api.openai.com/v1",
        )
    return _client


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def embed_batch(
    texts: Sequence[str],
    batch_size: int | None = None,
) -> list[list[float]]:
    """
    Generate embeddings for texts, in the same order as the input.

    Args:
        texts: Text strings to embed.
        batch_size: Texts per API call. Defaults to
            settings.embedding_batch_size.

    Returns:
        One embedding vector per input text.

    Raises:
        RetryableError: Transient failure; the job may be retried.
        FatalError: Permanent failure (credentials, bad request).
    """
    if not texts:
        return []

    client = _get_client()
    _batch_size = batch_size or settings.embedding_batch_size

    all_embeddings: list[list[float]] = [[] for _ in texts]

    for i in range(0, len(texts), _batch_size):
        batch = list(texts[i : i + _batch_size])
        logger.debug(
            "Embedding batch %d-%d of %d texts (model=%s)",
            i + 1,
            min(i + _batch_size, len(texts)),
            len(texts),
            settings.embedding_model,
        )

        create_kwargs: dict = {
            "model": settings.embedding_model,
            "input": batch,
        }
        if settings.embedding_dimensions:
            create_kwargs["dimensions"] = settings.embedding_dimensions

        try:
            response = client.embeddings.create(**create_kwargs)
        except openai.OpenAIError as exc:
            raise classify_embedding_error(exc) from exc

        # Items carry their position in the request; place by index.
        for item in response.data:
            all_embeddings[i + item.index] = item.embedding

    logger.info(
        "Generated %d embeddings (model=%s, dimensions=%d)",
        len(texts),
        settings.embedding_model,
        settings.embedding_dimensions,
    )
    return all_embeddings


def embed_query(text: str) -> list[float]:
    """Embed a single query string with the ingestion model."""
    return embed_batch([text], batch_size=1)[0]


def classify_embedding_error(exc: openai.OpenAIError) -> EmbeddingError:
    """Map an OpenAI SDK exception onto RetryableError / FatalError."""
    if isinstance(exc, _RETRYABLE):
        return RetryableError(
            f"Embedding service temporarily unavailable: {exc}",
            hint="Rate limit, quota or transient outage. The job will be retried.",
            provider="embeddings",
        )
    if isinstance(exc, _FATAL):
        return FatalError(
            f"Embedding request rejected: {exc}",
            hint="Check OPENAI_API_KEY / EMBEDDING_MODEL configuration.",
            provider="embeddings",
        )
    return FatalError(f"Embedding failed: {exc}", provider="embeddings")


def as_upstream_error(exc: EmbeddingError) -> UpstreamModelError:
    """
    Re-express an embedding failure for a chat request.

    The query path answers the caller directly, so it needs the HTTP
    status of the underlying SDK error rather than the job retry policy.
    """
    cause = exc.__cause__
    if isinstance(cause, openai.RateLimitError):
        return RateLimitError(
            "Embedding API quota exceeded. Please try again later.",
            provider="embeddings",
        )
    if isinstance(cause, (openai.AuthenticationError, openai.PermissionDeniedError)) or (
        cause is None and isinstance(exc, FatalError)
    ):
        # No cause: the client could not be built without a key.
        return AuthError(
            "Invalid embedding API key. Please check your configuration.",
            hint="Set OPENAI_API_KEY or LLM_API_KEY in .env",
            provider="embeddings",
        )
    if isinstance(cause, (openai.APIConnectionError, openai.InternalServerError)):
        return UnavailableError(
            "Embedding service is temporarily unavailable.",
            hint=str(cause),
            provider="embeddings",
        )
    return UnknownError(
        "Failed to process chat request", hint=exc.message, provider="embeddings",
    )
