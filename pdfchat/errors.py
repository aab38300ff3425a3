# =============================================================================
# Error Taxonomy
# =============================================================================
#
# Every error this service raises on purpose derives from PdfChatError, which
# carries a human-readable message, an optional remediation hint and the
# HTTP status the API should answer with.
#
#   PdfChatError
#   ├── ClientInputError (400)      — rejected immediately, never enqueued
#   │   ├── EmptyQueryError
#   │   └── InvalidUploadError
#   ├── InfrastructureError (500)   — broker / vector index / disk
#   │   ├── EnqueueError
#   │   ├── VectorStoreError
#   │   └── StorageError
#   ├── UpstreamModelError          — generation backend failures
#   │   ├── RateLimitError (429)
#   │   ├── AuthError (401)
#   │   ├── UnavailableError (503)
#   │   ├── ModelLoadingError (503)
#   │   ├── ModelNotFoundError (404)
#   │   └── UnknownError (500)
#   └── ProcessingError             — fails an ingestion job
#       ├── NotFoundError
#       ├── DocumentParseError
#       ├── EmptyDocumentError
#       └── EmbeddingError
#           ├── RetryableError      — handed to Celery autoretry
#           └── FatalError
#
# Classification happens where the SDK exception is caught (embedder, LLM
# providers, vector store) by exception TYPE or HTTP status, never by
# searching message text.
# =============================================================================

from __future__ import annotations


class PdfChatError(Exception):
    """Base exception for all PDF Chat errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        hint: str | None = None,
        provider: str | None = None,
    ) -> None:
        self.message = message
        self.hint = hint
        self.provider = provider
        super().__init__(message)

    def __str__(self) -> str:
        if self.provider:
            return f"[{self.provider}] {self.message}"
        return self.message

    def to_dict(self) -> dict:
        """Body for the JSON error response."""
        body: dict = {"error": self.message}
        if self.hint:
            body["details"] = self.hint
        return body


# ---------------------------------------------------------------------------
# Client input
# ---------------------------------------------------------------------------


class ClientInputError(PdfChatError):
    status_code = 400


class EmptyQueryError(ClientInputError):
    def __init__(self, message: str = "Message query parameter is required") -> None:
        super().__init__(message)


class InvalidUploadError(ClientInputError):
    pass


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class InfrastructureError(PdfChatError):
    status_code = 500


class EnqueueError(InfrastructureError):
    """The job broker could not accept the job."""


class VectorStoreError(InfrastructureError):
    """The vector index could not be read or written."""


class StorageError(InfrastructureError):
    """The uploaded file could not be written to disk."""


# ---------------------------------------------------------------------------
# Generation backend
# ---------------------------------------------------------------------------


class UpstreamModelError(PdfChatError):
    status_code = 500


class RateLimitError(UpstreamModelError):
    status_code = 429


class AuthError(UpstreamModelError):
    status_code = 401


class UnavailableError(UpstreamModelError):
    status_code = 503


class ModelLoadingError(UpstreamModelError):
    """Hugging Face cold start: the model is still being loaded."""

    status_code = 503


class ModelNotFoundError(UpstreamModelError):
    status_code = 404


class UnknownError(UpstreamModelError):
    status_code = 500


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class ProcessingError(PdfChatError):
    """Fails the ingestion job. Logged by the worker."""


class NotFoundError(ProcessingError):
    status_code = 404


class DocumentParseError(ProcessingError):
    pass


class EmptyDocumentError(ProcessingError):
    pass


class EmbeddingError(ProcessingError):
    pass


class RetryableError(EmbeddingError):
    """Transient embedding failure (rate limit, quota, timeout, 5xx)."""

    status_code = 503


class FatalError(EmbeddingError):
    """Permanent embedding failure (bad key, no permission, bad request)."""
