# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# The field names of ChatResponse / ChatDocument (pageContent, loc.pageNumber)
# follow the existing browser client, which renders `docs` as citations.
# Embedding vectors are never part of any response.
# =============================================================================

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StatusResponse(BaseModel):
    """Response for GET / — confirms the API is running."""

    status: str = "ok"
    service: str
    version: str
    provider: str


class UploadResponse(BaseModel):
    """
    Response for POST /upload/pdf.

    The document is NOT immediately searchable. Poll GET /upload/{job_id}.
    """

    message: str = Field(default="uploaded")
    job_id: str = Field(description="Celery task ID of the ingestion job")
    filename: str = Field(description="Original filename of the upload")


class JobStatusResponse(BaseModel):
    """Response for GET /upload/{job_id} — ingestion job status."""

    job_id: str
    status: str = Field(
        description="PENDING, STARTED, RETRY, SUCCESS or FAILURE",
    )
    result: dict[str, Any] | None = Field(
        default=None,
        description="Processing summary (available when status is SUCCESS)",
    )
    error: str | None = Field(
        default=None,
        description="Error message (available when status is FAILURE)",
    )


class ChunkLocation(BaseModel):
    page_number: int | None = Field(default=None, alias="pageNumber")

    model_config = ConfigDict(populate_by_name=True)


class ChatDocumentMetadata(BaseModel):
    source: str | None = None
    loc: ChunkLocation
    score: float | None = None

    model_config = ConfigDict(extra="allow")


class ChatDocument(BaseModel):
    """A retrieved chunk, shown by the client as a citation."""

    page_content: str = Field(alias="pageContent")
    metadata: ChatDocumentMetadata

    model_config = ConfigDict(populate_by_name=True)


class ChatResponse(BaseModel):
    """Response for GET /chat and POST /chat."""

    message: str = Field(description="The generated answer")
    docs: list[ChatDocument] = Field(
        description="Retrieved chunks used as context, most similar first",
    )
    sources: int = Field(description="Number of retrieved chunks")
    model: str = Field(description="Model that generated the answer")


class HealthResponse(BaseModel):
    """Healthy response for GET /health."""

    status: str = "healthy"
    provider: str
    model: str
    response: str


class ModelsResponse(BaseModel):
    """Response for GET /models."""

    current_provider: str = Field(alias="currentProvider")
    current_model: str = Field(alias="currentModel")
    embedding_model: str = Field(alias="embeddingModel")
    recommended_models: dict[str, list[str]] = Field(alias="recommendedModels")
    note: str

    model_config = ConfigDict(populate_by_name=True)
