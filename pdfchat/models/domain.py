# =============================================================================
# Domain Models — Jobs and Conversation Turns
# =============================================================================
#
# UploadJob travels through the broker as JSON, so it is a Pydantic model
# with model_dump() / model_validate() rather than a dataclass.
#
# ChatTurn is owned by the client. The server never persists it; it only
# forwards the turns it receives to the generation backend as history.
# =============================================================================

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class UploadJob(BaseModel):
    """
    One ingestion job per uploaded file.

    Created by the upload handler, consumed once by the Document Processor.
    Frozen: nothing mutates a job after it is enqueued.
    """

    filename: str = Field(description="Original filename as sent by the client")
    storage_path: str = Field(description="Path of the saved upload on disk")

    model_config = ConfigDict(frozen=True)


class ChatTurn(BaseModel):
    """A single turn of client-held conversation history."""

    role: Literal["user", "assistant"]
    content: str
    retrieved_chunks: list[dict] | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
