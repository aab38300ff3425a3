# =============================================================================
# Chat API — Retrieval-Augmented Question Answering
# =============================================================================
#
# ENDPOINTS:
#   GET  /chat?message=...  — Stateless single question
#   POST /chat              — Question plus client-held history
#
# FLOW:
#   1. Reject a missing/blank message (400, nothing else is called)
#   2. responder.answer(): embed → top-k → grounding prompt → backend
#   3. Map retrieved chunks to the `docs` citation format
#
# Classified failures (PdfChatError) are rendered by the app-level handler
# with their own status code. Anything else becomes UnknownError (500).
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Query

from pdfchat.errors import PdfChatError, UnknownError
from pdfchat.models.domain import ChatTurn
from pdfchat.models.requests import ChatRequest
from pdfchat.models.responses import (
    ChatDocument,
    ChatDocumentMetadata,
    ChatResponse,
    ChunkLocation,
)
from pdfchat.services import responder
from pdfchat.services.vectorstore import VectorMatch

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])

_MAPPED_KEYS = {"source_filename", "page_number", "source", "loc", "score"}


@router.get(
    "/chat",
    response_model=ChatResponse,
    response_model_by_alias=True,
    summary="Ask a question about the uploaded PDFs",
)
async def chat(
    message: str | None = Query(
        default=None,
        description="The question to answer from the uploaded documents",
    ),
) -> ChatResponse:
    return await _answer(message)


@router.post(
    "/chat",
    response_model=ChatResponse,
    response_model_by_alias=True,
    summary="Ask a question with conversation history",
)
async def chat_with_history(request: ChatRequest) -> ChatResponse:
    return await _answer(request.message, request.history)


async def _answer(
    message: str | None,
    history: list[ChatTurn] | None = None,
) -> ChatResponse:
    try:
        result = await responder.answer(message, history=history)
        return _to_response(result)
    except PdfChatError:
        raise
    except Exception as exc:
        logger.exception("Chat request failed")
        raise UnknownError("Failed to process chat request", hint=str(exc)) from exc


def _to_response(result: responder.Answer) -> ChatResponse:
    docs = [_to_document(match) for match in result.source_chunks]
    return ChatResponse(
        message=result.message,
        docs=docs,
        sources=len(docs),
        model=result.model,
    )


def _to_document(match: VectorMatch) -> ChatDocument:
    # Points written by this service carry source_filename / page_number;
    # LangChain loaders write source / loc.pageNumber instead.
    metadata = match.metadata
    loc = metadata.get("loc") if isinstance(metadata.get("loc"), dict) else {}
    page_number = metadata.get("page_number", loc.get("pageNumber"))
    source = metadata.get("source_filename", metadata.get("source"))

    extra = {
        key: value
        for key, value in metadata.items()
        if key not in _MAPPED_KEYS
    }
    return ChatDocument(
        page_content=responder.display_snippet(match.text),
        metadata=ChatDocumentMetadata(
            source=source,
            loc=ChunkLocation(page_number=page_number),
            score=match.score,
            **extra,
        ),
    )
