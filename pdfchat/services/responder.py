# =============================================================================
# Retrieval-Augmented Responder
# =============================================================================
#
# answer(query) → embed → top-k from the vector index → grounding prompt →
# generation backend → {message, source_chunks}
#
# The responder is backend-agnostic: it builds one system prompt and calls
# LLMProvider.complete(). Message formatting per backend (system kwarg,
# system message, flattened text) lives in the providers.
#
# Zero matches is not an error: the context block is empty, the prompt is
# still sent, and the backend is instructed to say the documents do not
# contain the answer.
#
# Context format (numbered so the model can refer to sources):
#   Document 1:
#   <chunk text>
#
#   ---
#
#   Document 2:
#   <chunk text>
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from pdfchat.config import settings
from pdfchat.errors import EmbeddingError, EmptyQueryError
from pdfchat.models.domain import ChatTurn
from pdfchat.services.embedder import as_upstream_error, embed_query
from pdfchat.services.llm import LLMProvider, get_llm_provider
from pdfchat.services.vectorstore import VectorMatch, VectorStore, get_vector_store

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"

SYSTEM_PROMPT_TEMPLATE = """\
You are a helpful AI assistant that answers questions based on PDF document content.

Instructions:
- Answer the user's question using ONLY the provided context from the PDF documents
- If the answer is not in the context, clearly state that the information is \
not available in the provided documents
- Be concise but comprehensive in your responses
- Maintain a professional and helpful tone

Context from PDF documents:
{context}"""


@dataclass
class Answer:
    """The responder's output: generated text plus its grounding chunks."""

    message: str
    source_chunks: list[VectorMatch] = field(default_factory=list)
    model: str = ""


async def answer(
    query: str | None,
    history: list[ChatTurn] | None = None,
    llm: LLMProvider | None = None,
    vector_store: VectorStore | None = None,
    k: int | None = None,
) -> Answer:
    """
    Answer a question from the indexed documents.

    Args:
        query: The user's question.
        history: Client-held earlier turns, forwarded to the backend.
        llm: Generation backend; defaults to the configured provider.
        vector_store: Index to search; defaults to the configured backend.
        k: Number of chunks to retrieve; defaults to settings.retrieval_k.

    Raises:
        EmptyQueryError: If the query is missing or blank. Raised before
            any embedding or index call.
        UpstreamModelError: Classified backend or query-embedding failure.
        VectorStoreError: The index could not be queried.
    """
    if query is None or not query.strip():
        raise EmptyQueryError()

    query = query.strip()
    top_k = k or settings.retrieval_k
    store = vector_store or get_vector_store()
    provider = llm or get_llm_provider()

    logger.info("Chat query: '%s' (k=%d)", query[:80], top_k)

    # Blocking SDK call; keep the event loop free.
    try:
        embedding = await asyncio.to_thread(embed_query, query)
    except EmbeddingError as exc:
        raise as_upstream_error(exc) from exc
    matches = await store.query(embedding, top_k)
    _check_embedding_model(matches)

    logger.info(
        "Retrieved %d chunks (top score=%s)",
        len(matches), matches[0].score if matches else "n/a",
    )

    system_prompt = build_system_prompt(matches)

    logger.info("Sending query to %s (model=%s)", provider.name, provider.model)
    response = await provider.complete(
        prompt=query,
        history=history,
        system=system_prompt,
    )
    logger.info("Received response from %s", provider.name)

    return Answer(
        message=response.content,
        source_chunks=matches,
        model=response.model,
    )


def format_context(matches: list[VectorMatch]) -> str:
    """Number each chunk and join them. Full text, never truncated."""
    return CONTEXT_SEPARATOR.join(
        f"Document {i}:\n{match.text}" for i, match in enumerate(matches, 1)
    )


def build_system_prompt(matches: list[VectorMatch]) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(context=format_context(matches))


def display_snippet(text: str, limit: int | None = None) -> str:
    """Truncate chunk text for API responses only."""
    limit = limit if limit is not None else settings.display_snippet_chars
    if not limit or len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def _check_embedding_model(matches: list[VectorMatch]) -> None:
    stale = {
        m.metadata.get("embedding_model")
        for m in matches
        if m.metadata.get("embedding_model")
        and m.metadata.get("embedding_model") != settings.embedding_model
    }
    if stale:
        logger.warning(
            "Retrieved chunks embedded with %s but queries use %s; "
            "re-ingest those documents",
            sorted(stale), settings.embedding_model,
        )
