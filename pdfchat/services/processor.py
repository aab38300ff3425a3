# =============================================================================
# Document Processor — Ingestion Pipeline
# =============================================================================
#
# Turns one UploadJob into embedded chunks in the vector index:
#   1. Parse PDF with Docling → text per page
#   2. Split pages into 1000-char chunks with 200-char overlap
#   3. Embed every chunk (batched)
#   4. Upsert all chunks + embeddings + metadata as one batch
#
# This module is plain synchronous code with no Celery imports; the task in
# pdfchat.workers.tasks is a thin wrapper around process(). Concurrent jobs
# share nothing here except the vector index.
#
# FAILURES (all raised, none swallowed):
#   NotFoundError, DocumentParseError, EmptyDocumentError — fatal
#   RetryableError — handed to the queue's retry policy
#   FatalError, VectorStoreError — fail the job
# A failure during upsert is NOT compensated: some points may already be
# stored.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from pdfchat.config import settings
from pdfchat.errors import EmptyDocumentError
from pdfchat.models.domain import UploadJob
from pdfchat.services.chunker import chunk_document
from pdfchat.services.embedder import embed_batch
from pdfchat.services.parser import parse_pdf
from pdfchat.services.vectorstore import VectorItem, VectorStore, get_vector_store

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Summary of a successfully processed job."""

    filename: str
    chunk_count: int
    page_count: int

    def to_dict(self) -> dict:
        return asdict(self)


def process(
    job: UploadJob,
    vector_store: VectorStore | None = None,
    job_id: str | None = None,
) -> ProcessingResult:
    """
    Run the ingestion pipeline for one uploaded file.

    Args:
        job: The upload to process.
        vector_store: Target index; defaults to the configured backend.
        job_id: Queue job ID, only used to prefix log lines.

    Returns:
        ProcessingResult with the number of chunks stored.

    Raises:
        ProcessingError: See module header for the subclasses.
        VectorStoreError: The index rejected the batch.
    """
    tag = job_id or job.filename

    logger.info(
        "[%s] Processing '%s' from %s (chunk_size=%d, overlap=%d)",
        tag, job.filename, job.storage_path,
        settings.chunk_size, settings.chunk_overlap,
    )

    # --- Step 1: Load ---
    parsed_doc = parse_pdf(job.storage_path)
    parsed_doc.filename = job.filename
    logger.info(
        "[%s] Step 1/4: Loaded %d pages", tag, parsed_doc.page_count,
    )

    # --- Step 2: Split ---
    chunks = chunk_document(
        parsed_doc,
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        separator=settings.chunk_separator,
    )
    if not chunks:
        raise EmptyDocumentError(
            f"No text could be extracted from '{job.filename}'",
            hint="The PDF may be empty or contain only scanned images.",
        )
    logger.info("[%s] Step 2/4: Split into %d chunks", tag, len(chunks))

    # --- Step 3: Embed ---
    embeddings = embed_batch([c.text for c in chunks])
    logger.info(
        "[%s] Step 3/4: Generated %d embeddings (model=%s)",
        tag, len(embeddings), settings.embedding_model,
    )

    # --- Step 4: Store ---
    store = vector_store or get_vector_store()
    store.upsert([
        VectorItem(
            embedding=embedding,
            text=chunk.text,
            metadata={
                **chunk.metadata(),
                "embedding_model": settings.embedding_model,
            },
        )
        for chunk, embedding in zip(chunks, embeddings, strict=True)
    ])
    logger.info(
        "[%s] Step 4/4: Stored %d chunks in %s",
        tag, len(chunks), settings.vectorstore_type,
    )

    return ProcessingResult(
        filename=job.filename,
        chunk_count=len(chunks),
        page_count=parsed_doc.page_count,
    )
