# =============================================================================
# Character-Based Text Chunker
# =============================================================================
#
# Splits parsed pages into overlapping chunks of at most `chunk_size`
# characters (default 1000, overlap 200). Each chunk keeps its source
# filename and page number, plus a tiktoken token count for logging and
# batch sizing downstream.
#
# ALGORITHM (per page, pages never share a chunk):
# 1. Split the page text on `separator` ("\n\n", the Docling block boundary)
# 2. Strip pieces, drop empty ones
# 3. Greedily merge pieces (re-joined with the separator) while the merged
#    length stays <= chunk_size
# 4. When the next piece would overflow, emit the current chunk, then drop
#    pieces from its FRONT until what remains is <= chunk_overlap and leaves
#    room for the next piece; the remainder seeds the next chunk
# 5. A single piece longer than chunk_size is emitted on its own (warning)
#
# The output depends only on (text, chunk_size, chunk_overlap, separator):
# the same input always yields the same ordered chunks.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

import tiktoken

from pdfchat.services.parser import ParsedDocument

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentChunk:
    """
    A single chunk ready for embedding and storage.

    Immutable once created. After upsert, the vector index owns it.
    """

    text: str
    source_filename: str
    page_number: int  # 1-indexed page the chunk was cut from
    chunk_index: int  # 0-indexed position within the document
    token_count: int  # cl100k_base token count

    def metadata(self) -> dict:
        """Payload stored next to the embedding in the vector index."""
        return {
            "source_filename": self.source_filename,
            "page_number": self.page_number,
            "chunk_index": self.chunk_index,
            "token_count": self.token_count,
        }


# ---------------------------------------------------------------------------
# Tiktoken Encoder — Cached Singleton
# ---------------------------------------------------------------------------
# cl100k_base is the encoding used by text-embedding-3-small.
# ---------------------------------------------------------------------------

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Lazily initialize and cache the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def split_text(
    text: str,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    separator: str = "\n\n",
) -> list[str]:
    """
    Split text into overlapping chunks of at most chunk_size characters.

    Raises:
        ValueError: If chunk_overlap is not smaller than chunk_size.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ValueError(
            f"chunk_overlap ({chunk_overlap}) must be >= 0 and smaller "
            f"than chunk_size ({chunk_size})"
        )

    pieces = [p.strip() for p in text.split(separator)] if separator else [text]
    pieces = [p for p in pieces if p]
    return _merge_pieces(pieces, chunk_size, chunk_overlap, separator)


def chunk_document(
    parsed_doc: ParsedDocument,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    separator: str = "\n\n",
) -> list[DocumentChunk]:
    """
    Split every page of a parsed document into DocumentChunks.

    Args:
        parsed_doc: The parsed document from the parser.
        chunk_size: Maximum characters per chunk (default 1000).
        chunk_overlap: Characters shared by consecutive chunks (default 200).
        separator: Boundary the text is split on before merging.

    Returns:
        List of DocumentChunk in document order, chunk_index sequential.
    """
    if not parsed_doc.pages:
        logger.warning("No pages to chunk in '%s'", parsed_doc.filename)
        return []

    encoder = _get_encoder()
    chunks: list[DocumentChunk] = []

    for page in parsed_doc.pages:
        for text in split_text(page.text, chunk_size, chunk_overlap, separator):
            chunks.append(DocumentChunk(
                text=text,
                source_filename=parsed_doc.filename,
                page_number=page.page_number,
                chunk_index=len(chunks),
                token_count=len(encoder.encode(text)),
            ))

    logger.info(
        "Chunked '%s' into %d chunks (size=%d, overlap=%d, pages=%d)",
        parsed_doc.filename,
        len(chunks),
        chunk_size,
        chunk_overlap,
        len(parsed_doc.pages),
    )
    return chunks


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _merge_pieces(
    pieces: list[str],
    chunk_size: int,
    chunk_overlap: int,
    separator: str,
) -> list[str]:
    """Greedily merge pieces into chunks, carrying a tail as overlap."""
    sep_len = len(separator)
    chunks: list[str] = []
    current: list[str] = []
    total = 0  # length of separator.join(current)

    for piece in pieces:
        piece_len = len(piece)
        joined_len = total + piece_len + (sep_len if current else 0)

        if joined_len > chunk_size and current:
            chunks.append(separator.join(current))

            # Drop from the front until the tail fits the overlap budget
            # and leaves room for the incoming piece.
            while current and (
                total > chunk_overlap
                or total + piece_len + sep_len > chunk_size
            ):
                total -= len(current[0]) + (sep_len if len(current) > 1 else 0)
                current.pop(0)

        if piece_len > chunk_size:
            logger.warning(
                "Created a chunk of size %d, which is longer than the "
                "specified %d",
                piece_len, chunk_size,
            )

        total += piece_len + (sep_len if current else 0)
        current.append(piece)

    if current:
        chunks.append(separator.join(current))

    return chunks
