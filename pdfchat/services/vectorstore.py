# =============================================================================
# Vector Index — Pluggable Backend Protocol
# =============================================================================
#
# The core only needs two operations from the vector index:
#   upsert(items)        — sync, called by Celery workers during ingestion
#   query(embedding, k)  — async, called by FastAPI handlers during chat
#
# Everything else (ANN index, persistence, concurrent writers) belongs to the
# external store. No locking is done here; consistency is the store's job,
# and freshly upserted points may become visible with a delay.
#
# ARCHITECTURE:
#   VectorStore (Protocol)
#   ├── QdrantVectorStore  — Qdrant server, or ":memory:" local mode
#   │   ├── upsert()       — creates the collection on first write
#   │   └── query()        — asyncio.to_thread() around query_points()
#   └── ChromaVectorStore  — ChromaDB (on-disk or client/server)
#       ├── upsert()
#       └── query()        — asyncio.to_thread() around collection.query()
#
# Payload layout is {"page_content": str, "metadata": dict}, the layout
# LangChain's Qdrant integration writes, so existing collections stay
# readable.
#
# KNOWN GAP: upsert() sends the batch as-is with fresh UUID point IDs. A
# failure halfway is not rolled back, and a retried job writes a second copy
# of its chunks. There is no idempotency key.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Protocol

import chromadb
from chromadb.errors import ChromaError
from qdrant_client import QdrantClient
from qdrant_client.http import models as qmodels
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from pdfchat.config import settings
from pdfchat.errors import VectorStoreError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class VectorItem:
    """One chunk to store: its embedding, text and metadata."""

    embedding: list[float]
    text: str
    metadata: dict = field(default_factory=dict)


@dataclass
class VectorMatch:
    """One query result, most similar first."""

    text: str
    metadata: dict
    score: float  # cosine similarity, 1.0 = identical direction


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class VectorStore(Protocol):
    """Interface every vector index backend provides."""

    def upsert(self, items: list[VectorItem]) -> None:
        """Store items with their embeddings. Sync (for Celery)."""
        ...

    async def query(self, embedding: list[float], k: int) -> list[VectorMatch]:
        """Return the k most similar items, highest score first. Async."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: Qdrant
# ---------------------------------------------------------------------------


class QdrantVectorStore:
    """
    Qdrant-backed vector store.

    QDRANT_URL=":memory:" runs Qdrant's local in-process mode; only the
    process that created it can see the data (tests, single-process runs).
    The collection uses cosine distance and is sized from the first batch.
    """

    def __init__(
        self,
        url: str | None = None,
        collection_name: str | None = None,
        api_key: str | None = None,
    ) -> None:
        resolved_url = url or settings.qdrant_url
        self._collection = collection_name or settings.qdrant_collection

        if resolved_url == ":memory:":
            self._client = QdrantClient(location=":memory:")
        else:
            self._client = QdrantClient(
                url=resolved_url,
                api_key=api_key or settings.qdrant_api_key,
            )

        logger.info(
            "Using Qdrant vector store (url=%s, collection=%s)",
            resolved_url, self._collection,
        )

    def upsert(self, items: list[VectorItem]) -> None:
        """Upsert all items as one batch. Not atomic on partial failure."""
        if not items:
            return

        points = [
            qmodels.PointStruct(
                id=str(uuid.uuid4()),
                vector=item.embedding,
                payload={"page_content": item.text, "metadata": item.metadata},
            )
            for item in items
        ]

        try:
            self._ensure_collection(len(items[0].embedding))
            self._client.upsert(
                collection_name=self._collection,
                points=points,
                wait=True,
            )
        except (UnexpectedResponse, ResponseHandlingException) as exc:
            raise VectorStoreError(
                f"Qdrant upsert failed: {exc}",
                hint="Check that Qdrant is running at QDRANT_URL.",
                provider="qdrant",
            ) from exc

        logger.info(
            "Upserted %d points into Qdrant collection '%s'",
            len(points), self._collection,
        )

    async def query(self, embedding: list[float], k: int) -> list[VectorMatch]:
        """Cosine similarity search. Missing collection → no matches."""

        def _sync_query() -> list[VectorMatch]:
            if not self._client.collection_exists(self._collection):
                logger.info(
                    "Collection '%s' does not exist yet; no matches",
                    self._collection,
                )
                return []

            response = self._client.query_points(
                collection_name=self._collection,
                query=embedding,
                limit=k,
                with_payload=True,
            )
            return [
                VectorMatch(
                    text=(point.payload or {}).get("page_content", ""),
                    metadata=(point.payload or {}).get("metadata") or {},
                    score=round(point.score, 4),
                )
                for point in response.points
            ]

        try:
            return await asyncio.to_thread(_sync_query)
        except (UnexpectedResponse, ResponseHandlingException) as exc:
            raise VectorStoreError(
                f"Qdrant query failed: {exc}",
                hint="Check that Qdrant is running at QDRANT_URL.",
                provider="qdrant",
            ) from exc

    def _ensure_collection(self, dimension: int) -> None:
        if self._client.collection_exists(self._collection):
            return

        logger.info(
            "Creating Qdrant collection '%s' (dim=%d, cosine)",
            self._collection, dimension,
        )
        try:
            self._client.create_collection(
                collection_name=self._collection,
                vectors_config=qmodels.VectorParams(
                    size=dimension,
                    distance=qmodels.Distance.COSINE,
                ),
            )
        except UnexpectedResponse as exc:
            # Another worker created it between the check and the create.
            if exc.status_code != 409:
                raise


# ---------------------------------------------------------------------------
# Implementation 2: ChromaDB
# ---------------------------------------------------------------------------


class ChromaVectorStore:
    """
    ChromaDB-backed vector store.

    - Client/server: set CHROMA_URL
    - Otherwise: embedded persistent store under CHROMA_PATH. API and
      worker processes on one host see the same data through the directory.
    """

    def __init__(
        self,
        collection_name: str | None = None,
        path: str | None = None,
    ) -> None:
        if settings.chroma_url:
            self._client = chromadb.HttpClient(host=settings.chroma_url)
        else:
            self._client = chromadb.PersistentClient(path=path or settings.chroma_path)

        self._collection = self._client.get_or_create_collection(
            name=collection_name or settings.qdrant_collection,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(self, items: list[VectorItem]) -> None:
        if not items:
            return

        try:
            self._collection.upsert(
                ids=[str(uuid.uuid4()) for _ in items],
                documents=[item.text for item in items],
                embeddings=[item.embedding for item in items],
                metadatas=[_sanitise_chroma_metadata(item.metadata) for item in items],
            )
        except ChromaError as exc:
            raise VectorStoreError(
                f"Chroma upsert failed: {exc}", provider="chroma",
            ) from exc

        logger.info("Upserted %d items into ChromaDB", len(items))

    async def query(self, embedding: list[float], k: int) -> list[VectorMatch]:
        """
        Similarity search in ChromaDB.

        The Chroma client is synchronous; run it off the event loop.
        """

        def _sync_query() -> list[VectorMatch]:
            count = self._collection.count()
            if count == 0:
                return []

            results = self._collection.query(
                query_embeddings=[embedding],
                n_results=min(k, count),
                include=["documents", "metadatas", "distances"],
            )

            matches: list[VectorMatch] = []
            if results and results["ids"] and results["ids"][0]:
                for i in range(len(results["ids"][0])):
                    distance = (
                        results["distances"][0][i] if results["distances"] else 0.0
                    )
                    matches.append(VectorMatch(
                        text=results["documents"][0][i] if results["documents"] else "",
                        metadata=dict(results["metadatas"][0][i] or {})
                        if results["metadatas"]
                        else {},
                        # Chroma cosine distance is in [0, 2]
                        score=round(1.0 - distance, 4),
                    ))
            return matches

        try:
            return await asyncio.to_thread(_sync_query)
        except ChromaError as exc:
            raise VectorStoreError(
                f"Chroma query failed: {exc}", provider="chroma",
            ) from exc


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


_stores: dict[str, QdrantVectorStore | ChromaVectorStore] = {}


def get_vector_store(
    override_type: str | None = None,
) -> QdrantVectorStore | ChromaVectorStore:
    """
    Return the configured vector store backend, created once per process.

    - "qdrant" → QdrantVectorStore (default)
    - "chroma" → ChromaVectorStore

    Celery prefork children build their own on first use, after the fork.
    """
    store_type = override_type or settings.vectorstore_type

    if store_type not in _stores:
        if store_type == "chroma":
            logger.info("Using ChromaDB vector store")
            _stores[store_type] = ChromaVectorStore()
        else:
            _stores[store_type] = QdrantVectorStore()
    return _stores[store_type]


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _sanitise_chroma_metadata(metadata: dict) -> dict:
    """
    Chroma metadata values must be str, int, float or bool:
    - list → comma-separated string
    - None → empty string
    """
    sanitised = {}
    for key, value in metadata.items():
        if value is None:
            sanitised[key] = ""
        elif isinstance(value, list):
            sanitised[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            sanitised[key] = value
        else:
            sanitised[key] = str(value)
    return sanitised
