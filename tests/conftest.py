# =============================================================================
# Shared Test Fixtures
# =============================================================================
#
# Nothing here talks to the network: the tiktoken encoder is replaced by a
# whitespace counter (cl100k_base would otherwise be downloaded on first
# use) and vector stores run in-process.
# =============================================================================

from __future__ import annotations

import itertools
from unittest.mock import patch

import pytest

from pdfchat.services.vectorstore import QdrantVectorStore

_collection_ids = itertools.count()


class _WhitespaceEncoder:
    def encode(self, text: str) -> list[str]:
        return text.split()


@pytest.fixture(autouse=True)
def _offline_tokenizer():
    with patch(
        "pdfchat.services.chunker._get_encoder",
        return_value=_WhitespaceEncoder(),
    ):
        yield


@pytest.fixture
def qdrant_store() -> QdrantVectorStore:
    """Fresh in-memory Qdrant store with its own collection."""
    return QdrantVectorStore(
        url=":memory:",
        collection_name=f"test-{next(_collection_ids)}",
    )
