# =============================================================================
# Services Package — Business Logic
# =============================================================================
# Contains the core pipeline, separated from API handlers and Celery:
#   - parser.py: PDF parsing with Docling (text per page)
#   - chunker.py: Character-window chunking with overlap
#   - embedder.py: OpenAI embedding generation (batch processing)
#   - vectorstore.py: Pluggable vector index (Qdrant, Chroma)
#   - llm.py: Generation backends (Anthropic, OpenAI-compatible, Ollama,
#     Hugging Face)
#   - processor.py: Ingestion pipeline for one uploaded file
#   - responder.py: Retrieval-augmented answering
# =============================================================================
