# =============================================================================
# PDF Chat — Ask Questions About Uploaded PDFs
# =============================================================================
# Uploads are indexed in the background (parse → chunk → embed → store) and
# questions are answered from the closest chunks by a swappable LLM backend.
#
# Package structure:
#   pdfchat/
#   ├── api/          → FastAPI route handlers (upload, chat, health)
#   ├── models/       → Pydantic V2 request/response/domain schemas
#   ├── services/     → Parsing, chunking, embedding, vector index,
#   │                    LLM backends, ingestion and answering
#   └── workers/      → Celery app, ingestion task, producer side of the queue
# =============================================================================
