# =============================================================================
# Application Configuration — Pydantic Settings
# =============================================================================
#
# All runtime options for the API process and the Celery workers live here.
# Both deployable units import the same Settings class, so the embedding
# model, vector index and queue names are identical on the write path
# (worker) and the read path (chat handler).
#
# Priority order (highest first):
#   1. Environment variables (e.g., `QDRANT_URL=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# USAGE:
#   from pdfchat.config import settings
#   print(settings.qdrant_url)
# =============================================================================

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Defaults target a local Redis on 6379 and a local Qdrant on 6333.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "PDF Chat"
    app_version: str = "0.1.0"
    debug: bool = True
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    # -------------------------------------------------------------------------
    # Queue — Celery on Redis
    # -------------------------------------------------------------------------
    #   db 0 = Celery broker (ingestion jobs)
    #   db 1 = Celery result backend (job status)
    #
    # worker_concurrency is an admission-control knob: it caps how many
    # documents are embedded at once so the embedding API stays within its
    # rate limits.
    # -------------------------------------------------------------------------
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    queue_name: str = "file-upload-queue"
    worker_concurrency: int = 5
    ingest_max_retries: int = 3
    task_soft_time_limit: int = 300
    task_time_limit: int = 600

    # -------------------------------------------------------------------------
    # API Keys — External Services
    # -------------------------------------------------------------------------
    # OPENAI_API_KEY:      embeddings (and the openai_compatible backend)
    # ANTHROPIC_API_KEY:   anthropic backend
    # LLM_API_KEY:         overrides the provider-specific key if set
    # HUGGINGFACE_API_KEY: huggingface backend
    # -------------------------------------------------------------------------
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    llm_api_key: str | None = None
    huggingface_api_key: str = ""

    # -------------------------------------------------------------------------
    # Embedding Configuration
    # -------------------------------------------------------------------------
    # The same model MUST be used for ingestion and for queries. Vectors from
    # different models live in different spaces; mixing them silently
    # degrades retrieval.
    # -------------------------------------------------------------------------
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_batch_size: int = 100
    embedding_base_url: str | None = None

    # -------------------------------------------------------------------------
    # LLM Configuration — Interchangeable Generation Backends
    # -------------------------------------------------------------------------
    #   "anthropic":         Claude via native Anthropic SDK
    #   "openai_compatible": OpenAI, Gemini (OpenAI endpoint), DeepSeek, ...
    #   "ollama":            local Ollama server (OpenAI-compatible /v1)
    #   "huggingface":       Hugging Face Inference API
    #
    # Example configs:
    #   Gemini:  provider=openai_compatible,
    #            base_url=https://generativelanguage.googleapis.com/v1beta/openai/,
    #            model=gemini-1.5-flash
    #   Ollama:  provider=ollama, model=llama3.1
    #   HF:      provider=huggingface, model=mistralai/Mistral-7B-Instruct-v0.3
    #
    # LLM_MODEL unset → each provider uses its own default_model.
    # -------------------------------------------------------------------------
    llm_provider: str = "anthropic"
    llm_model: str | None = None
    llm_base_url: str | None = None
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2048
    llm_timeout_seconds: float = 60.0
    ollama_base_url: str = "http://localhost:11434"
    huggingface_base_url: str = "https://router.huggingface.co/hf-inference/models"

    # -------------------------------------------------------------------------
    # Vector Index — Pluggable Backend
    # -------------------------------------------------------------------------
    #   "qdrant": Qdrant server (QDRANT_URL), or ":memory:" for local mode
    #             (one process only: API and workers do not share it)
    #   "chroma": ChromaDB client/server via CHROMA_URL, else a persistent
    #             on-disk store at CHROMA_PATH shared by API and workers
    # -------------------------------------------------------------------------
    vectorstore_type: str = "qdrant"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    qdrant_collection: str = "pdf-chunks"
    chroma_url: str | None = None
    chroma_path: str = "chroma_data"

    # -------------------------------------------------------------------------
    # Chunking & Retrieval
    # -------------------------------------------------------------------------
    # Character-based chunks: 1000 characters, 200 overlap. The overlap keeps
    # sentences that straddle a boundary retrievable from either side.
    # display_snippet_chars only truncates chunk text in API responses; the
    # prompt always receives full chunk text.
    # -------------------------------------------------------------------------
    chunk_size: int = 1000
    chunk_overlap: int = 200
    chunk_separator: str = "\n\n"
    retrieval_k: int = 3
    display_snippet_chars: int | None = None

    # -------------------------------------------------------------------------
    # File Upload
    # -------------------------------------------------------------------------
    # Uploaded PDFs are written here before the worker picks them up. API and
    # worker must see the same directory.
    # -------------------------------------------------------------------------
    upload_dir: str = "uploads"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache a Settings instance.

    Every module shares this instance through `settings` below; tests patch
    attributes on it rather than building a new one.
    """
    return Settings()


# ---------------------------------------------------------------------------
# Module-level convenience instance
# ---------------------------------------------------------------------------
settings = get_settings()
