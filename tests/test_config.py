# =============================================================================
# Unit Tests — Configuration
# =============================================================================

from pdfchat.config import Settings, get_settings, settings


class TestSettings:
    def test_module_instance_is_the_cached_one(self):
        assert get_settings() is settings
        assert get_settings() is get_settings()

    def test_pipeline_defaults(self, monkeypatch):
        for name in ("CHUNK_SIZE", "CHUNK_OVERLAP", "RETRIEVAL_K", "QUEUE_NAME",
                     "WORKER_CONCURRENCY", "LLM_PROVIDER", "VECTORSTORE_TYPE"):
            monkeypatch.delenv(name, raising=False)

        defaults = Settings(_env_file=None)

        assert defaults.chunk_size == 1000
        assert defaults.chunk_overlap == 200
        assert defaults.retrieval_k == 3
        assert defaults.queue_name == "file-upload-queue"
        assert defaults.worker_concurrency == 5
        assert defaults.llm_provider == "anthropic"
        assert defaults.vectorstore_type == "qdrant"

    def test_environment_overrides_defaults(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "ollama")
        monkeypatch.setenv("QDRANT_URL", ":memory:")
        monkeypatch.setenv("CHUNK_SIZE", "500")

        overridden = Settings(_env_file=None)

        assert overridden.llm_provider == "ollama"
        assert overridden.qdrant_url == ":memory:"
        assert overridden.chunk_size == 500
