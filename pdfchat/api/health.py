# =============================================================================
# Health API — Backend Probe and Model Catalogue
# =============================================================================
#
# ENDPOINTS:
#   GET /health  — Send a trivial prompt to the configured backend
#   GET /models  — Current provider/model plus recommended alternatives
#
# /health is a real round trip to the generation backend, so it is as slow
# (and, for hosted backends, as billable) as one short chat turn. An
# unhealthy backend answers 500 with provider-specific troubleshooting hints.
# =============================================================================

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from pdfchat.config import settings
from pdfchat.models.responses import HealthResponse, ModelsResponse
from pdfchat.services.llm import configured_model, get_llm_provider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

HEALTH_PROMPT = "Say 'Hello' if you're working"

TROUBLESHOOTING: dict[str, dict[str, str]] = {
    "anthropic": {
        "checkApiKey": "Verify LLM_API_KEY or ANTHROPIC_API_KEY in .env file",
        "checkModel": "Verify LLM_MODEL is a model your key can access",
    },
    "openai_compatible": {
        "checkApiKey": "Verify LLM_API_KEY in .env file",
        "checkBaseUrl": "Verify LLM_BASE_URL points at an OpenAI-compatible API",
    },
    "ollama": {
        "checkOllamaRunning": "Run 'ollama serve' to start Ollama",
        "checkModelInstalled": "Run 'ollama pull <model>' to install the model",
        "checkPort": "Ensure Ollama is reachable at OLLAMA_BASE_URL",
    },
    "huggingface": {
        "checkApiKey": "Verify HUGGINGFACE_API_KEY in .env file",
        "getApiKey": "Get API key from: https://huggingface.co/settings/tokens",
        "modelLoading": "Some models may take time to load on first request",
    },
}

RECOMMENDED_MODELS: dict[str, list[str]] = {
    "anthropic": ["claude-sonnet-4-6", "claude-haiku-4-5"],
    "openai_compatible": ["gpt-4o-mini", "gpt-4o", "gemini-1.5-flash"],
    "ollama": [
        "llama3.1",
        "llama3.1:8b",
        "llama3.1:70b",
        "mistral",
        "codellama",
        "phi3",
        "gemma2",
        "qwen2",
    ],
    "huggingface_conversational": [
        "microsoft/DialoGPT-large",
        "microsoft/DialoGPT-medium",
        "facebook/blenderbot-3B",
    ],
    "huggingface_instruction": [
        "google/flan-t5-large",
        "google/flan-t5-xl",
        "bigscience/T0pp",
    ],
    "huggingface_chat": [
        "mistralai/Mistral-7B-Instruct-v0.1",
        "meta-llama/Llama-2-7b-chat-hf",
        "HuggingFaceH4/zephyr-7b-beta",
    ],
    "embeddings": [
        "text-embedding-3-small",
        "text-embedding-3-large",
        "sentence-transformers/all-MiniLM-L6-v2",
        "sentence-transformers/all-mpnet-base-v2",
        "BAAI/bge-small-en-v1.5",
    ],
}


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Check the generation backend",
    responses={500: {"description": "Backend unreachable or misconfigured"}},
)
async def health():
    provider_name = settings.llm_provider
    try:
        provider = get_llm_provider()
        response = await provider.complete(HEALTH_PROMPT)
    except Exception as exc:
        logger.error("Health check failed for %s: %s", provider_name, exc)
        return JSONResponse(
            status_code=500,
            content={
                "status": "unhealthy",
                "provider": provider_name,
                "error": str(exc),
                "troubleshooting": TROUBLESHOOTING.get(provider_name, {}),
            },
        )

    return HealthResponse(
        provider=provider.name,
        model=response.model,
        response=response.content,
    )


@router.get(
    "/models",
    response_model=ModelsResponse,
    response_model_by_alias=True,
    summary="List the current and recommended models",
)
async def models() -> ModelsResponse:
    return ModelsResponse(
        current_provider=settings.llm_provider,
        current_model=configured_model(),
        embedding_model=settings.embedding_model,
        recommended_models=RECOMMENDED_MODELS,
        note=(
            "Switch backends with LLM_PROVIDER and LLM_MODEL. Changing "
            "EMBEDDING_MODEL requires re-ingesting every document."
        ),
    )
