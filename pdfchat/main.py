# =============================================================================
# PDF Chat — FastAPI Application
# =============================================================================
#
# Wires the routers together, installs CORS and the error handler, and
# configures logging from LOG_LEVEL.
#
# Run the API:
#   pdfchat-api                       (console script)
#   uvicorn pdfchat.main:app --reload
#
# Run a worker (separate process):
#   celery -A pdfchat.workers.celery_app worker --loglevel=INFO
# =============================================================================

import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pdfchat.api import chat, health, upload
from pdfchat.config import settings
from pdfchat.errors import PdfChatError
from pdfchat.models.responses import StatusResponse

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Upload PDFs, index them in the background, and ask questions "
            "answered from the uploaded content."
        ),
        debug=settings.debug,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.exception_handler(PdfChatError)
    async def handle_pdfchat_error(request: Request, exc: PdfChatError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    application.include_router(upload.router)
    application.include_router(chat.router)
    application.include_router(health.router)

    @application.get("/", response_model=StatusResponse, tags=["Health"])
    async def root() -> StatusResponse:
        return StatusResponse(
            service=settings.app_name,
            version=settings.app_version,
            provider=settings.llm_provider,
        )

    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    uvicorn.run(
        "pdfchat.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
