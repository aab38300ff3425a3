# =============================================================================
# Upload API — PDF Upload and Job Status Tracking
# =============================================================================
#
# ENDPOINTS:
#   POST /upload/pdf        — Save the PDF, enqueue an ingestion job
#   GET  /upload/{job_id}   — Poll the job (PENDING → STARTED → SUCCESS/FAILURE)
#
# The handler only validates, saves and enqueues. Parsing, chunking and
# embedding happen on a Celery worker, so a successful upload means
# "accepted", not "searchable". The file stays on disk after ingestion.
#
# Stored name: {epoch_ms}-{random9}-{original_name}
# =============================================================================

import asyncio
import logging
import random
import time
from pathlib import Path

from fastapi import APIRouter, File, UploadFile

from pdfchat.config import settings
from pdfchat.errors import EnqueueError, InvalidUploadError, StorageError
from pdfchat.models.domain import UploadJob
from pdfchat.models.responses import JobStatusResponse, UploadResponse
from pdfchat.workers.queue import enqueue, job_status

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Upload"])


def storage_name(original_name: str) -> str:
    """Unique on-disk name that keeps the original name as a suffix."""
    suffix = random.randint(0, 999_999_999)
    return f"{int(time.time() * 1000)}-{suffix:09d}-{Path(original_name).name}"


# ---------------------------------------------------------------------------
# POST /upload/pdf — Upload a PDF for ingestion
# ---------------------------------------------------------------------------


@router.post(
    "/upload/pdf",
    response_model=UploadResponse,
    summary="Upload a PDF for processing",
    description=(
        "Save the PDF and enqueue an ingestion job. Returns immediately with "
        "a job_id; the document is searchable once the job has succeeded."
    ),
)
async def upload_pdf(
    pdf: UploadFile | None = File(default=None, description="PDF file to ingest"),
) -> UploadResponse:
    # --- Validate ---
    if pdf is None or not pdf.filename:
        raise InvalidUploadError("No PDF file was uploaded")
    if not pdf.filename.lower().endswith(".pdf"):
        raise InvalidUploadError(
            "Only PDF files are accepted",
            hint=f"Received '{pdf.filename}'",
        )

    content = await pdf.read()
    if not content:
        raise InvalidUploadError("Uploaded file is empty")

    # --- Save ---
    upload_dir = Path(settings.upload_dir)
    file_path = upload_dir / storage_name(pdf.filename)
    try:
        upload_dir.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(content)
    except OSError as exc:
        logger.error("Could not save upload '%s': %s", pdf.filename, exc)
        raise StorageError("Failed to upload file", hint=str(exc)) from exc

    # --- Enqueue ---
    job = UploadJob(filename=pdf.filename, storage_path=str(file_path))
    try:
        job_id = await asyncio.to_thread(enqueue, job)
    except EnqueueError:
        # No job will ever read this file.
        file_path.unlink(missing_ok=True)
        raise

    logger.info(
        "Upload '%s' (%d bytes) saved as %s, job %s",
        pdf.filename, len(content), file_path.name, job_id,
    )
    return UploadResponse(job_id=job_id, filename=pdf.filename)


# ---------------------------------------------------------------------------
# GET /upload/{job_id} — Poll ingestion status
# ---------------------------------------------------------------------------


@router.get(
    "/upload/{job_id}",
    response_model=JobStatusResponse,
    summary="Check ingestion job status",
)
async def upload_status(job_id: str) -> JobStatusResponse:
    status = await asyncio.to_thread(job_status, job_id)
    return JobStatusResponse(
        job_id=status.job_id,
        status=status.status,
        result=status.result,
        error=status.error,
    )
