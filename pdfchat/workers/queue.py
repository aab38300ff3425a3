# =============================================================================
# Ingestion Queue — Producer Side
# =============================================================================
#
# enqueue(job) publishes one process_upload task and returns its id.
#   - At-least-once delivery (acks_late on the worker side)
#   - No ordering across jobs, no deduplication of identical uploads
#   - The job is visible to workers only once enqueue() has returned
#
# Publishing uses retry=False: with the broker down, the upload request fails
# fast with EnqueueError instead of hanging in kombu's reconnect loop.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from celery.result import AsyncResult
from kombu.exceptions import OperationalError

from pdfchat.errors import EnqueueError
from pdfchat.models.domain import UploadJob
from pdfchat.workers.celery_app import celery_app
from pdfchat.workers.tasks import process_upload

logger = logging.getLogger(__name__)


@dataclass
class JobStatus:
    job_id: str
    status: str
    result: dict[str, Any] | None = None
    error: str | None = None


def enqueue(job: UploadJob) -> str:
    """
    Publish an ingestion job.

    Returns:
        The job id (Celery task id).

    Raises:
        EnqueueError: If the broker is unreachable.
    """
    try:
        task = process_upload.apply_async(
            kwargs=job.model_dump(),
            retry=False,
        )
    except (OperationalError, OSError) as exc:
        logger.error("Failed to enqueue '%s': %s", job.filename, exc)
        raise EnqueueError(
            "Failed to upload file",
            hint="The job queue is unreachable. Check CELERY_BROKER_URL.",
        ) from exc

    logger.info("Enqueued job %s for '%s'", task.id, job.filename)
    return task.id


def job_status(job_id: str) -> JobStatus:
    """
    Read a job's state from the result backend.

    Unknown ids report PENDING; Celery cannot tell them apart from queued jobs.
    """
    result = AsyncResult(job_id, app=celery_app)
    status = result.status

    if status == "SUCCESS":
        return JobStatus(job_id=job_id, status=status, result=result.result or {})
    if status == "FAILURE":
        return JobStatus(
            job_id=job_id,
            status=status,
            error=str(result.result) if result.result else "Unknown error",
        )
    return JobStatus(job_id=job_id, status=status)
