# =============================================================================
# Celery Task Definitions — Document Ingestion
# =============================================================================
#
# `process_upload` is the worker side of the ingestion queue. It rebuilds
# the UploadJob from its JSON kwargs and hands it to the Document Processor.
#
# IMPORTANT: Celery workers are SYNCHRONOUS. No async/await in tasks.
#
# RETRY POLICY (queue configuration, not pipeline logic):
#   RetryableError → autoretry with exponential backoff, up to
#                    INGEST_MAX_RETRIES times
#   anything else  → the job fails once and stays FAILED
#
# A retried job re-runs the whole pipeline and may store its chunks twice;
# there is no idempotency key on the upsert.
# =============================================================================

import logging

from celery.signals import task_failure, task_success

from pdfchat.config import settings
from pdfchat.errors import RetryableError
from pdfchat.models.domain import UploadJob
from pdfchat.services.processor import process
from pdfchat.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

TASK_NAME = "process_upload"


@celery_app.task(
    bind=True,
    name=TASK_NAME,
    autoretry_for=(RetryableError,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    max_retries=settings.ingest_max_retries,
)
def process_upload(self, filename: str, storage_path: str) -> dict:
    """
    Process one uploaded PDF into the vector index.

    Args:
        self: Bound task instance (provides self.request.id).
        filename: Original filename of the upload.
        storage_path: Where the upload handler saved the file.

    Returns:
        dict with filename, chunk_count and page_count.
    """
    job = UploadJob(filename=filename, storage_path=storage_path)
    job_id = self.request.id

    try:
        result = process(job, job_id=job_id)
    except RetryableError as exc:
        logger.warning(
            "[%s] Transient failure (attempt %d/%d): %s",
            job_id, self.request.retries + 1, self.max_retries + 1, exc,
        )
        raise
    except Exception as exc:
        logger.exception("[%s] Ingestion failed for '%s': %s", job_id, filename, exc)
        raise

    summary = result.to_dict()
    logger.info("[%s] Ingestion complete: %s", job_id, summary)
    return summary


# ---------------------------------------------------------------------------
# Worker Event Logging
# ---------------------------------------------------------------------------


@task_success.connect
def _log_job_completed(sender=None, result=None, **kwargs) -> None:
    if getattr(sender, "name", None) != TASK_NAME:
        return
    logger.info(
        "Job %s completed successfully (%s chunks)",
        sender.request.id, (result or {}).get("chunk_count"),
    )


@task_failure.connect
def _log_job_failed(sender=None, task_id=None, exception=None, **kwargs) -> None:
    if getattr(sender, "name", None) != TASK_NAME:
        return
    logger.error("Job %s failed: %s", task_id, exception)
